import os
import sys
import pytest


def _ensure_project_root_on_sys_path() -> None:
    here = os.path.dirname(__file__)
    project_root = os.path.abspath(os.path.join(here, "..", ".."))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


_ensure_project_root_on_sys_path()


@pytest.fixture(autouse=True)
def _clear_spotfloat_env():
    """Keep SPOTIFY_ACCESS_TOKEN and SPOTFLOAT_* from a developer shell out of tests."""
    keys = [k for k in os.environ if k.startswith('SPOTFLOAT_')] + ['SPOTIFY_ACCESS_TOKEN']
    backup = {k: os.environ.get(k) for k in keys}
    for k in keys:
        os.environ.pop(k, None)
    try:
        yield
    finally:
        for k, v in backup.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v


@pytest.fixture
def empty_secret_manager(tmp_path):
    """SecretManager pointing at an empty config dir and a missing token cache."""
    from spotfloat.crosscutting.config import SecretManager
    return SecretManager(config_dir=str(tmp_path / 'config'), token_cache=str(tmp_path / 'missing.json'))
