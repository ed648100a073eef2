import json
import os
import shutil
import tempfile
from pathlib import Path

import pytest

from spotfloat.crosscutting.config import (
    ConfigError,
    SecretManager,
    Settings,
    get_secret_manager,
    load_settings,
    setup_config,
)


class TestSecretManager:
    """Tests for SecretManager class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.cache = Path(self.temp_dir) / 'spotify-tui' / '.spotify_token_cache.json'
        self.manager = SecretManager(self.temp_dir, token_cache=str(self.cache))

    def teardown_method(self):
        """Clean up test fixtures."""
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def test_initialization(self):
        """Test SecretManager initialization."""
        assert self.manager.config_dir == Path(self.temp_dir)
        assert self.manager.tokens_file == Path(self.temp_dir) / 'tokens.json'
        assert self.manager.env_file == Path(self.temp_dir) / '.env'

    def test_save_tokens_merges(self):
        self.manager.save_tokens({'relay': {'token': 'r1'}})
        self.manager.save_tokens({'spotify': {'access_token': 'a1'}})

        with open(self.manager.tokens_file) as f:
            stored = json.load(f)
        assert stored == {'relay': {'token': 'r1'}, 'spotify': {'access_token': 'a1'}}
        assert self.manager.get_relay_token() == 'r1'
        assert self.manager.get_spotify_access_token() == 'a1'

    def test_load_tokens_missing_file(self):
        assert self.manager.load_tokens() == {}

    def test_load_tokens_corrupt_file(self):
        self.manager.tokens_file.write_text('{not json')

        with pytest.raises(ConfigError):
            self.manager.load_tokens()

    def test_access_token_falls_back_to_spotify_tui_cache(self):
        self.cache.parent.mkdir(parents=True)
        self.cache.write_text(json.dumps({'access_token': 'from-cache', 'refresh_token': 'r'}))

        assert self.manager.get_spotify_access_token() == 'from-cache'

    def test_no_token_anywhere(self):
        assert self.manager.get_spotify_access_token() is None

    def test_load_env_vars(self):
        self.manager.env_file.write_text('SPOTFLOAT_BACKEND=cli\n# comment\nSPOTFLOAT_WIDTH=80\n')

        assert self.manager.load_env_vars() == {'SPOTFLOAT_BACKEND': 'cli', 'SPOTFLOAT_WIDTH': '80'}

    def test_config_summary_hides_secrets(self):
        self.manager.save_tokens({'spotify': {'access_token': 'very-secret-token'}})

        summary = self.manager.get_config_summary()

        assert summary['has_spotify_token'] is True
        assert summary['has_relay_token'] is False
        assert 'very-secret-token' not in json.dumps(summary)
        assert 'user-modify-playback-state' in summary['spotify_scopes']


class TestLoadSettings:
    """Tests for settings resolution."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.manager = SecretManager(self.temp_dir, token_cache=os.path.join(self.temp_dir, 'none.json'))

    def teardown_method(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_defaults(self):
        settings = load_settings(secret_manager=self.manager, environ={})

        assert settings == Settings()

    def test_precedence_overrides_env_file_tokens(self):
        self.manager.save_tokens({'spotify': {'access_token': 'stored'}})
        self.manager.env_file.write_text('SPOTFLOAT_BACKEND=relay\nSPOTFLOAT_WIDTH=90\nSPOTFLOAT_TIMEOUT=3\n')
        environ = {'SPOTFLOAT_WIDTH': '80', 'SPOTFLOAT_SEARCH_LIMIT': '15'}

        settings = load_settings({'width': 100}, secret_manager=self.manager, environ=environ)

        assert settings.width == 100
        assert settings.search_limit == 15
        assert settings.backend == 'relay'
        assert settings.timeout == 3.0
        assert settings.access_token == 'stored'
        assert settings.relay_token == 'stored'

    def test_environment_token_beats_stored_token(self):
        self.manager.save_tokens({'spotify': {'access_token': 'stored'}})

        settings = load_settings(secret_manager=self.manager, environ={'SPOTIFY_ACCESS_TOKEN': 'env'})

        assert settings.access_token == 'env'

    def test_empty_overrides_are_ignored(self):
        settings = load_settings({'backend': None, 'market': ''}, secret_manager=self.manager,
                                 environ={'SPOTFLOAT_BACKEND': 'cli'})

        assert settings.backend == 'cli'
        assert settings.market is None

    def test_backend_name_is_case_insensitive(self):
        assert load_settings({'backend': 'CLI'}, secret_manager=self.manager, environ={}).backend == 'cli'

    @pytest.mark.parametrize("overrides", [
        {'backend': 'winamp'},
        {'timeout': 'soon'},
        {'timeout': 0},
        {'search_limit': 0},
        {'width': 10},
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ConfigError):
            load_settings(overrides, secret_manager=self.manager, environ={})

    def test_log_level_is_normalized(self):
        settings = load_settings(secret_manager=self.manager, environ={'SPOTFLOAT_LOG_LEVEL': 'debug'})

        assert settings.log_level == 'DEBUG'


def test_setup_config_replaces_global_manager(tmp_path):
    original = get_secret_manager()
    try:
        manager = setup_config(str(tmp_path))
        assert get_secret_manager() is manager
        assert manager.config_dir == tmp_path
    finally:
        setup_config(str(original.config_dir))
