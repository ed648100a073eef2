import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import dotenv_values

from spotfloat.crosscutting.logging import DEFAULT_LOG_FILE

BACKENDS = ('api', 'cli', 'relay')

SPOTIFY_TUI_TOKEN_CACHE = Path.home() / '.config' / 'spotify-tui' / '.spotify_token_cache.json'


class ConfigError(Exception):
    """Configuration error."""
    pass


class SecretManager:
    """Manages stored tokens and the optional .env file."""

    def __init__(self, config_dir: Optional[str] = None, token_cache: Optional[str] = None):
        """Initialize secret manager."""
        self.config_dir = Path(config_dir) if config_dir else Path.home() / '.spotfloat'
        self.tokens_file = self.config_dir / 'tokens.json'
        self.env_file = self.config_dir / '.env'
        self.token_cache = Path(token_cache) if token_cache else SPOTIFY_TUI_TOKEN_CACHE

    def get_spotify_scopes(self) -> list:
        """Scopes a stored access token needs for the playback controls."""
        return [
            'user-read-playback-state',
            'user-read-currently-playing',
            'user-modify-playback-state',
            'user-library-modify',
            'playlist-read-private',
        ]

    def load_tokens(self) -> Dict[str, Any]:
        """Load tokens from tokens.json file."""
        if not self.tokens_file.exists():
            return {}

        try:
            with open(self.tokens_file, 'r') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise ConfigError(f"Failed to load tokens from {self.tokens_file}: {e}")

    def save_tokens(self, tokens: Dict[str, Any]) -> None:
        """Merge tokens into tokens.json file."""
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            existing_tokens = self.load_tokens()
            existing_tokens.update(tokens)
            with open(self.tokens_file, 'w') as f:
                json.dump(existing_tokens, f, indent=2, ensure_ascii=False)
        except (IOError, OSError) as e:
            raise ConfigError(f"Failed to save tokens to {self.tokens_file}: {e}")

    def get_spotify_access_token(self) -> Optional[str]:
        """Access token from tokens.json, else from the spotify-tui token cache."""
        spotify = self.load_tokens().get('spotify') or {}
        if spotify.get('access_token'):
            return spotify['access_token']

        if not self.token_cache.exists():
            return None
        try:
            with open(self.token_cache, 'r') as f:
                cache = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise ConfigError(f"Failed to read token cache {self.token_cache}: {e}")
        return cache.get('access_token') or None

    def get_relay_token(self) -> Optional[str]:
        relay = self.load_tokens().get('relay') or {}
        return relay.get('token')

    def load_env_vars(self) -> Dict[str, str]:
        """Load variables from the .env file."""
        if not self.env_file.exists():
            return {}
        try:
            return {k: v for k, v in dotenv_values(self.env_file).items() if v is not None}
        except (IOError, OSError) as e:
            raise ConfigError(f"Failed to load .env file {self.env_file}: {e}")

    def get_config_summary(self) -> Dict[str, Any]:
        """Get configuration summary (without sensitive data)."""
        return {
            'config_dir': str(self.config_dir),
            'tokens_file': str(self.tokens_file),
            'env_file': str(self.env_file),
            'token_cache': str(self.token_cache),
            'has_spotify_token': bool(self.get_spotify_access_token()),
            'has_relay_token': bool(self.get_relay_token()),
            'spotify_scopes': self.get_spotify_scopes(),
        }


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings."""

    backend: str = 'api'
    access_token: Optional[str] = None
    relay_url: str = 'http://localhost:3000'
    relay_token: Optional[str] = None
    spt_executable: str = 'spt'
    timeout: float = 10.0
    search_limit: int = 20
    width: int = 70
    market: Optional[str] = None
    log_level: str = 'INFO'
    log_file: Optional[str] = DEFAULT_LOG_FILE


# Setting name -> environment variable
ENV_NAMES = {
    'backend': 'SPOTFLOAT_BACKEND',
    'access_token': 'SPOTIFY_ACCESS_TOKEN',
    'relay_url': 'SPOTFLOAT_RELAY_URL',
    'relay_token': 'SPOTFLOAT_RELAY_TOKEN',
    'spt_executable': 'SPOTFLOAT_SPT_BIN',
    'timeout': 'SPOTFLOAT_TIMEOUT',
    'search_limit': 'SPOTFLOAT_SEARCH_LIMIT',
    'width': 'SPOTFLOAT_WIDTH',
    'market': 'SPOTFLOAT_MARKET',
    'log_level': 'SPOTFLOAT_LOG_LEVEL',
    'log_file': 'SPOTFLOAT_LOG_FILE',
}


def _as_number(name: str, value: Any, kind, minimum):
    try:
        number = kind(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {value!r}")
    if number < minimum:
        raise ConfigError(f"{name} must be at least {minimum}, got {number}")
    return number


def load_settings(overrides: Optional[Mapping[str, Any]] = None,
                  secret_manager: Optional[SecretManager] = None,
                  environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Resolve settings: overrides, environment, .env file, tokens.json, defaults."""
    manager = secret_manager or get_secret_manager()
    environ = os.environ if environ is None else environ
    env_file = manager.load_env_vars()
    overrides = {k: v for k, v in (overrides or {}).items() if v not in (None, '')}

    values: Dict[str, Any] = {}
    for name, env_name in ENV_NAMES.items():
        if name in overrides:
            values[name] = overrides[name]
        elif environ.get(env_name):
            values[name] = environ[env_name]
        elif env_file.get(env_name):
            values[name] = env_file[env_name]

    backend = str(values.get('backend', Settings.backend)).lower()
    if backend not in BACKENDS:
        raise ConfigError(f"Unknown backend {backend!r}; expected one of {', '.join(BACKENDS)}")
    values['backend'] = backend

    if not values.get('access_token'):
        values['access_token'] = manager.get_spotify_access_token()
    if not values.get('relay_token'):
        values['relay_token'] = manager.get_relay_token() or values.get('access_token')

    if 'timeout' in values:
        values['timeout'] = _as_number('timeout', values['timeout'], float, 0.1)
    if 'search_limit' in values:
        values['search_limit'] = _as_number('search_limit', values['search_limit'], int, 1)
    if 'width' in values:
        values['width'] = _as_number('width', values['width'], int, 30)
    if 'log_level' in values:
        values['log_level'] = str(values['log_level']).upper()

    return Settings(**values)


# Global instance
secret_manager = SecretManager()


def get_secret_manager() -> SecretManager:
    """Get global secret manager instance."""
    return secret_manager


def setup_config(config_dir: Optional[str] = None) -> SecretManager:
    """Setup configuration with custom directory."""
    global secret_manager
    secret_manager = SecretManager(config_dir)
    return secret_manager
