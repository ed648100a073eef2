import logging

from spotfloat.crosscutting.config import ConfigError, Settings
from spotfloat.domain.ports import MusicBackend
from spotfloat.infrastructure.backends.relay import RelayBackend
from spotfloat.infrastructure.backends.spotify_api import SpotifyApiBackend
from spotfloat.infrastructure.backends.spt_cli import SptCliBackend

logger = logging.getLogger(__name__)


def create_backend(settings: Settings) -> MusicBackend:
    """Build the backend variant named by settings.backend."""
    if settings.backend == 'api':
        if not settings.access_token:
            raise ConfigError("SPOTIFY_ACCESS_TOKEN (or a stored token) is required for the api backend")
        logger.info("Using Spotify Web API backend")
        return SpotifyApiBackend(settings.access_token, timeout=settings.timeout, market=settings.market)

    if settings.backend == 'cli':
        logger.info(f"Using {settings.spt_executable} subprocess backend")
        return SptCliBackend(settings.spt_executable, timeout=settings.timeout)

    if settings.backend == 'relay':
        if not settings.relay_url:
            raise ConfigError("SPOTFLOAT_RELAY_URL is required for the relay backend")
        if not settings.relay_token:
            raise ConfigError("SPOTFLOAT_RELAY_TOKEN (or SPOTIFY_ACCESS_TOKEN) is required for the relay backend")
        logger.info(f"Using relay backend at {settings.relay_url}")
        return RelayBackend(settings.relay_url, settings.relay_token, timeout=settings.timeout)

    raise ConfigError(f"Unsupported backend: {settings.backend}")
