"""Neovim remote plugin exposing the session commands.

Load it from `rplugin/python3/spotfloat_rplugin.py`, then run
`:UpdateRemotePlugins`. Settings come from `g:spotfloat_<name>` variables,
then the environment (see crosscutting.config).
"""

import logging
from typing import Any, Dict, List, Optional

import pynvim

from spotfloat.application.session import SessionController
from spotfloat.crosscutting.config import ENV_NAMES, ConfigError, Settings, load_settings
from spotfloat.crosscutting.logging import log_error, setup_logging
from spotfloat.infrastructure.backends.factory import create_backend
from spotfloat.interfaces.nvim_host import NOTIFY_LEVELS, NvimSurfaceHost

logger = logging.getLogger(__name__)


def _first(args: List[Any], default: Optional[str] = None) -> Optional[str]:
    return str(args[0]) if args and args[0] not in (None, '') else default


@pynvim.plugin
class SpotfloatPlugin:
    """Command surface. Handlers are synchronous so commands never overlap."""

    def __init__(self, nvim):
        self.nvim = nvim
        self._controller: Optional[SessionController] = None

    def _overrides(self) -> Dict[str, Any]:
        overrides = {}
        for name in ENV_NAMES:
            value = self.nvim.vars.get(f'spotfloat_{name}')
            if value not in (None, ''):
                overrides[name] = value
        return overrides

    def _build_controller(self) -> SessionController:
        settings: Settings = load_settings(self._overrides())
        setup_logging(settings.log_level, settings.log_file, console=False)
        backend = create_backend(settings)
        return SessionController(
            NvimSurfaceHost(self.nvim),
            backend,
            width=settings.width,
            search_limit=settings.search_limit,
            backend_name=settings.backend,
        )

    @property
    def controller(self) -> Optional[SessionController]:
        if self._controller is None:
            try:
                self._controller = self._build_controller()
            except ConfigError as e:
                log_error(logger, "Plugin configuration failed", e)
                self.nvim.api.notify(f"Spotify: {e}", NOTIFY_LEVELS['error'], {})
                return None
        return self._controller

    @pynvim.command('Spotify', nargs='0', sync=True)
    def open(self, args=None):
        if self.controller:
            self.controller.open()

    @pynvim.command('SpotifyDevices', nargs='0', sync=True)
    def show_devices(self, args=None):
        if self.controller:
            self.controller.show_devices()

    @pynvim.function('SpotifyCloseWin', sync=True)
    def close(self, args):
        if self._controller:
            self._controller.close()

    @pynvim.function('SpotifySearch', sync=True)
    def search(self, args):
        if self.controller:
            self.controller.search(_first(args, 'track'))

    @pynvim.function('SpotifyDevices', sync=True)
    def select_device(self, args):
        if self.controller:
            self.controller.select_device(_first(args, 'next'))

    @pynvim.function('SpotifyResults', sync=True)
    def select_result(self, args):
        if self.controller:
            self.controller.select_result(_first(args, 'next'))

    @pynvim.function('SpotifyBrowse', sync=True)
    def browse(self, args):
        if self.controller:
            self.controller.browse_selected()

    @pynvim.function('SpotifyPlay', sync=True)
    def play(self, args):
        if not self.controller:
            return
        uri = _first(args)
        if uri is None:
            self.controller.play_selected()
        else:
            self.controller.play(uri)

    @pynvim.function('SpotifyPlayback', sync=True)
    def playback(self, args):
        if self.controller:
            self.controller.playback(_first(args, 'pause'))

    @pynvim.function('SpotifySave', sync=True)
    def save(self, args):
        if self.controller:
            self.controller.save()
