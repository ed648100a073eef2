import argparse
import json
import logging
import signal
import sys
from typing import Optional

from spotfloat.crosscutting.config import (
    BACKENDS,
    ConfigError,
    Settings,
    get_secret_manager,
    load_settings,
    setup_config,
)
from spotfloat.crosscutting.logging import CorrelationContext, log_error, setup_logging
from spotfloat.domain.entities import SearchMode
from spotfloat.domain.errors import SpotfloatError
from spotfloat.infrastructure.backends.factory import create_backend
from spotfloat.interfaces.http import RelayServer

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR']


class CLI:
    """Command Line Interface for spotfloat."""

    def __init__(self):
        """Initialize CLI."""
        self.parser = self._create_parser()
        self._setup_signal_handlers()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog='spotfloat',
            description='Spotify controls for the editor, plus the HTTP relay they can talk to'
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        serve_parser = subparsers.add_parser('serve', help='Run the HTTP relay server')
        serve_parser.add_argument(
            '--host',
            default='localhost',
            help='Interface to bind (default: localhost)'
        )
        serve_parser.add_argument(
            '--port',
            type=int,
            default=3000,
            help='Port to listen on (default: 3000)'
        )
        serve_parser.add_argument(
            '--debug',
            action='store_true',
            help='Run Flask in debug mode'
        )

        search_parser = subparsers.add_parser('search', help='Search the catalogue')
        search_parser.add_argument(
            '--mode',
            choices=[mode.value for mode in SearchMode],
            default='track',
            help='What to search for (default: track)'
        )
        search_parser.add_argument(
            '--limit',
            type=int,
            default=None,
            help='Maximum number of results (default from settings)'
        )
        search_parser.add_argument('query', nargs='+', help='Search terms')

        subparsers.add_parser('devices', help='List playback devices')
        subparsers.add_parser('now-playing', help='Show the current item')

        config_parser = subparsers.add_parser('config', help='Show or store configuration')
        config_parser.add_argument(
            '--access-token',
            help='Store a Spotify access token in tokens.json'
        )
        config_parser.add_argument(
            '--relay-token',
            help='Store the bearer token sent to the relay in tokens.json'
        )

        for subparser in subparsers.choices.values():
            subparser.add_argument(
                '--config-dir',
                default=None,
                help='Directory holding tokens.json and .env (default: ~/.spotfloat)'
            )
            subparser.add_argument(
                '--backend',
                choices=list(BACKENDS),
                default=None,
                help='Backend variant (default from settings)'
            )
            subparser.add_argument(
                '--log-level',
                choices=LOG_LEVELS,
                default='INFO',
                help='Set logging level'
            )

        return parser

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        def signal_handler(signum, frame):
            logger = logging.getLogger(__name__)
            logger.warning(f"Received signal {signum}, shutting down...")
            sys.exit(130)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def _load_settings(self, args: argparse.Namespace) -> Settings:
        return load_settings({'backend': args.backend, 'log_level': args.log_level})

    def _serve(self, args: argparse.Namespace, settings: Settings) -> None:
        server = RelayServer(host=args.host, port=args.port, debug=args.debug, timeout=settings.timeout)
        server.run()

    def _search(self, args: argparse.Namespace, settings: Settings) -> None:
        backend = create_backend(settings)
        mode = SearchMode.parse(args.mode)
        rows = backend.search(mode, ' '.join(args.query), args.limit or settings.search_limit)
        if not rows:
            print("Nothing found")
            return
        print(f"{mode.label}:")
        for row in rows:
            print(f"{row.primary_text} - {row.secondary_text}  {row.uri}")

    def _devices(self, args: argparse.Namespace, settings: Settings) -> None:
        devices = create_backend(settings).list_devices()
        if not devices:
            print("No devices found")
            return
        for device in devices:
            marker = " (active)" if device.is_active else ""
            print(f"{device.name}{marker}  {device.id}")

    def _now_playing(self, args: argparse.Namespace, settings: Settings) -> None:
        now_playing = create_backend(settings).currently_playing()
        print(now_playing.display_text() if now_playing else "Nothing playing")

    def _config(self, args: argparse.Namespace) -> None:
        manager = get_secret_manager()
        tokens = {}
        if args.access_token:
            tokens['spotify'] = {'access_token': args.access_token}
        if args.relay_token:
            tokens['relay'] = {'token': args.relay_token}
        if tokens:
            manager.save_tokens(tokens)
            logging.getLogger(__name__).info(f"Stored {', '.join(sorted(tokens))} token(s) in {manager.tokens_file}")
        print(json.dumps(manager.get_config_summary(), indent=2))

    def run(self, argv: Optional[list] = None) -> None:
        """Run the CLI."""
        args = self.parser.parse_args(argv)

        if not args.command:
            self.parser.print_help()
            sys.exit(1)

        handlers = {
            'serve': self._serve,
            'search': self._search,
            'devices': self._devices,
            'now-playing': self._now_playing,
        }

        logger = logging.getLogger(__name__)
        try:
            if args.config_dir:
                setup_config(args.config_dir)
            if args.command == 'config':
                # Settings are not resolved so a broken value can still be inspected
                setup_logging(args.log_level, console=True)
                with CorrelationContext(command=args.command):
                    self._config(args)
                return

            settings = self._load_settings(args)
            setup_logging(settings.log_level, console=True)
            with CorrelationContext(command=args.command, backend=settings.backend):
                handlers[args.command](args, settings)
        except KeyboardInterrupt:
            logger.warning("Operation cancelled by user")
            sys.exit(130)
        except (ConfigError, SpotfloatError) as e:
            log_error(logger, f"{args.command} failed", e)
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)


def main():
    """Main entry point."""
    cli = CLI()
    cli.run()


if __name__ == '__main__':
    main()
