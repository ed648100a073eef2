import logging
import os
from datetime import datetime
from typing import Callable, Optional

from flask import Flask, g, jsonify, request

from spotfloat.domain.entities import SearchMode
from spotfloat.domain.errors import (
    BackendError,
    InputError,
    MalformedResponse,
    NotFound,
    Unauthorized,
)
from spotfloat.domain.ports import MusicBackend
from spotfloat.infrastructure.backends.spotify_api import SpotifyApiBackend

BackendFactory = Callable[[str], MusicBackend]

OPEN_ENDPOINTS = {'health', 'root', 'static'}


def error_status(error: Exception) -> int:
    """HTTP status for a domain error."""
    if isinstance(error, Unauthorized):
        return 401
    if isinstance(error, NotFound):
        return 404
    if isinstance(error, MalformedResponse):
        return 502
    if isinstance(error, InputError):
        return 400
    return 503


class RelayServer:
    """HTTP relay exposing simplified playback routes over the Spotify Web API.

    Every route except /health and / needs `Authorization: Bearer <token>`;
    a backend is built per request from that token.

    The bearer token is handed to the Spotify Web API as-is, so clients must
    send a live access token. The relay never exchanges or refreshes a refresh
    token; an expired token comes back as 401.
    """

    def __init__(self,
                 host: str = 'localhost',
                 port: int = 3000,
                 debug: bool = False,
                 backend_factory: Optional[BackendFactory] = None,
                 timeout: float = 10.0):
        """Initialize relay server."""
        self.host = host
        self.port = port
        self.debug = debug
        self.timeout = timeout
        self.app = Flask(__name__)
        self.logger = logging.getLogger(__name__)
        self.backend_factory = backend_factory or self._default_backend

        self.version = "0.1.0"
        self.commit = os.getenv('GIT_COMMIT', 'unknown')

        self._setup_routes()

    def _default_backend(self, token: str) -> MusicBackend:
        return SpotifyApiBackend(token, timeout=self.timeout, market=os.getenv('SPOTFLOAT_MARKET'))

    def _setup_routes(self) -> None:
        """Setup Flask routes."""
        app = self.app

        @app.before_request
        def authenticate():
            if request.endpoint in OPEN_ENDPOINTS or request.endpoint is None:
                return None
            header = request.headers.get('Authorization', '')
            scheme, _, token = header.partition(' ')
            if scheme.lower() != 'bearer' or not token.strip():
                return jsonify({'error': 'Please login'}), 401
            g.backend = self.backend_factory(token.strip())
            return None

        @app.errorhandler(BackendError)
        def backend_error(error):
            self.logger.warning(f"Relay request {request.path} failed: {type(error).__name__}: {error}")
            return jsonify({'error': str(error)}), error_status(error)

        @app.errorhandler(InputError)
        def input_error(error):
            return jsonify({'error': str(error)}), 400

        @app.route('/health', methods=['GET'])
        def health():
            """Health check endpoint."""
            return jsonify({
                'status': 'healthy',
                'version': self.version,
                'commit': self.commit,
                'timestamp': datetime.now().isoformat()
            }), 200

        @app.route('/', methods=['GET'])
        def root():
            """Root endpoint with basic info."""
            return jsonify({
                'service': 'spotfloat relay',
                'version': self.version,
                'endpoints': [
                    '/search/<type>/<query>', '/browse/<type>/<id>', '/currently-playing',
                    '/play/<uri>[/<device_id>]', '/skip', '/pause', '/previous', '/save', '/devices',
                ]
            }), 200

        @app.route('/search/<mode>/<path:query>', methods=['GET'])
        def search(mode, query):
            rows = g.backend.search(SearchMode.parse(mode), query, self._limit())
            return jsonify({'results': [row.to_dict() for row in rows]}), 200

        @app.route('/browse/<mode>/<item_id>', methods=['GET'])
        def browse(mode, item_id):
            rows = g.backend.browse(SearchMode.parse(mode), item_id, self._limit())
            return jsonify({'results': [row.to_dict() for row in rows]}), 200

        @app.route('/currently-playing', methods=['GET'])
        def currently_playing():
            now_playing = g.backend.currently_playing()
            if now_playing is None:
                return jsonify({'playing': False}), 200
            return jsonify(now_playing.to_dict()), 200

        @app.route('/play/<uri>', methods=['GET'])
        @app.route('/play/<uri>/<device_id>', methods=['GET'])
        def play(uri, device_id=None):
            if device_id:
                g.backend.play(uri, device_id=device_id)
            else:
                g.backend.play(uri)
            return jsonify({'status': 'ok'}), 200

        @app.route('/skip', methods=['GET'])
        def skip():
            g.backend.skip()
            return jsonify({'status': 'ok'}), 200

        @app.route('/pause', methods=['GET'])
        def pause():
            g.backend.toggle_pause()
            return jsonify({'status': 'ok'}), 200

        @app.route('/previous', methods=['GET'])
        def previous():
            g.backend.previous()
            return jsonify({'status': 'ok'}), 200

        @app.route('/save', methods=['GET'])
        def save():
            g.backend.like()
            return jsonify({'status': 'ok'}), 200

        @app.route('/devices', methods=['GET'])
        def devices():
            return jsonify({'devices': [device.to_dict() for device in g.backend.list_devices()]}), 200

    @staticmethod
    def _limit() -> int:
        limit = request.args.get('limit', default=20, type=int)
        return max(1, min(limit or 20, 50))

    def run(self) -> None:
        """Run the relay server."""
        self.logger.info(f"Starting spotfloat relay on {self.host}:{self.port}")
        self.app.run(host=self.host, port=self.port, debug=self.debug)


def create_app(backend_factory: Optional[BackendFactory] = None) -> Flask:
    """Create Flask app for testing."""
    server = RelayServer(backend_factory=backend_factory)
    return server.app
