import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from spotfloat.domain.entities import Device, NowPlaying, ResultRow, SearchMode
from spotfloat.domain.errors import MalformedResponse, NotFound, Unauthorized, Unavailable
from spotfloat.domain.ports import MusicBackend

logger = logging.getLogger(__name__)


def _segment(value: str) -> str:
    return quote(str(value), safe='')


class RelayBackend(MusicBackend):
    """Music backend calling a spotfloat relay server over HTTP.

    The relay holds the Spotify session; this client only forwards a bearer
    token and reads the normalized JSON shapes back.
    """

    def __init__(self,
                 base_url: str,
                 token: str,
                 timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        """Initialize relay backend.

        Args:
            base_url: Relay root, e.g. http://localhost:3000
            token: Bearer credential forwarded on every request
            timeout: Seconds before a request is abandoned
            session: Prebuilt requests session, mostly for tests
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({'Authorization': f'Bearer {token}'})

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        logger.debug(f"GET {url}")
        try:
            response = self._session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise Unavailable(f"Could not reach relay at {self.base_url}: {e}") from e

        status = response.status_code
        if status in (401, 403):
            raise Unauthorized(f"Relay rejected the credential ({status}): {self._error_text(response)}")
        if status == 404:
            raise NotFound(f"Relay could not find {path}: {self._error_text(response)}")
        if status >= 400:
            raise Unavailable(f"Relay failed ({status}): {self._error_text(response)}")

        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponse(f"Relay answered {path} with non-JSON body") from e
        if not isinstance(body, dict):
            raise MalformedResponse(f"Relay answered {path} with {type(body).__name__}, expected object")
        return body

    @staticmethod
    def _error_text(response: requests.Response) -> str:
        try:
            return str(response.json().get('error', response.text))
        except (ValueError, AttributeError):
            return response.text

    def _rows(self, body: Dict[str, Any]) -> List[ResultRow]:
        try:
            return [ResultRow.from_dict(item) for item in body['results']]
        except (KeyError, TypeError) as e:
            raise MalformedResponse(f"Relay returned malformed results: {e}") from e

    def search(self, mode: SearchMode, query: str, limit: int = 20) -> List[ResultRow]:
        if not query or not query.strip():
            return []
        body = self._get(f"/search/{mode.value}/{_segment(query)}", params={'limit': limit})
        return self._rows(body)

    def browse(self, mode: SearchMode, item_id: str, limit: int = 20) -> List[ResultRow]:
        body = self._get(f"/browse/{mode.value}/{_segment(item_id)}", params={'limit': limit})
        return self._rows(body)

    def play(self, uri: str, device_id: Optional[str] = None) -> None:
        path = f"/play/{_segment(uri)}"
        if device_id:
            path += f"/{_segment(device_id)}"
        self._get(path)

    def skip(self) -> None:
        self._get("/skip")

    def toggle_pause(self) -> None:
        self._get("/pause")

    def previous(self) -> None:
        self._get("/previous")

    def like(self) -> None:
        self._get("/save")

    def list_devices(self) -> List[Device]:
        body = self._get("/devices")
        try:
            return [Device.from_dict(item) for item in body['devices']]
        except (KeyError, TypeError) as e:
            raise MalformedResponse(f"Relay returned malformed devices: {e}") from e

    def currently_playing(self) -> Optional[NowPlaying]:
        body = self._get("/currently-playing")
        try:
            return NowPlaying.from_dict(body)
        except (KeyError, TypeError) as e:
            raise MalformedResponse(f"Relay returned malformed playback state: {e}") from e
