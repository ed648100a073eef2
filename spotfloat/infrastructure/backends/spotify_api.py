import logging
from typing import Any, Callable, Dict, List, Optional

import requests
import spotipy
from spotipy.exceptions import SpotifyException
from urllib3.exceptions import ReadTimeoutError

from spotfloat.domain.entities import (
    CONTEXT_KINDS,
    Device,
    NowPlaying,
    ResultRow,
    SearchMode,
    parse_uri,
)
from spotfloat.domain.errors import (
    MalformedResponse,
    NotFound,
    Unauthorized,
    Unavailable,
)
from spotfloat.domain.formatting import join_artists
from spotfloat.domain.ports import MusicBackend

logger = logging.getLogger(__name__)

# Spotify Web API caps page sizes at 50
MAX_LIMIT = 50


def _artist_names(item: Dict[str, Any]) -> List[str]:
    return [artist.get('name', '') for artist in item.get('artists') or [] if artist.get('name')]


def _track_row(item: Dict[str, Any]) -> ResultRow:
    return ResultRow(item['name'], join_artists(_artist_names(item)), item['uri'], item['id'])


def _artist_row(item: Dict[str, Any]) -> ResultRow:
    return ResultRow(item['name'], '', item['uri'], item['id'])


def _playlist_row(item: Dict[str, Any]) -> ResultRow:
    owner = item.get('owner') or {}
    return ResultRow(item['name'], owner.get('display_name') or owner.get('id') or '', item['uri'], item['id'])


def _show_row(item: Dict[str, Any]) -> ResultRow:
    return ResultRow(item['name'], item.get('publisher') or '', item['uri'], item['id'])


def _episode_row(item: Dict[str, Any]) -> ResultRow:
    show = item.get('show') or {}
    return ResultRow(item['name'], show.get('name') or item.get('release_date') or '', item['uri'], item['id'])


ROW_BUILDERS: Dict[SearchMode, Callable[[Dict[str, Any]], ResultRow]] = {
    SearchMode.TRACK: _track_row,
    SearchMode.ARTIST: _artist_row,
    SearchMode.ALBUM: _track_row,
    SearchMode.PLAYLIST: _playlist_row,
    SearchMode.SHOW: _show_row,
}


class SpotifyApiBackend(MusicBackend):
    """Music backend talking to the Spotify Web API through spotipy."""

    def __init__(self,
                 access_token: str,
                 timeout: float = 10.0,
                 market: Optional[str] = None,
                 client: Optional[spotipy.Spotify] = None):
        """Initialize Spotify backend.

        Args:
            access_token: OAuth access token; refreshing it is the caller's job
            timeout: Seconds before a request is abandoned
            market: Optional ISO country code for search and browse
            client: Prebuilt client, mostly for tests
        """
        self._market = market
        # Each backend call is attempted exactly once
        self._client = client or spotipy.Spotify(
            auth=access_token,
            requests_timeout=timeout,
            retries=0,
            status_retries=0,
        )

    def _call(self, operation: str, func: Callable, *args, **kwargs):
        """Run a spotipy call and translate its failures into BackendError."""
        try:
            return func(*args, **kwargs)
        except SpotifyException as e:
            status = getattr(e, 'http_status', None)
            logger.warning(f"Spotify API error during {operation}: {status} {e.msg}")
            if status in (401, 403):
                raise Unauthorized(f"Spotify rejected the token during {operation}: {e.msg}") from e
            if status == 404:
                raise NotFound(f"Not found during {operation}: {e.msg}") from e
            if status == 400 and 'invalid' in str(e.msg).lower():
                raise NotFound(f"Invalid reference during {operation}: {e.msg}") from e
            raise Unavailable(f"Spotify API failed during {operation} ({status}): {e.msg}") from e
        except (requests.exceptions.RequestException, ReadTimeoutError) as e:
            logger.warning(f"Spotify request failed during {operation}: {e}")
            raise Unavailable(f"Could not reach Spotify during {operation}: {e}") from e

    def _rows(self, mode: SearchMode, items: Optional[List[Optional[Dict[str, Any]]]],
              builder: Optional[Callable] = None) -> List[ResultRow]:
        build = builder or ROW_BUILDERS[mode]
        try:
            return [build(item) for item in items or [] if item]
        except (KeyError, TypeError, AttributeError) as e:
            raise MalformedResponse(f"Unexpected {mode.value} payload: {e}") from e

    def search(self, mode: SearchMode, query: str, limit: int = 20) -> List[ResultRow]:
        if not query or not query.strip():
            return []
        limit = max(1, min(limit, MAX_LIMIT))
        response = self._call('search', self._client.search, q=query, limit=limit,
                              type=mode.value, market=self._market)
        try:
            items = (response or {}).get(f"{mode.value}s", {}).get('items', [])
        except AttributeError as e:
            raise MalformedResponse(f"Unexpected search payload: {e}") from e
        rows = self._rows(mode, items)
        logger.debug(f"Search {mode.value} {query!r} returned {len(rows)} rows")
        return rows

    @staticmethod
    def _page_items(operation: str, page: Any) -> List[Any]:
        try:
            return (page or {}).get('items') or []
        except AttributeError as e:
            raise MalformedResponse(f"Unexpected {operation} payload: {e}") from e

    def browse(self, mode: SearchMode, item_id: str, limit: int = 20) -> List[ResultRow]:
        limit = max(1, min(limit, MAX_LIMIT))
        if mode is SearchMode.ARTIST:
            page = self._call('artist_albums', self._client.artist_albums, item_id,
                              include_groups='album', limit=limit)
            return self._rows(SearchMode.ALBUM, self._page_items('artist_albums', page))
        if mode is SearchMode.ALBUM:
            page = self._call('album_tracks', self._client.album_tracks, item_id,
                              limit=limit, market=self._market)
            return self._rows(SearchMode.TRACK, self._page_items('album_tracks', page))
        if mode is SearchMode.PLAYLIST:
            page = self._call('playlist_items', self._client.playlist_items, item_id,
                              limit=limit, market=self._market)
            try:
                tracks = [entry.get('track') for entry in self._page_items('playlist_items', page) if entry]
            except AttributeError as e:
                raise MalformedResponse(f"Unexpected playlist_items payload: {e}") from e
            return self._rows(SearchMode.TRACK, tracks)
        if mode is SearchMode.SHOW:
            page = self._call('show_episodes', self._client.show_episodes, item_id,
                              limit=limit, market=self._market)
            return self._rows(SearchMode.TRACK, self._page_items('show_episodes', page), builder=_episode_row)
        raise NotFound(f"{mode.label} have nothing to browse")

    def play(self, uri: str, device_id: Optional[str] = None) -> None:
        parsed = parse_uri(uri)
        if parsed is None:
            raise NotFound(f"Not a playable Spotify URI: {uri!r}")
        kind, _ = parsed
        if kind in CONTEXT_KINDS:
            self._call('play', self._client.start_playback, device_id=device_id, context_uri=uri)
        elif kind in ('track', 'episode'):
            self._call('play', self._client.start_playback, device_id=device_id, uris=[uri])
        else:
            raise NotFound(f"Not a playable Spotify URI: {uri!r}")

    def skip(self) -> None:
        self._call('skip', self._client.next_track)

    def previous(self) -> None:
        self._call('previous', self._client.previous_track)

    def toggle_pause(self) -> None:
        playback = self._call('current_playback', self._client.current_playback)
        try:
            playing = bool(playback and playback.get('is_playing'))
        except AttributeError as e:
            raise MalformedResponse(f"Unexpected playback payload: {e}") from e
        if playing:
            self._call('pause', self._client.pause_playback)
        else:
            self._call('resume', self._client.start_playback)

    def like(self) -> None:
        current = self._call('currently_playing', self._client.current_user_playing_track)
        try:
            item = (current or {}).get('item')
            if not item:
                raise NotFound("Nothing is playing")
            item_type, item_id = item.get('type', 'track'), item['id']
        except (KeyError, TypeError, AttributeError) as e:
            raise MalformedResponse(f"Unexpected currently playing payload: {e}") from e
        if item_type == 'episode':
            self._call('save_episode', self._client.current_user_saved_episodes_add, [item_id])
        else:
            self._call('save_track', self._client.current_user_saved_tracks_add, [item_id])

    def list_devices(self) -> List[Device]:
        response = self._call('devices', self._client.devices)
        try:
            return [
                Device(name=d['name'], id=d['id'], is_active=bool(d.get('is_active')))
                for d in (response or {}).get('devices') or []
                if d.get('id')
            ]
        except (KeyError, TypeError, AttributeError) as e:
            raise MalformedResponse(f"Unexpected devices payload: {e}") from e

    def currently_playing(self) -> Optional[NowPlaying]:
        current = self._call('currently_playing', self._client.current_user_playing_track)
        try:
            if not current or not current.get('is_playing') or not current.get('item'):
                return None
            item = current['item']
            if item.get('type') == 'episode':
                show = item.get('show') or {}
                artists = [show['name']] if show.get('name') else []
            else:
                artists = _artist_names(item)
            return NowPlaying(title=item['name'], artist_names=artists)
        except (KeyError, TypeError, AttributeError) as e:
            raise MalformedResponse(f"Unexpected currently playing payload: {e}") from e
