from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union
from urllib.parse import urljoin

import httpx
from streamlink.stream.hls.m3u8 import M3U8Parser, parse_m3u8, parse_tag

from session_runner.exceptions import ManifestParseError, NetworkError
from session_runner.logger import Logger, session_logger

# The HLS parser reports structural oddities (unknown tags, bad attributes) as
# warnings; they are not actionable for a load client.
logging.getLogger("streamlink.stream.hls").setLevel(logging.ERROR)

_SESSION_INIT_BODY = {"logMode": "DEBUG"}


class DiscontinuityAwareParser(M3U8Parser):
    """M3U8 parser that records ``#EXT-X-DISCONTINUITY-SEQUENCE``.

    The stock parser registers this tag under a misspelled name, so the
    counter would otherwise always read as absent.
    """

    @parse_tag("EXT-X-DISCONTINUITY-SEQUENCE")
    def parse_ext_x_discontinuity_sequence(self, value: str) -> None:
        self.m3u8.discontinuity_sequence = int(value)


@dataclass(frozen=True)
class MasterPlaylist:
    uri: str | None
    variant_uris: tuple[str, ...]


@dataclass(frozen=True)
class MediaPlaylist:
    uri: str | None
    discontinuity_sequence: int | None


@dataclass(frozen=True)
class ParseFailure:
    uri: str | None
    reason: str


Playlist = Union[MasterPlaylist, MediaPlaylist, ParseFailure]


def _parse_strict(text: str, base_uri: str | None) -> MasterPlaylist | MediaPlaylist:
    if not text or not text.strip():
        raise ManifestParseError("EMPTY_MANIFEST", "manifest body is empty")

    try:
        parsed = parse_m3u8(text, base_uri=base_uri, parser=DiscontinuityAwareParser)
    except (ValueError, TypeError) as exc:
        raise ManifestParseError("MALFORMED_MANIFEST", str(exc)) from exc

    if parsed.is_master:
        variants = tuple(p.uri for p in parsed.playlists if not getattr(p, "is_iframe", False))
        return MasterPlaylist(uri=base_uri, variant_uris=variants)
    return MediaPlaylist(uri=base_uri, discontinuity_sequence=parsed.discontinuity_sequence)


def parse_playlist(text: str, base_uri: str | None = None) -> Playlist:
    """Classify manifest text as a master playlist, a media playlist, or a parse failure."""
    try:
        return _parse_strict(text, base_uri)
    except ManifestParseError as exc:
        return ParseFailure(uri=base_uri, reason=exc.message)


def resolve_manifest_url(manifest_path: str, init_url: str, host_name: str | None = None) -> str:
    """Make a session's manifest path absolute.

    With a host-name override the path is resolved against ``https://<host>``;
    otherwise against the session-initialization URL itself.
    """
    if host_name:
        base = host_name if "://" in host_name else f"https://{host_name}"
    else:
        base = init_url
    return urljoin(base, manifest_path)


class ManifestClient:
    """HTTP access to the session-initialization and manifest endpoints.

    None of the public methods raise for network or parse problems: they log
    the failure and return an empty or absent result so the caller's cycle
    carries on.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 10.0,
        logger: Logger | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self._logger = logger or session_logger
        self._http = http or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            follow_redirects=True,
            headers={"User-Agent": "ssai-session-runner/0.1"},
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "ManifestClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def create_session(self, init_url: str, host_name: str | None = None) -> str:
        """Start a playback session and return its absolute manifest URL, or ``""``."""
        try:
            response = await self._send("POST", init_url, json=_SESSION_INIT_BODY)
            payload = response.json()
        except NetworkError as exc:
            self._logger.warning(
                "manifest.session_create_failed",
                event="manifest.session_create_failed",
                url=init_url,
                error_type=exc.code,
                error=exc.message,
                **exc.details,
            )
            return ""
        except ValueError as exc:
            self._logger.warning(
                "manifest.session_create_failed",
                event="manifest.session_create_failed",
                url=init_url,
                error_type="non_json_response",
                error=str(exc),
            )
            return ""

        manifest_path = payload.get("manifestUrl") if isinstance(payload, dict) else None
        if not isinstance(manifest_path, str) or not manifest_path:
            self._logger.warning(
                "manifest.session_create_failed",
                event="manifest.session_create_failed",
                url=init_url,
                error_type="missing_manifest_url",
            )
            return ""

        manifest_url = resolve_manifest_url(manifest_path, init_url, host_name)
        self._logger.debug(
            "manifest.session_created",
            event="manifest.session_created",
            url=init_url,
            manifest_url=manifest_url,
        )
        return manifest_url

    async def fetch_manifest(self, url: str) -> str | None:
        """GET manifest text, or ``None`` on any failure."""
        try:
            response = await self._send("GET", url)
        except NetworkError as exc:
            self._logger.warning(
                "manifest.fetch_failed",
                event="manifest.fetch_failed",
                url=url,
                error_type=exc.code,
                error=exc.message,
                **exc.details,
            )
            return None
        return response.text

    async def fetch_playlist(self, url: str) -> Playlist:
        text = await self.fetch_manifest(url)
        if text is None:
            return ParseFailure(uri=url, reason="fetch_failed")

        playlist = parse_playlist(text, base_uri=url)
        if isinstance(playlist, ParseFailure):
            self._logger.warning(
                "manifest.parse_failed",
                event="manifest.parse_failed",
                url=url,
                reason=playlist.reason,
            )
        return playlist

    async def resolve_rendition_url(self, master_url: str, rendition_index: int) -> str | None:
        """Resolve the rendition at ``rendition_index`` of a master playlist to an absolute URL.

        The index range is checked by configuration, not here.
        """
        playlist = await self.fetch_playlist(master_url)

        if isinstance(playlist, ParseFailure):
            return None
        if isinstance(playlist, MediaPlaylist):
            self._logger.warning(
                "manifest.not_master",
                event="manifest.not_master",
                url=master_url,
            )
            return None
        if not playlist.variant_uris:
            self._logger.warning(
                "manifest.no_variants",
                event="manifest.no_variants",
                url=master_url,
            )
            return None

        return urljoin(master_url, playlist.variant_uris[rendition_index])

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._http.request(method, url, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise NetworkError(_classify_exception(exc), str(exc) or type(exc).__name__) from exc

        error_type = _classify_http_error(response.status_code)
        if error_type is not None:
            raise NetworkError(
                error_type,
                f"{method} {url} returned {response.status_code} {response.reason_phrase}",
                details={"status_code": response.status_code},
            )
        return response


# ---------------------------------------------------------------------------
# Helpers: error classification
# ---------------------------------------------------------------------------

def _classify_http_error(status_code: int) -> str | None:
    """Map an HTTP status code to a canonical error_type, or None if success."""
    if 200 <= status_code < 300:
        return None
    if status_code == 401:
        return "auth_unauthorized"
    if status_code == 403:
        return "auth_forbidden"
    if status_code == 404:
        return "not_found"
    if status_code == 429:
        return "rate_limited"
    if 400 <= status_code < 500:
        return "client_error"
    if 500 <= status_code < 600:
        return "server_error"
    return f"http_{status_code}"


def _classify_exception(exc: Exception) -> str:
    """Map a network-level exception to a canonical error_type."""
    if isinstance(exc, httpx.TimeoutException):
        return "network_timeout"
    if isinstance(exc, httpx.ConnectError):
        return "network_connect"
    if isinstance(exc, (httpx.RemoteProtocolError, httpx.LocalProtocolError)):
        return "network_protocol"
    if isinstance(exc, httpx.HTTPError):
        return "network_error"
    return type(exc).__name__
