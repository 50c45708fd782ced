"""
Backend REST client.

Every endpoint replies with the {success, data, message} envelope. Transport
level failures (timeouts, refused connections) raise NetworkError; envelope
failures come back as ApiResponse(success=False), except for the stream URL
endpoints which raise ResolutionError so playback can surface them.
"""

from typing import Any, Dict, List, Optional, Sequence, Type

import httpx
from loguru import logger
from pydantic import ValidationError

from ..core.token_store import TokenStore
from ..domain.playback.errors import NetworkError, ResolutionError
from ..domain.queue.models import Track
from .schemas import (
    ApiResponse,
    BackendStreamUrl,
    PlaylistItemInfo,
    SavedTrack,
    SaveTrackRequest,
    SearchResults,
    ServiceInfo,
)


class BackendClient:
    """Async client for the Musestruct backend API."""

    def __init__(
        self,
        base_url: str,
        token_store: TokenStore,
        timeout: float = 30.0,
        stream_timeout: float = 180.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_store = token_store
        self.stream_timeout = stream_timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def absolute_url(self, path: str) -> str:
        """Resolve a backend-relative path (e.g. /api/stream/...) against the origin."""
        return str(httpx.URL(self.base_url).join(path))

    # Plumbing

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.token_store.get()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        try:
            return await self._client.request(
                method,
                path,
                params=params,
                json=json,
                headers=self._headers(),
                timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
            )
        except httpx.TimeoutException as e:
            logger.warning(f"{method} {path} timed out")
            raise NetworkError(f"Request to {path} timed out") from e
        except httpx.TransportError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise NetworkError(f"Cannot reach backend: {e}") from e

    def _parse(self, response: httpx.Response, data_type: Type) -> ApiResponse:
        try:
            body = response.json()
        except ValueError:
            return ApiResponse.failure(
                f"Server error: {response.status_code} - invalid response body"
            )

        if not isinstance(body, dict):
            return ApiResponse.failure(f"Server error: {response.status_code}")

        if response.is_error:
            return ApiResponse.failure(
                body.get("message") or f"Request failed with status {response.status_code}"
            )

        try:
            return ApiResponse[data_type].model_validate(body)
        except ValidationError as e:
            logger.warning(f"Malformed response from {response.request.url}: {e}")
            return ApiResponse.failure("Unexpected response from server")

    # Endpoints

    async def health(self) -> bool:
        try:
            response = await self._request("GET", "/health")
        except NetworkError:
            return False
        return response.status_code == 200

    async def search(
        self,
        query: str,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        service: Optional[str] = None,
        services: Optional[Sequence[str]] = None,
    ) -> ApiResponse[SearchResults]:
        params: Dict[str, Any] = {"q": query}
        if limit is not None:
            params["limit"] = limit
        if offset is not None:
            params["offset"] = offset
        if service is not None:
            params["service"] = service
        for i, name in enumerate(services or []):
            params[f"services[{i}]"] = name

        response = await self._request("GET", "/streaming/search", params=params)
        return self._parse(response, SearchResults)

    async def get_stream_url(self, track_id: str, service: str) -> str:
        """Original (service-side) stream URL for a track.

        Raises:
            ResolutionError: If the backend has no stream for the track
            NetworkError: On timeout or connection failure
        """
        response = await self._request(
            "GET",
            "/streaming/stream-url",
            params={"track_id": track_id, "service": service},
        )
        result = self._parse(response, str)
        if not result.success or not result.data:
            raise ResolutionError(
                track_id, service, result.message or "Failed to get stream URL"
            )
        return result.data

    async def get_backend_stream_url(
        self, track_id: str, source: str, url: str
    ) -> BackendStreamUrl:
        """Ask the backend to cache a stream and return its own URL for it.

        Caching can take minutes for large lossless files, so this uses the
        stream timeout.
        """
        response = await self._request(
            "GET",
            "/streaming/backend-stream-url",
            params={"track_id": track_id, "source": source, "url": url},
            timeout=self.stream_timeout,
        )
        result = self._parse(response, BackendStreamUrl)
        if not result.success or result.data is None:
            raise ResolutionError(
                track_id, source, result.message or "Failed to get backend stream URL"
            )
        return result.data

    async def get_available_services(self) -> ApiResponse[List[ServiceInfo]]:
        response = await self._request("GET", "/streaming/services")
        return self._parse(response, List[ServiceInfo])

    async def get_playlist_items(
        self, playlist_id: str
    ) -> ApiResponse[List[PlaylistItemInfo]]:
        response = await self._request("GET", f"/v2/playlists/{playlist_id}/items")
        return self._parse(response, List[PlaylistItemInfo])

    # Saved tracks

    async def save_track(self, track: Track) -> ApiResponse[SavedTrack]:
        request = SaveTrackRequest.from_track(track)
        response = await self._request(
            "POST", "/saved-tracks", json=request.model_dump()
        )
        return self._parse(response, SavedTrack)

    async def get_saved_tracks(
        self, page: int = 1, limit: int = 50
    ) -> ApiResponse[List[SavedTrack]]:
        response = await self._request(
            "GET", "/saved-tracks", params={"page": page, "limit": limit}
        )
        return self._parse(response, List[SavedTrack])

    async def remove_saved_track(self, saved_track_id: str) -> ApiResponse:
        response = await self._request("DELETE", f"/saved-tracks/{saved_track_id}")
        return self._parse(response, Any)

    async def is_track_saved(self, track_id: str, source: str) -> ApiResponse[bool]:
        response = await self._request(
            "GET",
            "/saved-tracks/check",
            params={"track_id": track_id, "source": source},
        )
        return self._parse(response, bool)
