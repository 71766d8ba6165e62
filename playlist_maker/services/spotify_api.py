"""Spotify API client service.

Two halves:
- ``SpotifyAuthenticator``: builds the authorization URL and exchanges the
  callback's authorization code for a user token (Authorization Code flow).
- ``SpotifyClient``: the authorized handle used for Web API calls. Refreshes
  its access token with the refresh token once it expires.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote, urlencode

import httpx

from ..core.config import SPOTIFY_SCOPES
from ..core.errors import SpotifyAPIError, TokenExchangeError

logger = logging.getLogger("PlaylistMaker.Spotify")

AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
TOKEN_URL = "https://accounts.spotify.com/api/token"
API_BASE = "https://api.spotify.com/v1"

# Refresh this many seconds before the token actually expires
_EXPIRY_MARGIN = 60


@dataclass
class SpotifyToken:
    """OAuth user token."""

    access_token: str
    token_type: str = "Bearer"
    refresh_token: str = ""
    scope: str = ""
    expires_at: float = 0.0

    @property
    def expired(self) -> bool:
        return bool(self.expires_at) and time.monotonic() >= self.expires_at - _EXPIRY_MARGIN

    @classmethod
    def from_response(cls, data: Mapping[str, Any], refresh_token: str = "") -> SpotifyToken:
        expires_in = int(data.get("expires_in", 0) or 0)
        return cls(
            access_token=data["access_token"],
            token_type=data.get("token_type", "Bearer"),
            # Refresh responses may omit the refresh token; keep the old one
            refresh_token=data.get("refresh_token") or refresh_token,
            scope=data.get("scope", ""),
            expires_at=time.monotonic() + expires_in if expires_in else 0.0,
        )


@dataclass
class SpotifyUser:
    id: str
    display_name: str | None = None


@dataclass
class PlaylistInfo:
    id: str
    name: str
    is_public: bool


@dataclass
class TrackInfo:
    id: str
    name: str
    artists: list[str] = field(default_factory=list)


class SpotifyAuthenticator:
    """Authorization Code flow against the Spotify accounts service."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        http: httpx.AsyncClient,
        scopes: list[str] | None = None,
    ):
        if not client_id or not client_secret:
            raise ValueError("Spotify client_id and client_secret are required")

        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = scopes if scopes is not None else list(SPOTIFY_SCOPES)
        self._http = http

    def auth_url(self, state: str) -> str:
        """Generate the URL the user visits to grant access."""
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.scopes),
            "state": state,
        }
        return f"{AUTHORIZE_URL}?{urlencode(params, quote_via=quote)}"

    async def exchange_code(self, query: Mapping[str, str]) -> SpotifyToken:
        """Exchange the callback query's authorization code for a token."""
        if "error" in query:
            raise TokenExchangeError(f"authorization denied: {query['error']}")

        code = query.get("code")
        if not code:
            raise TokenExchangeError("callback is missing the authorization code")

        data = await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
            }
        )
        return SpotifyToken.from_response(data)

    async def refresh(self, token: SpotifyToken) -> SpotifyToken:
        """Get a fresh access token using *token*'s refresh token."""
        if not token.refresh_token:
            raise TokenExchangeError("token has no refresh token")

        data = await self._token_request(
            {"grant_type": "refresh_token", "refresh_token": token.refresh_token}
        )
        return SpotifyToken.from_response(data, refresh_token=token.refresh_token)

    def new_client(self, token: SpotifyToken) -> SpotifyClient:
        return SpotifyClient(token, self._http, self)

    async def _token_request(self, form: dict[str, str]) -> dict[str, Any]:
        try:
            response = await self._http.post(
                TOKEN_URL,
                data=form,
                auth=(self.client_id, self.client_secret),
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TokenExchangeError(f"token request failed: {e}") from e

        if response.status_code != 200:
            raise TokenExchangeError(
                f"token endpoint returned {response.status_code}: {response.text}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TokenExchangeError(f"token response is not JSON: {response.text!r}") from e
        if not isinstance(data, dict) or "access_token" not in data:
            raise TokenExchangeError("token response has no access_token")
        return data


class SpotifyClient:
    """Authorized Spotify Web API client.

    The underlying ``httpx.AsyncClient`` belongs to whoever created the
    authenticator; this client never closes it.
    """

    def __init__(
        self,
        token: SpotifyToken,
        http: httpx.AsyncClient,
        authenticator: SpotifyAuthenticator | None = None,
    ):
        self.token = token
        self._http = http
        self._authenticator = authenticator

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _ensure_token(self) -> str:
        if self.token.expired and self._authenticator is not None:
            try:
                self.token = await self._authenticator.refresh(self.token)
                logger.info("Refreshed Spotify access token")
            except TokenExchangeError as e:
                raise SpotifyAPIError(f"token refresh failed: {e}") from e
        return self.token.access_token

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> dict[str, Any]:
        access_token = await self._ensure_token()
        try:
            response = await self._http.request(
                method,
                f"{API_BASE}/{path}",
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            # InvalidURL is not an HTTPError; ids come from chat text
            raise SpotifyAPIError(f"{method} /{path} failed: {e}") from e

        if response.status_code >= 400:
            raise SpotifyAPIError(
                f"{method} /{path}: {_error_message(response)}", status=response.status_code
            )
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise SpotifyAPIError(
                f"{method} /{path}: response is not JSON", status=response.status_code
            ) from e

    # ------------------------------------------------------------------
    # Web API
    # ------------------------------------------------------------------

    async def current_user(self) -> SpotifyUser:
        data = await self._request("GET", "me")
        return SpotifyUser(id=data["id"], display_name=data.get("display_name"))

    async def get_playlist(self, playlist_id: str) -> PlaylistInfo:
        data = await self._request(
            "GET", f"playlists/{playlist_id}", params={"fields": "id,name,public"}
        )
        return PlaylistInfo(
            id=data.get("id", playlist_id),
            name=data.get("name", ""),
            is_public=bool(data.get("public")),
        )

    async def get_track(self, track_id: str) -> TrackInfo:
        data = await self._request("GET", f"tracks/{track_id}")
        return TrackInfo(
            id=data.get("id", track_id),
            name=data.get("name", ""),
            artists=[a.get("name", "") for a in data.get("artists", [])],
        )

    async def add_track_to_playlist(self, playlist_id: str, track_id: str) -> str:
        """Append one track and return the playlist's new snapshot id."""
        data = await self._request(
            "POST",
            f"playlists/{playlist_id}/tracks",
            json={"uris": [f"spotify:track:{track_id}"]},
        )
        return data.get("snapshot_id", "")


def _error_message(response: httpx.Response) -> str:
    try:
        error = response.json().get("error")
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(error, dict):
        return error.get("message") or response.reason_phrase
    return str(error or response.reason_phrase)
