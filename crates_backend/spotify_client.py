"""
Spotify API Client

Handles:
- Client-credentials token management (anonymous catalog lookups)
- The user OAuth authorization-code flow (needed for audio features)
- Search, track and audio-feature requests

Failed requests raise UpstreamError and are never retried here.
"""

import base64
import logging
import threading
import time
from typing import Optional
from urllib.parse import urlencode

import requests

from crates_backend.errors import UpstreamError
from crates_backend.spotify_matching import build_track_query, pick_best_track

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.spotify.com/v1"
ACCOUNTS_URL = "https://accounts.spotify.com"
TOKEN_URL = f"{ACCOUNTS_URL}/api/token"
AUTHORIZE_URL = f"{ACCOUNTS_URL}/authorize"

# Refresh the client token this many seconds before Spotify expires it
TOKEN_EXPIRY_MARGIN = 60

MAX_AUDIO_FEATURE_IDS = 100


class SpotifyTokenCache:
    """
    Holds one client-credentials token and its expiry

    Shared by all requests in a worker; access is serialized with a lock.
    """

    def __init__(self, clock=time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._token = None
        self._expires_at = 0.0

    def get(self) -> Optional[str]:
        with self._lock:
            if self._token and self._clock() < self._expires_at:
                return self._token
            return None

    def set(self, token: str, expires_in: int) -> None:
        with self._lock:
            self._token = token
            self._expires_at = self._clock() + max(0, int(expires_in) - TOKEN_EXPIRY_MARGIN)

    def clear(self) -> None:
        with self._lock:
            self._token = None
            self._expires_at = 0.0


class SpotifyClient:
    """
    Thin wrapper over the Spotify Web API

    Args:
        client_id: Spotify application client id
        client_secret: Spotify application client secret
        redirect_uri: OAuth callback registered with Spotify
        token_cache: SpotifyTokenCache for the client-credentials token
        session: requests.Session (injectable for tests)
        timeout: per-request timeout in seconds
    """

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str = None,
                 token_cache: SpotifyTokenCache = None, session=None,
                 scope: str = 'user-read-private user-read-email', timeout: int = 10):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scope = scope
        self.token_cache = token_cache or SpotifyTokenCache()
        self.session = session or requests.Session()
        self.timeout = timeout

    # ========================================================================
    # LOW-LEVEL REQUESTS
    # ========================================================================

    def _basic_auth_header(self) -> str:
        credentials = f"{self.client_id}:{self.client_secret}"
        return 'Basic ' + base64.b64encode(credentials.encode()).decode()

    def _request(self, method: str, url: str, description: str, **kwargs) -> dict:
        """
        Perform a request and return the decoded JSON body

        Raises:
            UpstreamError: On network errors and non-2xx responses
        """
        kwargs.setdefault('timeout', self.timeout)

        try:
            response = self.session.request(method, url, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.error(f"Spotify {description} failed: {e}")
            raise UpstreamError(f"Spotify {description} failed") from e

        if response.status_code == 429:
            logger.warning(f"Spotify rate limit hit during {description} "
                           f"(Retry-After: {response.headers.get('Retry-After')})")

        if not response.ok:
            logger.error(f"Spotify {description} failed: {response.status_code} {response.text[:200]}")
            raise UpstreamError(f"Spotify {description} failed", upstream_status=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(f"Spotify {description} returned invalid JSON") from e

    def _token_request(self, data: dict, description: str) -> dict:
        if not self.client_id or not self.client_secret:
            logger.error("Spotify credentials not configured (SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET)")
            raise UpstreamError("Spotify is not configured")

        return self._request(
            'POST', TOKEN_URL, description,
            headers={
                'Authorization': self._basic_auth_header(),
                'Content-Type': 'application/x-www-form-urlencoded'
            },
            data=data
        )

    def _api_get(self, path: str, description: str, access_token: str = None, params=None) -> dict:
        token = access_token or self.get_client_access_token()
        return self._request(
            'GET', f"{API_BASE_URL}{path}", description,
            headers={'Authorization': f'Bearer {token}'},
            params=params
        )

    # ========================================================================
    # AUTHENTICATION
    # ========================================================================

    def get_client_access_token(self) -> str:
        """Return a valid client-credentials token, fetching a new one when expired"""
        token = self.token_cache.get()
        if token:
            return token

        data = self._token_request({'grant_type': 'client_credentials'}, 'client token request')
        self.token_cache.set(data['access_token'], data.get('expires_in', 3600))
        logger.debug("Spotify client-credentials token refreshed")
        return data['access_token']

    def get_authorize_url(self, state: str = None) -> str:
        params = {
            'client_id': self.client_id,
            'response_type': 'code',
            'redirect_uri': self.redirect_uri,
            'scope': self.scope,
            'show_dialog': 'true',
        }
        if state:
            params['state'] = state
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    def exchange_code_for_tokens(self, code: str) -> dict:
        """Trade an authorization code for {access_token, refresh_token, expires_in}"""
        return self._token_request({
            'grant_type': 'authorization_code',
            'code': code,
            'redirect_uri': self.redirect_uri,
        }, 'code exchange')

    def refresh_access_token(self, refresh_token: str) -> dict:
        return self._token_request({
            'grant_type': 'refresh_token',
            'refresh_token': refresh_token,
        }, 'token refresh')

    # ========================================================================
    # CATALOG
    # ========================================================================

    def search_tracks(self, query: str, limit: int = 20, offset: int = 0,
                      market: str = 'US', access_token: str = None) -> dict:
        params = {
            'q': query,
            'type': 'track',
            'limit': int(limit),
            'offset': int(offset),
        }
        if market:
            params['market'] = market
        return self._api_get('/search', 'search', access_token=access_token, params=params)

    def get_track(self, track_id: str, access_token: str = None) -> dict:
        return self._api_get(f'/tracks/{track_id}', 'track lookup', access_token=access_token)

    def get_audio_features(self, track_id: str, access_token: str = None) -> dict:
        return self._api_get(f'/audio-features/{track_id}', 'audio features lookup',
                             access_token=access_token)

    def get_multiple_audio_features(self, track_ids: list, access_token: str = None) -> dict:
        if len(track_ids) > MAX_AUDIO_FEATURE_IDS:
            raise ValueError(f"Maximum {MAX_AUDIO_FEATURE_IDS} track IDs allowed")
        return self._api_get('/audio-features', 'audio features lookup',
                             access_token=access_token, params={'ids': ','.join(track_ids)})

    def get_track_with_features(self, track_id: str) -> dict:
        return {
            'track': self.get_track(track_id),
            'audioFeatures': self.get_audio_features(track_id),
        }

    # ========================================================================
    # TITLE + ARTIST LOOKUPS
    # ========================================================================

    def find_track(self, title: str, artist: str, access_token: str = None) -> Optional[dict]:
        """
        Search by title and artist and return the best confident match, or None
        """
        query = build_track_query(title, artist)
        results = self.search_tracks(query, limit=5, market=None, access_token=access_token)
        items = (results.get('tracks') or {}).get('items') or []
        return pick_best_track(items, title)

    def search_track_by_title_and_artist(self, title: str, artist: str) -> Optional[dict]:
        """Client-credentials lookup; audio features need a user token so are left out"""
        track = self.find_track(title, artist)
        if not track:
            return None
        return {
            'track': track,
            'audioFeatures': None,
            'message': 'Audio features require user login to Spotify',
        }

    def search_track_with_audio_features(self, title: str, artist: str,
                                         user_access_token: str) -> Optional[dict]:
        track = self.find_track(title, artist, access_token=user_access_token)
        if not track:
            return None

        features = self.get_audio_features(track['id'], access_token=user_access_token)
        return {
            'track': track,
            'audioFeatures': features,
            'message': 'Full audio features available with user authorization',
        }
