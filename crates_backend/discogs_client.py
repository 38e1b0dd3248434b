"""
Discogs API Client

Forwards database lookups to https://api.discogs.com, adding the app's
credentials and User-Agent (Discogs rejects requests without one).
"""

import logging

import requests

from crates_backend.errors import UpstreamError

logger = logging.getLogger(__name__)

BASE_URL = "https://api.discogs.com"

DEFAULT_PER_PAGE = 20


class DiscogsClient:
    """
    Args:
        key / secret: consumer key and secret (key-secret authentication)
        token: personal access token, used when key/secret are not set
        user_agent: User-Agent header sent with every request
        session: requests.Session (injectable for tests)
    """

    def __init__(self, key: str = None, secret: str = None, token: str = None,
                 user_agent: str = 'CratesMusicCollection/1.0', session=None, timeout: int = 10):
        self.key = key
        self.secret = secret
        self.token = token
        self.user_agent = user_agent
        self.session = session or requests.Session()
        self.timeout = timeout

    def _headers(self) -> dict:
        headers = {'User-Agent': self.user_agent}
        if self.key and self.secret:
            headers['Authorization'] = f"Discogs key={self.key}, secret={self.secret}"
        elif self.token:
            headers['Authorization'] = f"Discogs token={self.token}"
        return headers

    def _get(self, path: str, params: dict = None) -> dict:
        url = f"{BASE_URL}{path}"

        try:
            response = self.session.get(url, headers=self._headers(), params=params,
                                        timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Discogs request {path} failed: {e}")
            raise UpstreamError("Discogs request failed") from e

        if not response.ok:
            logger.error(f"Discogs request {path} failed: {response.status_code} {response.text[:200]}")
            raise UpstreamError("Discogs request failed", upstream_status=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Discogs request {path} returned invalid JSON: {e}")
            raise UpstreamError("Discogs returned an invalid response") from e

    @staticmethod
    def _paging(page=1, per_page=DEFAULT_PER_PAGE, **extra) -> dict:
        params = {'page': page, 'per_page': per_page}
        params.update({k: v for k, v in extra.items() if v is not None})
        return params

    def search(self, query: str, type: str = 'release', page=1, per_page=DEFAULT_PER_PAGE, **extra) -> dict:
        params = self._paging(page, per_page, **extra)
        params.update({'q': query, 'type': type})
        return self._get('/database/search', params)

    def get_release(self, release_id) -> dict:
        return self._get(f'/releases/{release_id}')

    def get_master(self, master_id) -> dict:
        return self._get(f'/masters/{master_id}')

    def get_artist(self, artist_id) -> dict:
        return self._get(f'/artists/{artist_id}')

    def get_artist_releases(self, artist_id, page=1, per_page=DEFAULT_PER_PAGE, **extra) -> dict:
        return self._get(f'/artists/{artist_id}/releases', self._paging(page, per_page, **extra))

    def get_label(self, label_id) -> dict:
        return self._get(f'/labels/{label_id}')

    def get_label_releases(self, label_id, page=1, per_page=DEFAULT_PER_PAGE, **extra) -> dict:
        return self._get(f'/labels/{label_id}/releases', self._paging(page, per_page, **extra))

    def get_release_marketplace(self, release_id, page=1, per_page=DEFAULT_PER_PAGE, **extra) -> dict:
        """Marketplace listings for a release"""
        return self._get(f'/marketplace/listings/{release_id}', self._paging(page, per_page, **extra))

    def check_connection(self) -> None:
        """One-result search; raises UpstreamError when Discogs is unreachable"""
        self.search('test', per_page=1)
