import pytest
import requests

from crates_backend.errors import UpstreamError
from crates_backend.spotify_client import SpotifyClient, SpotifyTokenCache
from crates_backend.spotify_matching import (
    build_track_query,
    calculate_similarity,
    normalize_for_comparison,
    pick_best_track,
)
from tests.support.fakes import FakeResponse, FakeSession

pytestmark = pytest.mark.unit


class Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def _token_response(token='client-token', expires_in=3600):
    return FakeResponse(200, {'access_token': token, 'token_type': 'Bearer', 'expires_in': expires_in})


def _client(session, clock=None):
    cache = SpotifyTokenCache(clock=clock or Clock())
    return SpotifyClient('id', 'secret', redirect_uri='http://localhost/callback',
                         token_cache=cache, session=session)


# ----------------------------------------------------------------------
# Token cache
# ----------------------------------------------------------------------

def test_token_cache_expires_with_margin():
    clock = Clock()
    cache = SpotifyTokenCache(clock=clock)
    cache.set('abc', 3600)

    clock.now += 3600 - 61
    assert cache.get() == 'abc'

    clock.now += 1
    assert cache.get() is None


def test_client_token_fetched_once_until_expiry():
    clock = Clock()
    session = FakeSession(_token_response('first'), _token_response('second'))
    client = _client(session, clock)

    assert client.get_client_access_token() == 'first'
    assert client.get_client_access_token() == 'first'
    assert len(session.calls) == 1

    method, url, kwargs = session.calls[0]
    assert method == 'POST'
    assert url.endswith('/api/token')
    assert kwargs['data'] == {'grant_type': 'client_credentials'}
    assert kwargs['headers']['Authorization'].startswith('Basic ')

    clock.now += 3600
    assert client.get_client_access_token() == 'second'


def test_unconfigured_client_raises_upstream_error():
    client = SpotifyClient(None, None, session=FakeSession())
    with pytest.raises(UpstreamError):
        client.get_client_access_token()


def test_http_error_raises_upstream_error_with_status():
    session = FakeSession(_token_response(), FakeResponse(429, text='slow down', headers={'Retry-After': '3'}))
    client = _client(session)

    with pytest.raises(UpstreamError) as excinfo:
        client.get_track('abc')
    assert excinfo.value.upstream_status == 429


def test_network_error_raises_upstream_error():
    session = FakeSession(requests.exceptions.ConnectionError('unreachable'))
    with pytest.raises(UpstreamError):
        _client(session).get_client_access_token()


def test_user_token_bypasses_client_credentials():
    session = FakeSession(FakeResponse(200, {'id': 'sp-1', 'tempo': 120.0}))
    client = _client(session)

    assert client.get_audio_features('sp-1', access_token='user-token')['tempo'] == 120.0
    method, url, kwargs = session.calls[0]
    assert url.endswith('/audio-features/sp-1')
    assert kwargs['headers']['Authorization'] == 'Bearer user-token'


def test_multiple_audio_features_limit():
    with pytest.raises(ValueError):
        _client(FakeSession()).get_multiple_audio_features([str(i) for i in range(101)])


def test_authorize_url_carries_redirect_and_scope():
    url = _client(FakeSession()).get_authorize_url(state='xyz')
    assert url.startswith('https://accounts.spotify.com/authorize?')
    assert 'response_type=code' in url
    assert 'state=xyz' in url
    assert 'redirect_uri=http%3A%2F%2Flocalhost%2Fcallback' in url


# ----------------------------------------------------------------------
# Matching
# ----------------------------------------------------------------------

def test_search_track_with_audio_features_picks_confident_match():
    search = FakeResponse(200, {'tracks': {'items': [
        {'id': 'wrong', 'name': 'Karma Police'},
        {'id': 'sp-paranoid', 'name': 'Paranoid Android - Remastered 2017'},
    ]}})
    features = FakeResponse(200, {'id': 'sp-paranoid', 'tempo': 82.0})
    session = FakeSession(search, features)

    result = _client(session).search_track_with_audio_features('Paranoid Android', 'Radiohead', 'user-token')

    assert result['track']['id'] == 'sp-paranoid'
    assert result['audioFeatures']['tempo'] == 82.0
    search_params = session.calls[0][2]['params']
    assert search_params['q'] == 'Paranoid Android artist:Radiohead'
    assert search_params['limit'] == 5


def test_search_track_with_audio_features_none_when_no_confident_match():
    search = FakeResponse(200, {'tracks': {'items': [{'id': 'x', 'name': 'Something Else Entirely'}]}})
    result = _client(FakeSession(search)).search_track_with_audio_features('Airbag', 'Radiohead', 'user-token')
    assert result is None


def test_pick_best_track_respects_threshold():
    candidates = [{'id': '1', 'name': 'Lucky'}, {'id': '2', 'name': 'Let Down'}]
    assert pick_best_track(candidates, 'Let Down')['id'] == '2'
    assert pick_best_track(candidates, 'No Surprises') is None
    assert pick_best_track([], 'Airbag') is None


def test_normalization_and_similarity():
    assert normalize_for_comparison('Airbag (Remastered 2009)') == 'airbag'
    assert normalize_for_comparison('Rock & Roll') == 'rock and roll'
    assert calculate_similarity('Exit Music (For a Film)', 'Exit Music') >= 80
    assert calculate_similarity('', 'Airbag') == 0


def test_build_track_query_strips_discogs_suffix():
    assert build_track_query('Creep', 'Radiohead (2)') == 'Creep artist:Radiohead'
    assert build_track_query('Creep', None) == 'Creep'
