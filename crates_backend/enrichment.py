"""
Album enrichment with Spotify audio features

For every track of an album, search Spotify by track title and album artist,
fetch the audio features of the best match and merge them onto the track.

- Tracks are processed one at a time with a fixed pause between requests.
- A track whose search or feature lookup fails is returned unchanged; the
  batch always continues.
- The album is returned only once every track has been processed, with
  tracks in their original order.
- Processing can be cancelled between tracks with a threading.Event.
"""

import copy
import logging
import threading
import time
from dataclasses import dataclass, field

from crates_backend.errors import EnrichmentCancelled

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 0.1

AUDIO_FEATURE_FIELDS = [
    'tempo', 'key', 'energy', 'danceability',
    'acousticness', 'instrumentalness', 'valence',
]


@dataclass
class EnrichmentResult:
    album: dict
    matched: int = 0
    unmatched: int = 0
    failed: int = 0
    failures: list = field(default_factory=list)

    @property
    def stats(self) -> dict:
        return {
            'total': self.matched + self.unmatched + self.failed,
            'matched': self.matched,
            'unmatched': self.unmatched,
            'failed': self.failed,
        }


def merge_audio_features(track: dict, spotify_track: dict, features: dict) -> dict:
    """Return a copy of track carrying the Spotify id and audio features"""
    enriched = copy.deepcopy(track)
    enriched['spotifyId'] = spotify_track['id']

    for name in AUDIO_FEATURE_FIELDS:
        if features.get(name) is not None:
            enriched[name] = features[name]

    if features.get('tempo') is not None:
        enriched['bpm'] = features['tempo']

    if features.get('mode') is not None:
        enriched['mode'] = 'major' if features['mode'] == 1 else 'minor'

    return enriched


def _track_label(index: int, track) -> str:
    if isinstance(track, dict):
        return f"{track.get('position') or index + 1} '{track.get('title')}'"
    return f"#{index + 1}"


def enrich_track(track: dict, artist: str, spotify, user_access_token: str):
    """
    Look up one track

    Returns:
        (enriched_track, matched) - the input track itself when nothing matched

    Raises:
        ValueError: track is not an object
        Whatever the Spotify client raises; enrich_album handles it
    """
    if not isinstance(track, dict):
        raise ValueError(f"Malformed track: {track!r}")

    title = track.get('title')
    if not title:
        return track, False

    match = spotify.find_track(title, artist, access_token=user_access_token)
    if not match:
        return track, False

    features = spotify.get_audio_features(match['id'], access_token=user_access_token)
    if not features:
        return track, False

    return merge_audio_features(track, match, features), True


def enrich_album(album: dict, user_access_token: str, spotify,
                 delay: float = DEFAULT_DELAY, cancel_event: threading.Event = None) -> EnrichmentResult:
    """
    Enrich every track of album with Spotify audio features

    Args:
        album: album dict with 'artist' and 'tracks'
        user_access_token: the user's Spotify OAuth access token
        spotify: SpotifyClient
        delay: seconds to pause between tracks
        cancel_event: when set, processing stops before the next track

    Returns:
        EnrichmentResult whose album is a new dict; the input is not modified

    Raises:
        EnrichmentCancelled: cancel_event was set before all tracks were processed
    """
    tracks = album.get('tracks') or []
    artist = album.get('artist')
    result = EnrichmentResult(album=None)
    enriched_tracks = []

    logger.info(f"Enriching '{album.get('title')}' by {artist}: {len(tracks)} tracks")

    for index, track in enumerate(tracks):
        if cancel_event is not None and cancel_event.is_set():
            raise EnrichmentCancelled(f"Enrichment cancelled after {index} of {len(tracks)} tracks")

        try:
            enriched, matched = enrich_track(track, artist, spotify, user_access_token)
        except Exception as e:
            logger.warning(f"Failed to enrich track {_track_label(index, track)}: {e}")
            enriched, matched = track, False
            result.failed += 1
            result.failures.append(index)
        else:
            if matched:
                result.matched += 1
            else:
                result.unmatched += 1

        enriched_tracks.append(enriched)

        if delay and index < len(tracks) - 1:
            if cancel_event is not None:
                cancel_event.wait(delay)
            else:
                time.sleep(delay)

    result.album = dict(album, tracks=enriched_tracks)

    logger.info(f"Enrichment finished for '{album.get('title')}': {result.stats}")
    return result


class EnrichmentRegistry:
    """
    Tracks in-flight enrichments so they can be cancelled by key

    One registry per process; keys are (user_id, album_id).
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._events = {}

    def start(self, key) -> threading.Event:
        event = threading.Event()
        with self._lock:
            previous = self._events.get(key)
            if previous is not None:
                previous.set()
            self._events[key] = event
        return event

    def cancel(self, key) -> bool:
        with self._lock:
            event = self._events.get(key)
        if event is None:
            return False
        event.set()
        return True

    def finish(self, key, event: threading.Event) -> None:
        with self._lock:
            if self._events.get(key) is event:
                del self._events[key]
