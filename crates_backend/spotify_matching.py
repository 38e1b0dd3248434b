"""
Spotify Track Matching Utilities

Text normalization and fuzzy matching used to decide whether a Spotify
search result is the same song as a Discogs tracklist entry.
"""

import logging
import re
from typing import Optional

from rapidfuzz import fuzz

logger = logging.getLogger(__name__)

# Minimum title similarity (0-100) for a search result to count as a match
DEFAULT_MIN_TITLE_SIMILARITY = 60


def normalize_for_comparison(text: str) -> str:
    """
    Normalize text for fuzzy comparison
    Removes common variations that shouldn't affect matching
    """
    if not text:
        return ""

    text = text.lower()

    # Apostrophes become spaces so "don'cha" matches "Don Cha"
    for quote in ("'", "’", "‘", "`"):
        text = text.replace(quote, " ")
    for quote in ('"', "“", "”"):
        text = text.replace(quote, "")

    # Remastered / live annotations added by streaming services
    text = re.sub(r'\s*-\s*remaster(ed)?(\s+\d{4})?.*$', '', text)
    text = re.sub(r'\s*-\s*\d{4}\s+remaster(ed)?.*$', '', text)
    text = re.sub(r'\s*\(\s*(\d{4}\s+)?remaster(ed)?(\s+\d{4})?[^)]*\)', '', text)
    text = re.sub(r'\s*-\s*live(\s+(at|in|from)\s+.*)?$', '', text)
    text = re.sub(r'\s*\(live(\s+(at|in|from)\s+[^)]*)?\)', '', text)

    # Featured artists
    text = re.sub(r'\s*\((feat\.?|featuring|ft\.?|with)\s+[^)]+\)', '', text)
    text = re.sub(r'\s*-\s*(feat\.?|featuring|ft\.?)\s+.*$', '', text)

    # Discogs appends "(2)" style disambiguators to artist names
    text = re.sub(r'\s*\(\d+\)\s*$', '', text)

    text = text.replace(' & ', ' and ')

    for dash in ('–', '—', '‐', '−'):
        text = text.replace(dash, '-')

    text = re.sub(r'\s*/\s*', ' ', text)
    text = ' '.join(text.split())

    return text


def calculate_similarity(text1: str, text2: str) -> float:
    """
    Calculate similarity between two strings using fuzzy matching.

    Handles parenthetical additions such as
    "Paranoid Android" vs "Paranoid Android (Remastered)".

    Returns a score from 0-100
    """
    if not text1 or not text2:
        return 0

    norm1 = normalize_for_comparison(text1)
    norm2 = normalize_for_comparison(text2)

    score = fuzz.token_sort_ratio(norm1, norm2)

    if score < 80:
        stripped1 = re.sub(r'\s*\([^)]*\)\s*', ' ', norm1).strip()
        stripped2 = re.sub(r'\s*\([^)]*\)\s*', ' ', norm2).strip()

        if stripped1 != norm1 or stripped2 != norm2:
            stripped_score = fuzz.token_sort_ratio(stripped1, stripped2)
            if stripped_score > score:
                logger.debug(f"Parenthetical fallback: {score}% -> {stripped_score}%")
                score = stripped_score

    return score


def build_track_query(title: str, artist: str) -> str:
    """Spotify search query for a track title by an album artist"""
    artist = normalize_artist_for_search(artist)
    if artist:
        return f"{title} artist:{artist}"
    return title


def normalize_artist_for_search(artist: Optional[str]) -> Optional[str]:
    """Drop Discogs "(2)" style disambiguation suffixes and trailing "*" anv markers"""
    if not artist:
        return artist
    artist = re.sub(r'\s*\(\d+\)\s*$', '', artist)
    return artist.rstrip('*').strip()


def pick_best_track(candidates: list, expected_title: str,
                    min_similarity: int = DEFAULT_MIN_TITLE_SIMILARITY) -> Optional[dict]:
    """
    Choose the search result whose title best matches expected_title

    Ties keep Spotify's own ranking.

    Returns:
        The best candidate at or above min_similarity, or None
    """
    best = None
    best_score = -1

    for candidate in candidates or []:
        score = calculate_similarity(expected_title, candidate.get('name', ''))
        if score > best_score:
            best, best_score = candidate, score

    if best is None or best_score < min_similarity:
        logger.debug(f"No confident match for '{expected_title}' (best score {best_score})")
        return None

    return best
