"""
YouTube Data API v3 client used for search and for auto-fill candidates.

Keys from ``YOUTUBE_API_KEYS`` are tried in order, then ``YOUTUBE_API_KEYS2``. A key
that answers with a non-200 status or a network error is skipped; when every key has
failed the call raises TransientIOError.
"""
from __future__ import annotations

import logging
import random
from typing import Optional

import requests
from flask import current_app

from ..errors import TransientIOError, ValidationError
from ..lib.utils import format_duration, parse_iso8601_duration

SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"
VIDEOS_URL = "https://www.googleapis.com/youtube/v3/videos"
REQUEST_TIMEOUT = 8


def _api_keys() -> list[str]:
    return list(current_app.config.get("YOUTUBE_API_KEYS") or []) + list(
        current_app.config.get("YOUTUBE_API_KEYS2") or []
    )


def _best_thumbnail(snippet: dict) -> str:
    thumbs = snippet.get("thumbnails", {}) or {}
    # Prefer the medium size the room list renders, then whatever is available
    best = (
        thumbs.get("medium")
        or thumbs.get("high")
        or thumbs.get("standard")
        or thumbs.get("default")
        or {}
    )
    return best.get("url") or ""


def _search_with_key(api_key: str, query: str, max_results: int) -> list[dict]:
    response = requests.get(
        SEARCH_URL,
        params={
            "part": "snippet",
            "type": "video",
            "q": query,
            "maxResults": max_results,
            "key": api_key,
        },
        timeout=REQUEST_TIMEOUT,
    )
    if response.status_code != 200:
        raise TransientIOError(f"search: status {response.status_code}")
    items = response.json().get("items") or []

    video_ids = [(item.get("id") or {}).get("videoId") for item in items]
    video_ids = [vid for vid in video_ids if vid]
    if not video_ids:
        return []

    details_response = requests.get(
        VIDEOS_URL,
        params={
            "part": "contentDetails,snippet",
            "id": ",".join(video_ids),
            "key": api_key,
        },
        timeout=REQUEST_TIMEOUT,
    )
    if details_response.status_code != 200:
        raise TransientIOError(f"videos: status {details_response.status_code}")
    # The details endpoint does not promise to preserve order, so match by id
    details = {d.get("id"): d for d in details_response.json().get("items") or []}

    videos = []
    for item in items:
        video_id = (item.get("id") or {}).get("videoId")
        if not video_id:
            continue
        snippet = item.get("snippet", {}) or {}
        detail = details.get(video_id) or {}
        duration_seconds = parse_iso8601_duration(
            (detail.get("contentDetails") or {}).get("duration") or ""
        )
        live = (detail.get("snippet") or snippet).get("liveBroadcastContent") or "none"
        videos.append(
            {
                "source_id": video_id,
                "title": snippet.get("title") or "",
                "thumbnail_url": _best_thumbnail(snippet),
                "duration_seconds": duration_seconds,
                "duration": format_duration(duration_seconds),
                "channel_title": snippet.get("channelTitle") or "",
                "live": live != "none",
            }
        )
    return videos


def search(query: str, max_results: int = 10) -> list[dict]:
    """Search videos, trying each configured API key until one answers."""
    query = (query or "").strip()
    if not query:
        raise ValidationError("search: query required")
    keys = _api_keys()
    if not keys:
        raise TransientIOError("search: YouTube API keys not configured")

    last_error: Optional[Exception] = None
    for index, api_key in enumerate(keys):
        try:
            return _search_with_key(api_key, query, max_results)
        except (requests.RequestException, ValueError, TransientIOError) as e:
            logging.warning("youtube.search: key #%s failed: %s", index + 1, e)
            last_error = e
    raise TransientIOError(f"search: all YouTube API keys failed ({last_error})")


def is_acceptable(video: dict, max_duration_seconds: Optional[int] = None) -> bool:
    """Live, upcoming, zero-length and over-long videos are never auto-filled."""
    if video.get("live"):
        return False
    duration = video.get("duration_seconds")
    if not duration:
        return False
    if max_duration_seconds and duration > max_duration_seconds:
        return False
    return True


def random_candidate(keyword: Optional[str] = None) -> Optional[dict]:
    """One random acceptable video for a random (or given) auto-fill keyword."""
    keywords = current_app.config.get("AUTOFILL_KEYWORDS") or ["music"]
    keyword = keyword or random.choice(keywords)
    max_duration = current_app.config.get("AUTOFILL_MAX_DURATION_SECONDS")
    videos = [v for v in search(keyword, max_results=25) if is_acceptable(v, max_duration)]
    if not videos:
        return None
    return random.choice(videos)
