"""
Pure helpers for YouTube URLs.

Two URL shapes are accepted when resolving a video:
  https://www.youtube.com/watch?v=VIDEO_ID[&...]
  https://youtu.be/VIDEO_ID[?...]
"""
from __future__ import annotations

import re
from urllib.parse import parse_qs, quote, urlsplit

VIDEO_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")
WATCH_HOSTS = {"youtube.com", "www.youtube.com"}
SHORT_HOSTS = {"youtu.be"}
THUMBNAIL_SIZES = {"default", "mqdefault", "hqdefault", "sddefault", "maxresdefault"}


def is_youtube_url(raw_url: str | None) -> bool:
    return extract_video_id(raw_url) is not None


def extract_video_id(raw_url: str | None) -> str | None:
    """Return the 11-character video ID, or None if the URL is not usable.

    Only youtube.com/watch and youtu.be hosts qualify; a URL that merely
    mentions them in its path or query is rejected. Never raises: a
    malformed URL is reported as None so callers can ask the user for a
    valid link.
    """
    if not raw_url or not isinstance(raw_url, str):
        return None
    url = raw_url.strip()
    if "://" not in url:
        url = f"https://{url}"
    try:
        parts = urlsplit(url)
        host = (parts.hostname or "").lower()
        if parts.scheme not in ("http", "https"):
            return None
        if host in WATCH_HOSTS and parts.path == "/watch":
            candidates = parse_qs(parts.query).get("v") or []
            video_id = candidates[0] if candidates else None
        elif host in SHORT_HOSTS:
            video_id = parts.path.lstrip("/").split("/", 1)[0]
        else:
            return None
    except ValueError:
        return None
    if not video_id or not VIDEO_ID_RE.match(video_id):
        return None
    return video_id


def canonical_watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def thumbnail_url(video_id: str | None, size: str = "mqdefault") -> str | None:
    if not video_id:
        return None
    if size not in THUMBNAIL_SIZES:
        size = "mqdefault"
    return f"https://img.youtube.com/vi/{video_id}/{size}.jpg"


def default_thumbnail_url(video_id: str) -> str:
    """Deterministic frame thumbnail used when no stored image is available."""
    return f"https://i.ytimg.com/vi/{video_id}/mqdefault.jpg"


def embed_url(video_id: str | None) -> str | None:
    if not video_id:
        return None
    return f"https://www.youtube.com/embed/{video_id}"


def build_channel_url(channel_id: str | None, channel_name: str | None) -> str:
    if channel_id:
        return f"https://www.youtube.com/channel/{channel_id}"
    return f"https://www.youtube.com/results?search_query={quote(channel_name or '', safe='')}"
