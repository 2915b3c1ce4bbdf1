from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from watchdo.services.youtube_urls import canonical_watch_url, extract_video_id
from watchdo.settings import get_settings

logger = logging.getLogger(__name__)

YT_SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"
YT_CHANNELS_URL = "https://www.googleapis.com/youtube/v3/channels"
YT_VIDEOS_URL = "https://www.googleapis.com/youtube/v3/videos"


@dataclass(frozen=True)
class VideoMetadata:
    title: str | None
    channel_name: str | None
    channel_id: str | None
    channel_thumbnail_url: str | None


class MetadataLookup(ABC):
    """Resolves title/channel information for a video URL.

    Advisory: implementations return None instead of raising.
    """

    @abstractmethod
    async def fetch(self, video_url: str) -> VideoMetadata | None:
        ...


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=get_settings().external_timeout_sec)


async def _get_json(client: httpx.AsyncClient, url: str, params: dict) -> dict[str, Any]:
    try:
        resp = await client.get(url, params=params)
    except (httpx.TransportError, httpx.TimeoutException):
        # single retry
        resp = await client.get(url, params=params)
    if resp.status_code >= 400:
        raise RuntimeError(f"YouTube API error: {resp.status_code}")
    return resp.json()


def _pick_thumbnail(snippet: dict) -> str | None:
    thumbs = snippet.get("thumbnails") or {}
    return (thumbs.get("default") or {}).get("url") or (thumbs.get("medium") or {}).get("url")


class YouTubeMetadataLookup(MetadataLookup):
    """YouTube Data API v3 lookup: videos.list then channels.list for the avatar."""

    def __init__(self, api_key: str | None = None):
        self.api_key = api_key if api_key is not None else get_settings().youtube_api_key

    async def fetch(self, video_url: str) -> VideoMetadata | None:
        video_id = extract_video_id(video_url)
        if not video_id:
            return None
        if not self.api_key:
            logger.debug("[youtube] YOUTUBE_API_KEY missing, skipping metadata lookup")
            return None
        try:
            async with _client() as client:
                data = await _get_json(client, YT_VIDEOS_URL, {"part": "snippet", "id": video_id, "key": self.api_key})
                items = data.get("items", [])
                if not items:
                    logger.info(f"[youtube] video {video_id} not found")
                    return None
                snippet = items[0].get("snippet", {}) or {}
                channel_id = snippet.get("channelId")
                channel_thumbnail_url = await self._fetch_channel_thumbnail(client, channel_id)
        except (httpx.HTTPError, RuntimeError, ValueError) as exc:
            logger.warning(f"[youtube] metadata lookup failed for {video_id}: {exc}")
            return None
        return VideoMetadata(
            title=snippet.get("title"),
            channel_name=snippet.get("channelTitle"),
            channel_id=channel_id,
            channel_thumbnail_url=channel_thumbnail_url,
        )

    async def _fetch_channel_thumbnail(self, client: httpx.AsyncClient, channel_id: str | None) -> str | None:
        if not channel_id:
            return None
        try:
            data = await _get_json(client, YT_CHANNELS_URL, {"part": "snippet", "id": channel_id, "key": self.api_key})
        except (httpx.HTTPError, RuntimeError, ValueError) as exc:
            # avatar is optional, keep the rest of the metadata
            logger.warning(f"[youtube] channel thumbnail lookup failed for {channel_id}: {exc}")
            return None
        items = data.get("items", [])
        if not items:
            return None
        return _pick_thumbnail(items[0].get("snippet", {}) or {})


async def search_videos(query: str, max_results: int = 8) -> list[dict[str, Any]]:
    """Search videos by keyword. Returns [] on any failure."""
    query = (query or "").strip()
    settings = get_settings()
    if not query or not settings.youtube_api_key:
        return []
    params = {
        "part": "snippet",
        "type": "video",
        "maxResults": max_results,
        "order": "relevance",
        "q": query,
        "key": settings.youtube_api_key,
    }
    try:
        async with _client() as client:
            data = await _get_json(client, YT_SEARCH_URL, params)
    except (httpx.HTTPError, RuntimeError, ValueError) as exc:
        logger.warning(f"[youtube] search failed for {query!r}: {exc}")
        return []
    results = []
    for item in data.get("items", []):
        video_id = (item.get("id") or {}).get("videoId")
        if not video_id:
            continue
        snippet = item.get("snippet", {}) or {}
        thumbs = snippet.get("thumbnails") or {}
        results.append(
            {
                "video_id": video_id,
                "title": snippet.get("title"),
                "channel_name": snippet.get("channelTitle"),
                "thumbnail_url": (thumbs.get("medium") or {}).get("url") or (thumbs.get("default") or {}).get("url"),
                "youtube_url": canonical_watch_url(video_id),
            }
        )
    return results


_lookup: MetadataLookup | None = None


def get_metadata_lookup() -> MetadataLookup:
    global _lookup
    if _lookup is None:
        _lookup = YouTubeMetadataLookup()
    return _lookup


def set_metadata_lookup(lookup: MetadataLookup | None) -> None:
    global _lookup
    _lookup = lookup
