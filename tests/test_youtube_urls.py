import pytest

from watchdo.services.youtube_urls import (
    build_channel_url,
    default_thumbnail_url,
    embed_url,
    extract_video_id,
    is_youtube_url,
    thumbnail_url,
)


class TestExtractVideoId:
    @pytest.mark.parametrize(
        "url",
        [
            "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            "https://youtube.com/watch?feature=share&v=dQw4w9WgXcQ&t=42",
            "http://www.youtube.com/watch?v=dQw4w9WgXcQ#comments",
            "https://youtu.be/dQw4w9WgXcQ",
            "https://youtu.be/dQw4w9WgXcQ?si=abc123",
            "  youtu.be/dQw4w9WgXcQ  ",
        ],
    )
    def test_accepted_shapes(self, url):
        assert extract_video_id(url) == "dQw4w9WgXcQ"

    @pytest.mark.parametrize(
        "url",
        [
            None,
            "",
            "not a url at all",
            "https://vimeo.com/123456",
            "https://www.youtube.com/watch?list=PL123",
            "https://www.youtube.com/watch?v=short",
            "https://youtu.be/",
            "https://www.youtube.com/watch?v=%%%",
            "http://[::1/youtube.com/watch?v=dQw4w9WgXcQ",
            "https://evil.example/redirect?to=youtube.com/watch&v=dQw4w9WgXcQ",
            "https://example.com/youtu.be/dQw4w9WgXcQ",
            "https://notyoutu.be/dQw4w9WgXcQ",
            "https://www.youtube.com/embed/watch?v=dQw4w9WgXcQ",
            "ftp://youtu.be/dQw4w9WgXcQ",
        ],
    )
    def test_unusable_urls_return_none(self, url):
        assert extract_video_id(url) is None


def test_is_youtube_url():
    assert is_youtube_url("https://www.youtube.com/watch?v=dQw4w9WgXcQ")
    assert is_youtube_url("youtu.be/dQw4w9WgXcQ")
    assert not is_youtube_url("https://example.com/watch?v=dQw4w9WgXcQ")
    assert not is_youtube_url("https://example.com/youtu.be/dQw4w9WgXcQ")
    assert not is_youtube_url(None)


def test_thumbnail_helpers():
    assert thumbnail_url("dQw4w9WgXcQ") == "https://img.youtube.com/vi/dQw4w9WgXcQ/mqdefault.jpg"
    assert thumbnail_url("dQw4w9WgXcQ", size="bogus").endswith("/mqdefault.jpg")
    assert thumbnail_url(None) is None
    assert default_thumbnail_url("dQw4w9WgXcQ") == "https://i.ytimg.com/vi/dQw4w9WgXcQ/mqdefault.jpg"
    assert embed_url("dQw4w9WgXcQ") == "https://www.youtube.com/embed/dQw4w9WgXcQ"


def test_build_channel_url_falls_back_to_search():
    assert build_channel_url("UC123", "Any") == "https://www.youtube.com/channel/UC123"
    assert build_channel_url(None, "Morning Channel") == "https://www.youtube.com/results?search_query=Morning%20Channel"
