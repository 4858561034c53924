"""Tests for YouTube video and website article normalization."""

from datetime import datetime, timezone

from creatorfeed.models import MediaType, Platform


class TestYouTubeNormalizer:
    def test_search_result_shape(self, normalizer):
        item = normalizer.normalize(
            "youtube",
            {
                "id": {"kind": "youtube#video", "videoId": "dQw4w9WgXcQ"},
                "snippet": {
                    "title": "Building a recommender",
                    "description": "We build a recommender from scratch",
                    "publishedAt": "2024-02-01T15:30:00Z",
                    "thumbnails": {
                        "default": {"url": "https://i.ytimg.com/vi/x/default.jpg", "width": 120, "height": 90},
                        "high": {"url": "https://i.ytimg.com/vi/x/hqdefault.jpg", "width": 480, "height": 360},
                    },
                },
                "statistics": {"viewCount": "1500", "likeCount": "80"},
            },
            "c",
        )
        assert item.platform == Platform.youtube
        assert item.platform_content_id == "dQw4w9WgXcQ"
        assert item.url == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
        assert item.thumbnail_url == "https://i.ytimg.com/vi/x/hqdefault.jpg"
        assert item.media_urls[0].type == MediaType.image
        assert item.media_urls[0].width == 480
        assert item.word_count == 6
        assert item.reading_time_minutes == 0
        assert item.engagement_metrics == {"views": 1500, "likes": 80}
        assert item.published_at == datetime(2024, 2, 1, 15, 30, tzinfo=timezone.utc)

    def test_defaults(self, normalizer):
        item = normalizer.normalize("youtube", {"id": "abc123"}, "c")
        assert item.title == "Untitled Video"
        assert item.description == ""
        assert item.thumbnail_url is None
        assert item.media_urls == []
        assert item.engagement_metrics == {}


class TestWebsiteNormalizer:
    def test_article(self, normalizer):
        item = normalizer.normalize(
            "website",
            {
                "url": "https://www.example.com/essays/indexes",
                "title": "  On indexes  ",
                "excerpt": "Why indexes matter",
                "image": "https://www.example.com/cover.png",
                "publishDate": "2024-03-10",
                "content": "<article><p>" + " ".join(["word"] * 450) + "</p></article>",
                "images": ["https://www.example.com/1.png", {"url": "https://www.example.com/2.png"}, {"alt": "none"}],
            },
            "c",
        )
        assert item.platform_content_id == item.url == "https://www.example.com/essays/indexes"
        assert item.title == "On indexes"
        assert item.description == "Why indexes matter"
        assert item.thumbnail_url == "https://www.example.com/cover.png"
        assert item.word_count == 450
        assert item.reading_time_minutes == 3
        assert [m.url for m in item.media_urls] == ["https://www.example.com/1.png", "https://www.example.com/2.png"]
        assert item.published_at == datetime(2024, 3, 10, tzinfo=timezone.utc)

    def test_falls_back_to_source_url(self, normalizer):
        item = normalizer.normalize("website", {"title": "Landing"}, "c", "https://example.com/")
        assert item.url == "https://example.com/"
        assert item.platform_content_id == "https://example.com/"
