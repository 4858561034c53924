"""Tests for Threads post normalization."""

from datetime import datetime, timezone

from creatorfeed.models import MediaType, ReferenceType


def make_post(**overrides):
    post = {
        "id": "3300000000000000000_42",
        "code": "C1abcDEF",
        "user": {"pk": 42, "username": "ada", "full_name": "Ada"},
        "caption": {"text": "Benchmarks are in and recall held up"},
        "taken_at": 1704110400,
        "like_count": 18,
        "reply_count": "3",
    }
    post.update(overrides)
    return post


class TestThreadsNormalizer:
    def test_basic_fields(self, normalizer):
        item = normalizer.normalize("threads", make_post(), "c")
        assert item.platform_content_id == "3300000000000000000_42"
        assert item.url == "https://www.threads.net/@ada/post/C1abcDEF"
        assert item.title == ""
        assert item.content_body == "Benchmarks are in and recall held up"
        assert item.published_at == datetime(2024, 1, 1, 12, tzinfo=timezone.utc)
        assert item.engagement_metrics == {"likes": 18, "comments": 3}

    def test_video_takes_precedence_over_image(self, normalizer):
        item = normalizer.normalize(
            "threads",
            make_post(
                video_versions=[{"url": "https://cdn.threads.example/v.mp4", "width": 720, "height": 1280}],
                image_versions2={"candidates": [{"url": "https://cdn.threads.example/poster.jpg"}]},
            ),
            "c",
        )
        assert len(item.media_urls) == 1
        video = item.media_urls[0]
        assert video.type == MediaType.video
        assert video.thumbnail_url == "https://cdn.threads.example/poster.jpg"
        assert item.thumbnail_url == "https://cdn.threads.example/poster.jpg"

    def test_carousel_items_are_mapped_and_deduplicated(self, normalizer):
        first = {"image_versions2": {"candidates": [{"url": "https://cdn.threads.example/1.jpg"}]}}
        second = {"image_versions2": {"candidates": [{"url": "https://cdn.threads.example/2.jpg"}]}}
        item = normalizer.normalize("threads", make_post(carousel_media=[first, second, first]), "c")
        assert [m.url for m in item.media_urls] == [
            "https://cdn.threads.example/1.jpg",
            "https://cdn.threads.example/2.jpg",
        ]
        assert item.thumbnail_url == "https://cdn.threads.example/1.jpg"

    def test_quoted_post(self, normalizer):
        quoted = make_post(id="3200000000000000000_7", code="C0xyz", user={"pk": 7, "username": "grace"}, caption="Quoted text")
        item = normalizer.normalize(
            "threads", make_post(text_post_app_info={"share_info": {"quoted_post": quoted}}), "c"
        )
        assert item.reference_type == ReferenceType.quote
        ref = item.referenced_content
        assert ref.platform_content_id == "3200000000000000000_7"
        assert ref.text == "Quoted text"
        assert ref.author.username == "grace"
        assert ref.url == "https://www.threads.net/@grace/post/C0xyz"

    def test_repost_wins_over_reply(self, normalizer):
        reposted = make_post(id="1", caption="Reposted")
        info = {"share_info": {"reposted_post": reposted}, "reply_to_author": {"username": "grace"}}
        item = normalizer.normalize("threads", make_post(text_post_app_info=info), "c")
        assert item.reference_type == ReferenceType.retweet

    def test_reply_keeps_only_author(self, normalizer):
        info = {"reply_to_author": {"pk": 7, "username": "grace"}}
        item = normalizer.normalize("threads", make_post(text_post_app_info=info), "c")
        assert item.reference_type == ReferenceType.reply
        assert item.referenced_content.author.username == "grace"
        assert item.referenced_content.author.id == "7"
        assert item.referenced_content.text is None
