"""Tests for tweet normalization."""

from creatorfeed.models import MediaType, ReferenceType


def make_tweet(**overrides):
    tweet = {
        "id": "1790000000000000001",
        "url": "https://x.com/ada/status/1790000000000000001",
        "text": "Shipping the new vector index today",
        "createdAt": "Wed Jan 03 10:00:00 +0000 2024",
        "author": {"userName": "ada", "name": "Ada", "profilePicture": "https://pbs.example.com/ada.jpg"},
        "likeCount": 120,
        "replyCount": 4,
        "retweetCount": 9,
    }
    tweet.update(overrides)
    return tweet


class TestTwitterNormalizer:
    def test_basic_fields(self, normalizer):
        item = normalizer.normalize("twitter", make_tweet(), "c")
        assert item.title == ""
        assert item.description == item.content_body == "Shipping the new vector index today"
        assert item.platform_content_id == "1790000000000000001"
        assert item.url == "https://x.com/ada/status/1790000000000000001"
        assert item.word_count == 6
        assert item.reference_type == ReferenceType.none
        assert item.referenced_content is None

    def test_engagement_only_includes_present_fields(self, normalizer):
        item = normalizer.normalize("twitter", make_tweet(viewCount=5000), "c")
        assert item.engagement_metrics == {"likes": 120, "comments": 4, "shares": 9, "views": 5000}

    def test_url_falls_back_to_status_link(self, normalizer):
        item = normalizer.normalize("twitter", make_tweet(url=None), "c")
        assert item.url == "https://x.com/i/status/1790000000000000001"

    def test_video_uses_highest_bitrate_mp4(self, normalizer):
        media = {
            "media": [
                {
                    "type": "video",
                    "media_url_https": "https://pbs.example.com/thumb.jpg",
                    "sizes": {"large": {"w": 1280, "h": 720}},
                    "video_info": {
                        "duration_millis": 15500,
                        "variants": [
                            {"content_type": "application/x-mpegURL", "url": "https://video.example.com/pl.m3u8"},
                            {"content_type": "video/mp4", "bitrate": 632000, "url": "https://video.example.com/low.mp4"},
                            {"content_type": "video/mp4", "bitrate": 2176000, "url": "https://video.example.com/high.mp4"},
                        ],
                    },
                },
                {"type": "photo", "media_url_https": "https://pbs.example.com/photo.jpg"},
            ]
        }
        item = normalizer.normalize("twitter", make_tweet(extendedEntities=media), "c")
        video, photo = item.media_urls
        assert video.type == MediaType.video
        assert video.url == "https://video.example.com/high.mp4"
        assert video.thumbnail_url == "https://pbs.example.com/thumb.jpg"
        assert video.duration == 15.5
        assert video.bitrate == 2176000
        assert (video.width, video.height) == (1280, 720)
        assert photo.type == MediaType.image
        assert item.thumbnail_url == "https://pbs.example.com/thumb.jpg"

    def test_summary_card_becomes_link_preview(self, normalizer):
        card = {
            "name": "summary_large_image",
            "url": "https://t.co/abc",
            "binding_values": {
                "title": {"string_value": "Benchmarking ANN indexes"},
                "description": {"string_value": "Recall vs latency"},
                "domain": {"string_value": "blog.example.com"},
                "thumbnail_image_large": {"image_value": {"url": "https://pbs.example.com/card.jpg"}},
            },
        }
        entities = {"urls": [{"url": "https://t.co/abc", "expanded_url": "https://blog.example.com/ann", "display_url": "blog.example.com/ann"}]}
        item = normalizer.normalize("twitter", make_tweet(card=card, entities=entities), "c")
        assert len(item.media_urls) == 1
        preview = item.media_urls[0]
        assert preview.type == MediaType.link_preview
        assert preview.url == "https://pbs.example.com/card.jpg"
        assert preview.link_url == "https://t.co/abc"
        assert preview.link_title == "Benchmarking ANN indexes"
        assert preview.link_domain == "blog.example.com"
        assert preview.card_type == "summary_large_image"

    def test_card_in_key_value_list_form(self, normalizer):
        card = {
            "name": "summary",
            "binding_values": [
                {"key": "card_url", "value": {"string_value": "https://t.co/xyz"}},
                {"key": "title", "value": {"string_value": "A title"}},
            ],
        }
        item = normalizer.normalize("twitter", make_tweet(card=card), "c")
        assert item.media_urls[0].link_url == "https://t.co/xyz"
        assert item.media_urls[0].url == "https://t.co/xyz"

    def test_non_summary_cards_are_ignored(self, normalizer):
        card = {"name": "poll2choice_text_only", "binding_values": {"title": {"string_value": "Poll"}}}
        item = normalizer.normalize("twitter", make_tweet(card=card), "c")
        assert item.media_urls == []

    def test_plain_entity_urls(self, normalizer):
        entities = {
            "urls": [
                {"url": "https://t.co/1", "expanded_url": "https://docs.example.com/guide", "display_url": "docs.example.com/guide"},
                {"url": "https://t.co/2", "expanded_url": "https://x.com/grace/status/1"},
            ]
        }
        item = normalizer.normalize("twitter", make_tweet(entities=entities), "c")
        assert len(item.media_urls) == 1
        link = item.media_urls[0]
        assert link.type == MediaType.link_preview
        assert link.url == link.link_url == "https://docs.example.com/guide"
        assert link.link_display_url == "docs.example.com/guide"
        assert link.link_domain == "docs.example.com"

    def test_quote_keeps_reduced_quoted_tweet(self, normalizer):
        quoted = make_tweet(
            id="1700000000000000000",
            url="https://x.com/grace/status/1700000000000000000",
            text="Original thought",
            author={"userName": "grace", "name": "Grace"},
            likeCount=7,
            replyCount=None,
            retweetCount=None,
        )
        item = normalizer.normalize("twitter", make_tweet(isQuote=True, quote=quoted), "c")
        assert item.reference_type == ReferenceType.quote
        ref = item.referenced_content
        assert ref.platform_content_id == "1700000000000000000"
        assert ref.text == "Original thought"
        assert ref.author.username == "grace"
        assert ref.engagement_metrics == {"likes": 7}

    def test_reply_keeps_only_author_and_id(self, normalizer):
        item = normalizer.normalize(
            "twitter",
            make_tweet(isReply=True, inReplyToId="1600000000000000000", inReplyToUsername="grace"),
            "c",
        )
        assert item.reference_type == ReferenceType.reply
        ref = item.referenced_content
        assert ref.platform_content_id == "1600000000000000000"
        assert ref.author.username == "grace"
        assert ref.text is None
        assert ref.url == "https://x.com/grace/status/1600000000000000000"
