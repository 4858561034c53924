"""Tests for the normalizer entry point."""

import pytest

from creatorfeed.errors import ContentRejectedError, ContentValidationError
from creatorfeed.models import Platform
from creatorfeed.services.normalizer import coerce_platform


class TestContentNormalizer:
    def test_accepts_enum_or_string_platform(self, normalizer):
        raw = {"id": "1", "text": "hello"}
        assert normalizer.normalize(Platform.twitter, raw, "c").platform == Platform.twitter
        assert normalizer.normalize("twitter", raw, "c").platform == Platform.twitter

    def test_unknown_platform(self, normalizer):
        with pytest.raises(ContentValidationError, match="Unsupported platform: myspace"):
            normalizer.normalize("myspace", {}, "c")

    def test_coerce_platform(self):
        assert coerce_platform("rss") is Platform.rss
        with pytest.raises(ContentValidationError):
            coerce_platform("fax")

    def test_malformed_payload(self, normalizer):
        with pytest.raises(ContentValidationError) as excinfo:
            normalizer.normalize("rss", ["not", "an", "object"], "c")
        assert not isinstance(excinfo.value, ContentRejectedError)

    def test_item_without_identity_is_invalid(self, normalizer):
        with pytest.raises(ContentValidationError, match="Invalid twitter item"):
            normalizer.normalize("twitter", {"text": "no id and no url"}, "c")

    def test_rejection_is_a_validation_error(self):
        assert issubclass(ContentRejectedError, ContentValidationError)

    def test_normalize_many_drops_rejected_items(self, normalizer):
        items = [
            {"urn": "1", "text": "first"},
            {"text": "nothing to identify this post"},
            {"urn": "2", "text": "second"},
        ]
        normalized = normalizer.normalize_many("c", "linkedin", items)
        assert [item.platform_content_id for item in normalized] == ["1", "2"]

    def test_normalize_many_propagates_malformed_items(self, normalizer):
        with pytest.raises(ContentValidationError):
            normalizer.normalize_many("c", "linkedin", [{"urn": "1"}, "garbage"])
