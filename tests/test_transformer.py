"""Tests for content transformation between the CMS and platforms."""
from datetime import datetime, timezone

import pytest

from cms_bridge.services.platforms import (
    drupal_mapping,
    get_platform_profile,
    shopify_mapping,
    wordpress_mapping,
)
from cms_bridge.services.transformer import (
    ContentTransformer,
    WordPressTransformer,
    generate_excerpt,
    get_nested_value,
    parse_date,
    sanitize_html,
    set_nested_value,
    to_iso_string,
)
from cms_bridge.utils.exceptions import ValidationError


@pytest.fixture
def wp():
    return WordPressTransformer(wordpress_mapping())


class TestNestedPaths:
    def test_get_nested_value(self):
        doc = {"author": {"profile": {"name": "Ann"}}, "tags": ["a"]}
        assert get_nested_value(doc, "author.profile.name") == "Ann"
        assert get_nested_value(doc, "author.missing.name") is None
        assert get_nested_value(doc, "tags.0") is None
        assert get_nested_value(None, "author") is None

    def test_set_nested_value_creates_parents(self):
        doc = {"meta": "not-a-dict"}
        set_nested_value(doc, "meta.seo.title", "T")
        set_nested_value(doc, "a.b", 1)
        assert doc == {"meta": {"seo": {"title": "T"}}, "a": {"b": 1}}


class TestHelpers:
    def test_parse_date_inputs(self):
        expected = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
        assert parse_date("2024-01-15T10:30:00Z") == expected
        assert parse_date("2024-01-15 10:30:00") == expected
        assert parse_date(1705314600) == expected
        assert parse_date("not a date") is None
        assert parse_date(None) is None

    def test_to_iso_string(self):
        moment = datetime(2024, 1, 15, 10, 30, 0, 123456, tzinfo=timezone.utc)
        assert to_iso_string(moment) == "2024-01-15T10:30:00.123Z"

    def test_sanitize_html(self):
        html = '<p onclick="steal()">Hi</p><script>alert(1)</script><iframe src="x"></iframe>'
        assert sanitize_html(html) == "<p>Hi</p>"

    def test_generate_excerpt(self):
        content = "<p>" + "word " * 50 + "</p>"
        excerpt = generate_excerpt(content, 20)
        assert excerpt == "word word word word..."
        assert generate_excerpt("<b>short</b>") == "short"


class TestWordPressTransform:
    def test_forward(self, wp, sample_content):
        post = wp.forward(sample_content)

        assert post["title"] == "Hello World"
        assert post["status"] == "publish"
        assert post["author"] == 7
        assert post["date"] == "2024-01-15T10:30:00Z"
        assert post["meta"]["_headless_cms_id"] == "post-001"
        assert post["meta"]["author_name"] == "Ann Author"
        assert post["meta"]["_yoast_wpseo_title"] == "Hello SEO"
        assert post["excerpt"] == "First post on the new site."

    def test_forward_sanitizes_content(self, wp):
        post = wp.forward({"title": "T", "content": "<p>ok</p><script>x()</script>"})
        assert post["content"] == "<p>ok</p>"

    def test_round_trip(self, wp, sample_content):
        """Test that every mapped field survives CMS -> WordPress -> CMS unchanged."""
        back = wp.backward(wp.forward(sample_content))

        for source_path, _ in wp.mapping.forward_fields:
            value = get_nested_value(sample_content, source_path)
            if value is not None:
                assert get_nested_value(back, source_path) == value, source_path
        assert back["status"] == sample_content["status"]
        assert back["created_at"] == "2024-01-15T10:30:00Z"

    def test_dates_are_normalized_to_utc(self, wp):
        post = wp.forward({"title": "T", "created_at": "2024-01-15 12:30:00+02:00", "updated_at": 1705314600})
        assert post["date"] == "2024-01-15T10:30:00.000Z"
        assert post["modified"] == "2024-01-15T10:30:00.000Z"

        content = wp.backward({"title": "T", "date": "2024-01-15T10:30:00"})
        assert content["created_at"] == "2024-01-15T10:30:00.000Z"

    def test_backward_rendered_fields(self, wp):
        post = {
            "id": 12,
            "title": {"rendered": "Rendered title"},
            "content": {"rendered": "<p>Body</p>"},
            "status": "publish",
            "meta": {"_headless_cms_id": "post-9", "color": "blue"},
        }
        content = wp.backward(post)

        assert content["id"] == "post-9"
        assert content["wordpress_id"] == 12
        assert content["title"] == "Rendered title"
        assert content["content"] == "<p>Body</p>"
        assert content["status"] == "published"
        assert content["metadata"] == {"color": "blue"}

    def test_backward_without_cms_id(self, wp):
        content = wp.backward({"id": 12, "title": "Plain"})
        assert content["id"] == "wp_12"

    def test_forward_taxonomies(self, wp):
        post = wp.forward({
            "title": "T",
            "taxonomies": {"categories": [{"id": 3, "name": "News"}, {"id": 4}], "tags": [9]},
        })
        assert post["categories"] == [3, 4]
        assert post["tags"] == [9]

        # WordPress keeps term ids only
        assert wp.backward(post)["taxonomies"] == {"categories": [3, 4], "tags": [9]}


class TestStatusMapping:
    def test_unknown_status_falls_back_to_draft(self, wp):
        assert wp.forward({"title": "T", "status": "mystery"})["status"] == "draft"
        assert wp.backward({"title": "T", "status": "weird"})["status"] == "draft"

    def test_missing_status_uses_default(self, wp):
        assert wp.forward({"title": "T"})["status"] == "draft"

    def test_drupal_boolean_status(self):
        drupal = ContentTransformer(drupal_mapping())
        assert drupal.forward({"title": "T", "status": "published"})["status"] is True
        assert drupal.forward({"title": "T", "status": "archived"})["status"] is False
        assert drupal.backward({"title": "T", "status": True})["status"] == "published"

    def test_shopify_status(self):
        shopify = ContentTransformer(shopify_mapping())
        assert shopify.forward({"title": "T", "status": "published"})["status"] == "ACTIVE"
        assert shopify.forward({"title": "T", "status": "unknown"})["status"] == "DRAFT"
        assert shopify.backward({"title": "T", "status": "ARCHIVED"})["status"] == "archived"


class TestValidation:
    def test_reports_every_missing_field(self):
        mapping = wordpress_mapping()
        mapping.forward_required = ["title", "slug"]
        transformer = WordPressTransformer(mapping)

        with pytest.raises(ValidationError) as exc_info:
            transformer.forward({"id": "post-1", "title": "   "})

        assert exc_info.value.missing_fields == ["title", "slug"]
        assert exc_info.value.status_code == 422

    def test_unknown_direction(self, wp):
        with pytest.raises(ValueError):
            wp.transform({"title": "T"}, "cms_to_nowhere")

    def test_invalid_date_format(self):
        with pytest.raises(ValueError):
            ContentTransformer(wordpress_mapping(), date_format="rfc2822")


class TestCustomization:
    def test_date_format_unix(self):
        transformer = ContentTransformer(wordpress_mapping(), date_format="unix")
        content = transformer.backward({"title": "T", "date": "2024-01-15T10:30:00Z"})
        assert content["created_at"] == 1705314600

    def test_date_format_mysql(self):
        transformer = ContentTransformer(wordpress_mapping(), date_format="mysql")
        content = transformer.backward({"title": "T", "date": "2024-01-15T10:30:00Z"})
        assert content["created_at"] == "2024-01-15 10:30:00"

    def test_add_field_mapping(self, wp):
        wp.add_field_mapping("cms_to_wp", "subtitle", "meta.subtitle")
        assert wp.forward({"title": "T", "subtitle": "S"})["meta"]["subtitle"] == "S"

    def test_custom_transformer(self, wp):
        def add_sticky(target, source):
            target["sticky"] = source.get("featured", False)
            return target

        wp.add_custom_transformer("cms_to_wp", add_sticky)
        assert wp.forward({"title": "T", "featured": True})["sticky"] is True

    def test_html_sanitizer_hook(self):
        transformer = ContentTransformer(
            wordpress_mapping(),
            html_sanitizer=lambda html, platform: html.upper(),
        )
        assert transformer.forward({"title": "T", "content": "<p>x</p>"})["content"] == "<P>X</P>"

    def test_batch_transform(self, wp):
        result = wp.batch_transform(
            [{"id": "1", "title": "A"}, {"id": "2"}, {"id": "3", "title": "C"}],
            "cms_to_wp",
        )
        assert len(result["success"]) == 2
        assert [e["index"] for e in result["errors"]] == [1]
        assert "title" in result["errors"][0]["error"]


def test_profiles_build_their_transformer():
    assert isinstance(get_platform_profile("wordpress").build_transformer(), WordPressTransformer)
    assert get_platform_profile("shopify").build_transformer().platform == "shopify"
