"""Field mappings, REST endpoints and sync policy for each supported platform."""
from dataclasses import dataclass, field
from typing import Callable, Optional

from cms_bridge.config import Settings
from cms_bridge.services.transformer import (
    ContentTransformer,
    TransformMapping,
    WordPressTransformer,
)
from cms_bridge.utils.exceptions import PlatformNotConfiguredError

WORDPRESS = "wordpress"
DRUPAL = "drupal"
SHOPIFY = "shopify"


def wordpress_mapping() -> TransformMapping:
    return TransformMapping(
        name=WORDPRESS,
        forward_direction="cms_to_wp",
        backward_direction="wp_to_cms",
        forward_fields=[
            ("id", "meta._headless_cms_id"),
            ("title", "title"),
            ("slug", "slug"),
            ("content", "content"),
            ("excerpt", "excerpt"),
            ("created_at", "date"),
            ("updated_at", "modified"),
            ("author.id", "author"),
            ("author.name", "meta.author_name"),
            ("featured_image.id", "featured_media"),
            ("featured_image.alt", "meta.featured_image_alt"),
            ("metadata.seo_title", "meta._yoast_wpseo_title"),
            ("metadata.seo_description", "meta._yoast_wpseo_metadesc"),
            ("type", "type"),
        ],
        backward_fields=[
            ("meta._headless_cms_id", "id"),
            ("id", "wordpress_id"),
            # The REST API wraps rendered fields; plain values come from plugin webhooks
            ("title.rendered", "title"),
            ("title", "title"),
            ("slug", "slug"),
            ("content.rendered", "content"),
            ("content", "content"),
            ("excerpt.rendered", "excerpt"),
            ("excerpt", "excerpt"),
            ("date", "created_at"),
            ("modified", "updated_at"),
            ("author", "author.id"),
            ("meta.author_name", "author.name"),
            ("featured_media", "featured_image.id"),
            ("featured_media", "featured_image.wp_id"),
            ("meta.featured_image_alt", "featured_image.alt"),
            ("categories", "taxonomies.categories"),
            ("tags", "taxonomies.tags"),
            ("type", "type"),
            ("meta._yoast_wpseo_title", "metadata.seo_title"),
            ("meta._yoast_wpseo_metadesc", "metadata.seo_description"),
        ],
        forward_status={
            "published": "publish",
            "draft": "draft",
            "private": "private",
            "pending": "pending",
            "trashed": "trash",
            "archived": "draft",
        },
        backward_status={
            "publish": "published",
            "draft": "draft",
            "private": "private",
            "pending": "pending",
            "trash": "trashed",
            "auto-draft": "draft",
            "future": "pending",
        },
        forward_default_status="draft",
        backward_default_status="draft",
        forward_date_fields=["date", "modified"],
        backward_date_fields=["created_at", "updated_at"],
        forward_html_fields=["content"],
    )


def drupal_mapping() -> TransformMapping:
    return TransformMapping(
        name=DRUPAL,
        forward_direction="cms_to_drupal",
        backward_direction="drupal_to_cms",
        forward_fields=[
            ("id", "cms_id"),
            ("title", "title"),
            ("content", "body.value"),
            ("excerpt", "body.summary"),
            ("slug", "path.alias"),
            ("content_type", "type"),
            ("author.id", "uid"),
            ("created_at", "created"),
            ("updated_at", "changed"),
            ("taxonomies.tags", "field_tags"),
            ("drupal_id", "drupal_id"),
        ],
        backward_fields=[
            ("cms_id", "id"),
            ("nid", "drupal_id"),
            ("drupal_id", "drupal_id"),
            ("title", "title"),
            ("body.value", "content"),
            ("body.summary", "excerpt"),
            ("path.alias", "slug"),
            ("type", "content_type"),
            ("uid", "author.id"),
            ("created", "created_at"),
            ("changed", "updated_at"),
            ("field_tags", "taxonomies.tags"),
        ],
        # Drupal's node status is a published flag
        forward_status={
            "published": True,
            "draft": False,
            "private": False,
            "pending": False,
            "archived": False,
        },
        backward_status={
            True: "published",
            False: "draft",
        },
        forward_default_status=False,
        backward_default_status="draft",
        forward_date_fields=["created", "changed"],
        backward_date_fields=["created_at", "updated_at"],
        forward_html_fields=["body.value"],
    )


def shopify_mapping() -> TransformMapping:
    return TransformMapping(
        name=SHOPIFY,
        forward_direction="cms_to_shopify",
        backward_direction="shopify_to_cms",
        forward_fields=[
            ("id", "cms_id"),
            ("shopify_id", "id"),
            ("title", "title"),
            ("description", "descriptionHtml"),
            ("vendor", "vendor"),
            ("product_type", "productType"),
            ("slug", "handle"),
            ("seo_title", "seo.title"),
            ("seo_description", "seo.description"),
            ("tags", "tags"),
            ("created_at", "createdAt"),
            ("updated_at", "updatedAt"),
        ],
        backward_fields=[
            ("cms_id", "id"),
            ("id", "shopify_id"),
            ("title", "title"),
            ("descriptionHtml", "description"),
            ("description", "description"),
            ("vendor", "vendor"),
            ("productType", "product_type"),
            ("handle", "slug"),
            ("seo.title", "seo_title"),
            ("seo.description", "seo_description"),
            ("tags", "tags"),
            ("createdAt", "created_at"),
            ("updatedAt", "updated_at"),
        ],
        forward_status={
            "published": "ACTIVE",
            "active": "ACTIVE",
            "draft": "DRAFT",
            "inactive": "DRAFT",
            "archived": "ARCHIVED",
        },
        backward_status={
            "ACTIVE": "published",
            "DRAFT": "draft",
            "ARCHIVED": "archived",
        },
        forward_default_status="DRAFT",
        backward_default_status="draft",
        forward_date_fields=["createdAt", "updatedAt"],
        backward_date_fields=["created_at", "updated_at"],
        forward_html_fields=["descriptionHtml"],
    )


@dataclass
class SyncPolicy:
    """How a platform's error statuses steer the create-vs-update decision."""

    # Update answered 404: the remote record is gone, create it again
    create_on_update_not_found: bool = True
    # Create answered 409: the record exists already, look it up and update
    update_on_create_conflict: bool = False
    # Delete answered 404: nothing left to delete
    delete_not_found_is_success: bool = True
    update_method: str = "PUT"


@dataclass
class PlatformProfile:
    """Everything the sync layer needs to talk to one platform."""

    name: str
    mapping_factory: Callable[[], TransformMapping]
    transformer_class: type[ContentTransformer]
    collection_path: str
    item_path: str
    lookup_param: Callable[[str], dict]
    remote_id_field: str = "id"
    body_wrapper: Optional[str] = None
    health_path: Optional[str] = None
    user_agent: str = "HeadlessCMS-Bridge/1.0.0"
    policy: SyncPolicy = field(default_factory=SyncPolicy)

    def build_transformer(self, **options) -> ContentTransformer:
        return self.transformer_class(self.mapping_factory(), **options)


PLATFORM_PROFILES: dict[str, PlatformProfile] = {
    WORDPRESS: PlatformProfile(
        name=WORDPRESS,
        mapping_factory=wordpress_mapping,
        transformer_class=WordPressTransformer,
        collection_path="/wp-json/wp/v2/posts",
        item_path="/wp-json/wp/v2/posts/{remote_id}",
        lookup_param=lambda cms_id: {
            "meta_key": "_headless_cms_id",
            "meta_value": cms_id,
            "per_page": 1,
        },
        health_path="/wp-json/wp-headless-cms-bridge/v1/webhook/health",
        user_agent="HeadlessCMS-WordPress-Bridge/1.0.0",
    ),
    DRUPAL: PlatformProfile(
        name=DRUPAL,
        mapping_factory=drupal_mapping,
        transformer_class=ContentTransformer,
        collection_path="/api/v1/drupal/node",
        item_path="/api/v1/drupal/node/{remote_id}",
        lookup_param=lambda cms_id: {"cms_id": cms_id},
        remote_id_field="drupal_id",
        body_wrapper="node",
        health_path="/headless-cms-bridge/status",
        user_agent="CMS-Drupal-Adapter/1.0.0",
    ),
    SHOPIFY: PlatformProfile(
        name=SHOPIFY,
        mapping_factory=shopify_mapping,
        transformer_class=ContentTransformer,
        collection_path="/api/sync/products",
        item_path="/api/sync/products/{remote_id}",
        lookup_param=lambda cms_id: {"cms_id": cms_id},
        remote_id_field="shopify_id",
        body_wrapper="product",
        health_path="/api/status",
        user_agent="CMS-Shopify-Adapter/1.0.0",
        policy=SyncPolicy(update_on_create_conflict=True),
    ),
}


def get_platform_profile(platform: str) -> PlatformProfile:
    profile = PLATFORM_PROFILES.get(platform)
    if profile is None:
        raise PlatformNotConfiguredError(platform)
    return profile


def platform_credentials(platform: str, settings: Settings) -> tuple[str, Optional[str]]:
    """Return (base_url, api_key) for a platform, or raise if it has no URL."""
    get_platform_profile(platform)
    base_url = getattr(settings, f"{platform.upper()}_URL", None)
    api_key = getattr(settings, f"{platform.upper()}_API_KEY", None)
    if not base_url:
        raise PlatformNotConfiguredError(platform)
    return base_url.rstrip("/"), api_key
