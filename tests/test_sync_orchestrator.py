"""Tests for create-vs-update platform sync."""
import json

import httpx
import pytest
import pytest_asyncio

from cms_bridge.services.error_normalizer import ErrorKind, normalize_response
from cms_bridge.services.platforms import SyncPolicy, get_platform_profile
from cms_bridge.services.remote_client import RemotePlatformClient, first_record
from cms_bridge.services.sync_orchestrator import SyncOrchestrator
from cms_bridge.services.sync_store import SyncRecordStore
from cms_bridge.utils.exceptions import (
    RemotePlatformError,
    SyncDisabledError,
    ValidationError,
)


def build_orchestrator(platform, handler, store=None, **options):
    profile = get_platform_profile(platform)
    client = RemotePlatformClient(
        profile,
        f"http://{platform}.test",
        api_key="key",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    return SyncOrchestrator(client, profile.build_transformer(), store=store, **options)


@pytest.fixture
def content():
    return {"id": "post-1", "title": "Hello", "content": "<p>Body</p>", "status": "published"}


@pytest_asyncio.fixture
async def store(session_maker):
    return SyncRecordStore(session_maker)


class TestCreateOrUpdate:
    @pytest.mark.asyncio
    async def test_unsynced_item_is_created(self, wordpress, content):
        """Test that an item unknown to the platform is POSTed once."""
        orchestrator = build_orchestrator("wordpress", wordpress)

        result = await orchestrator.sync(content)

        assert wordpress.methods() == ["GET", "POST"]
        assert result.action == "created"
        assert result.remote_id == 100

        created = json.loads(wordpress.requests[1].content)
        assert created["title"] == "Hello"
        assert created["status"] == "publish"
        assert created["meta"]["_headless_cms_id"] == "post-1"

    @pytest.mark.asyncio
    async def test_existing_item_is_updated(self, wordpress, content):
        """Test that an item the lookup finds is PUT to its record."""
        wordpress.posts[42] = {"id": 42, "meta": {"_headless_cms_id": "post-1"}}
        orchestrator = build_orchestrator("wordpress", wordpress)

        result = await orchestrator.sync(content)

        assert wordpress.methods() == ["GET", "PUT"]
        assert wordpress.requests[1].url.path == "/wp-json/wp/v2/posts/42"
        assert result.action == "updated"
        assert result.remote_id == 42

    @pytest.mark.asyncio
    async def test_update_not_found_falls_back_to_create(self, content):
        """Test that a 404 on update creates the record with exactly one POST."""
        requests = []

        def handler(request):
            requests.append(request.method)
            if request.method == "GET":
                return httpx.Response(200, json=[{"id": 42}])
            if request.method == "PUT":
                return httpx.Response(404, json={"code": "rest_post_invalid_id", "message": "Invalid post ID."})
            return httpx.Response(201, json={"id": 43})

        orchestrator = build_orchestrator("wordpress", handler)
        result = await orchestrator.sync(content)

        assert requests == ["GET", "PUT", "POST"]
        assert result.action == "created"
        assert result.remote_id == 43

    @pytest.mark.asyncio
    async def test_update_not_found_without_fallback(self, content):
        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, json=[{"id": 42}])
            return httpx.Response(404, json={"message": "Invalid post ID."})

        orchestrator = build_orchestrator(
            "wordpress", handler, policy=SyncPolicy(create_on_update_not_found=False)
        )
        with pytest.raises(RemotePlatformError) as exc_info:
            await orchestrator.sync(content)
        assert exc_info.value.remote_status == 404

    @pytest.mark.asyncio
    async def test_create_conflict_updates_when_enabled(self, content):
        """Test Shopify's 409-on-create fallback to lookup and update."""
        requests = []
        lookups = []

        def handler(request):
            requests.append(request.method)
            if request.method == "GET":
                lookups.append(request.url.params["cms_id"])
                found = [] if len(lookups) == 1 else [{"shopify_id": "gid-7"}]
                return httpx.Response(200, json=found)
            if request.method == "POST":
                return httpx.Response(409, json={"errors": "Product already exists"})
            return httpx.Response(200, json={"product": {"title": "Hello"}})

        orchestrator = build_orchestrator("shopify", handler)
        result = await orchestrator.sync(content)

        assert requests == ["GET", "POST", "GET", "PUT"]
        assert lookups == ["post-1", "post-1"]
        assert result.action == "updated"
        assert result.remote_id == "gid-7"

    @pytest.mark.asyncio
    async def test_create_conflict_raises_by_default(self, content):
        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, json=[])
            return httpx.Response(409, json={"message": "Duplicate"})

        orchestrator = build_orchestrator("wordpress", handler)
        with pytest.raises(RemotePlatformError) as exc_info:
            await orchestrator.sync(content)
        assert exc_info.value.normalized.is_conflict

    @pytest.mark.asyncio
    async def test_lookup_failure_does_not_create(self, content):
        """Test that a failing lookup raises instead of risking a duplicate."""
        requests = []

        def handler(request):
            requests.append(request.method)
            return httpx.Response(500, json={"message": "Database error"})

        orchestrator = build_orchestrator("wordpress", handler)
        with pytest.raises(RemotePlatformError) as exc_info:
            await orchestrator.sync(content)

        assert requests == ["GET"]
        assert exc_info.value.normalized.message == "Database error"

    @pytest.mark.asyncio
    async def test_invalid_content_makes_no_requests(self, wordpress):
        orchestrator = build_orchestrator("wordpress", wordpress)

        with pytest.raises(ValidationError):
            await orchestrator.sync({"id": "post-1", "content": "no title"})
        assert wordpress.requests == []

    @pytest.mark.asyncio
    async def test_missing_id_is_rejected(self, wordpress, store):
        """Test that items without a CMS id never reach the platform or the store."""
        orchestrator = build_orchestrator("wordpress", wordpress, store=store)

        for item in ({"title": "No id"}, {"id": "", "title": "Blank id"}):
            with pytest.raises(ValidationError) as exc_info:
                await orchestrator.sync(item)
            assert exc_info.value.missing_fields == ["id"]

        with pytest.raises(ValidationError):
            await orchestrator.handle_content_event("content.deleted", {"title": "No id"})

        assert wordpress.requests == []
        records, total = await store.list_records("wordpress")
        assert total == 0

    @pytest.mark.asyncio
    async def test_drupal_body_is_wrapped(self, content):
        bodies = []

        def handler(request):
            if request.method == "GET":
                return httpx.Response(404, json={"error": "Not found"})
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json={"drupal_id": 5})

        orchestrator = build_orchestrator("drupal", handler)
        result = await orchestrator.sync(content)

        assert result.remote_id == 5
        assert bodies[0]["node"]["title"] == "Hello"
        assert bodies[0]["node"]["status"] is True
        assert bodies[0]["node"]["body"]["value"] == "<p>Body</p>"


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_existing(self, wordpress):
        wordpress.posts[42] = {"id": 42, "meta": {"_headless_cms_id": "post-1"}}
        orchestrator = build_orchestrator("wordpress", wordpress)

        result = await orchestrator.delete("post-1")

        assert wordpress.methods() == ["GET", "DELETE"]
        assert result.action == "deleted"
        assert wordpress.posts == {}

    @pytest.mark.asyncio
    async def test_delete_absent_is_success(self, wordpress):
        orchestrator = build_orchestrator("wordpress", wordpress)

        first = await orchestrator.delete("post-1")
        second = await orchestrator.delete("post-1")

        assert first.action == second.action == "already_absent"
        assert "DELETE" not in wordpress.methods()

    @pytest.mark.asyncio
    async def test_delete_not_found_is_success(self):
        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, json=[{"id": 42}])
            return httpx.Response(404, json={"message": "Invalid post ID."})

        orchestrator = build_orchestrator("wordpress", handler)
        result = await orchestrator.delete("post-1")
        assert result.action == "already_absent"


class TestSyncStore:
    @pytest.mark.asyncio
    async def test_store_skips_remote_lookup(self, wordpress, store, content):
        """Test that a recorded mapping is used instead of a remote lookup."""
        orchestrator = build_orchestrator("wordpress", wordpress, store=store)

        await orchestrator.sync(content)
        assert await store.get_remote_id("wordpress", "post-1") == "100"

        wordpress.requests.clear()
        result = await orchestrator.sync({**content, "title": "Hello again"})

        assert wordpress.methods() == ["PUT"]
        assert result.action == "updated"
        assert wordpress.posts[100]["title"] == "Hello again"

        record = await store.get("wordpress", "post-1")
        assert record.last_action == "updated"

    @pytest.mark.asyncio
    async def test_stale_mapping_is_replaced(self, wordpress, store, content):
        await store.record("wordpress", "post-1", 999, "created")
        orchestrator = build_orchestrator("wordpress", wordpress, store=store)

        result = await orchestrator.sync(content)

        assert wordpress.methods() == ["PUT", "POST"]
        assert result.action == "created"
        assert await store.get_remote_id("wordpress", "post-1") == "100"

    @pytest.mark.asyncio
    async def test_delete_forgets_mapping(self, wordpress, store, content):
        orchestrator = build_orchestrator("wordpress", wordpress, store=store)
        await orchestrator.sync(content)

        result = await orchestrator.delete("post-1")

        assert result.action == "deleted"
        assert await store.get_remote_id("wordpress", "post-1") is None

    @pytest.mark.asyncio
    async def test_list_records(self, store):
        await store.record("wordpress", "a", 1, "created")
        await store.record("wordpress", "b", 2, "created")
        await store.record("shopify", "a", "gid-1", "created")

        records, total = await store.list_records("wordpress")

        assert total == 2
        assert {r.cms_id for r in records} == {"a", "b"}
        assert await store.forget("wordpress", "a") is True
        assert await store.forget("wordpress", "a") is False


class TestEventsAndBulk:
    @pytest.mark.asyncio
    async def test_content_events(self, wordpress, content):
        orchestrator = build_orchestrator("wordpress", wordpress)

        created = await orchestrator.handle_content_event("content.created", content)
        deleted = await orchestrator.handle_content_event("content.deleted", content)
        skipped = await orchestrator.handle_content_event("content.viewed", content)

        assert created.action == "created"
        assert deleted.action == "deleted"
        assert skipped.action == "skipped"

    @pytest.mark.asyncio
    async def test_bulk_sync_reports_per_item(self, wordpress):
        orchestrator = build_orchestrator("wordpress", wordpress)

        result = await orchestrator.bulk_sync([
            {"id": "a", "title": "A"},
            {"id": "b"},
            {"id": "c", "title": "C"},
        ])

        assert result["total"] == 3
        assert result["succeeded"] == 2
        assert result["failed"] == 1
        failed = [r for r in result["results"] if not r["success"]]
        assert failed[0]["cms_id"] == "b"

    @pytest.mark.asyncio
    async def test_sync_direction_gate(self, wordpress, content):
        orchestrator = build_orchestrator("wordpress", wordpress, sync_direction="platform_to_cms")

        with pytest.raises(SyncDisabledError):
            await orchestrator.sync(content)
        with pytest.raises(SyncDisabledError):
            await orchestrator.delete("post-1")
        assert wordpress.requests == []

    def test_invalid_sync_direction(self, wordpress):
        with pytest.raises(ValueError):
            build_orchestrator("wordpress", wordpress, sync_direction="sideways")


class TestErrorNormalization:
    def test_wordpress_message(self):
        response = httpx.Response(404, json={"code": "rest_post_invalid_id", "message": "Invalid post ID."})
        error = normalize_response(response, "wordpress")
        assert error.kind == ErrorKind.HTTP
        assert error.message == "Invalid post ID."
        assert error.is_not_found

    def test_shopify_field_errors(self):
        response = httpx.Response(422, json={"errors": {"title": ["can't be blank"]}})
        error = normalize_response(response, "shopify")
        assert error.kind == ErrorKind.VALIDATION
        assert error.message == "title can't be blank"

    def test_drupal_error(self):
        response = httpx.Response(500, json={"error": "Node save failed"})
        assert normalize_response(response, "drupal").message == "Node save failed"

    def test_fallback_message(self):
        response = httpx.Response(503, text="down")
        assert normalize_response(response, "wordpress").message == "HTTP 503: Service Unavailable"

    @pytest.mark.asyncio
    async def test_network_error(self, content):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        orchestrator = build_orchestrator("wordpress", handler)
        with pytest.raises(RemotePlatformError) as exc_info:
            await orchestrator.sync(content)
        assert exc_info.value.normalized.kind == ErrorKind.NETWORK


def test_first_record():
    assert first_record([{"id": 1}, {"id": 2}]) == {"id": 1}
    assert first_record({"data": [{"id": 3}]}) == {"id": 3}
    assert first_record({"items": []}) is None
    assert first_record({"id": 4}) == {"id": 4}
    assert first_record([]) is None
