"""Test fixtures and configuration."""
import asyncio
import json
import os
from types import SimpleNamespace
from typing import AsyncGenerator, Callable

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Must be set before cms_bridge.database creates its engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from cms_bridge import models  # noqa: E402,F401
from cms_bridge.config import Settings, get_settings  # noqa: E402
from cms_bridge.database import Base  # noqa: E402
from cms_bridge.main import app  # noqa: E402
from cms_bridge.api.deps import get_session_maker  # noqa: E402
from cms_bridge.services.clock import Clock  # noqa: E402
from cms_bridge.services.delivery_log import DeliveryLogObserver  # noqa: E402
from cms_bridge.services.events import RecordingObserver  # noqa: E402
from cms_bridge.services.executor import WebhookExecutor  # noqa: E402
from cms_bridge.services.webhook_dispatcher import DispatcherConfig, WebhookDispatcher  # noqa: E402

WEBHOOK_SECRET = "test-secret"
INBOUND_SECRET = "inbound-secret"


async def settle(rounds: int = 20) -> None:
    """Let scheduled tasks and callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class ManualClock(Clock):
    """Clock whose time only moves when a test calls `advance()`."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start
        self.elapsed = 0.0
        self._sleepers: list[tuple[float, asyncio.Future]] = []

    def time(self) -> float:
        return self.now

    def monotonic(self) -> float:
        return self.elapsed

    async def sleep(self, seconds: float) -> None:
        future = asyncio.get_running_loop().create_future()
        self._sleepers.append((self.elapsed + seconds, future))
        await future

    async def advance(self, seconds: float) -> None:
        await settle()
        self.now += seconds
        self.elapsed += seconds

        due = [future for deadline, future in self._sleepers if deadline <= self.elapsed]
        self._sleepers = [
            (deadline, future) for deadline, future in self._sleepers if deadline > self.elapsed
        ]
        for future in due:
            if not future.done():
                future.set_result(None)
        await settle()


class FakeReceiver:
    """Webhook target that records requests and answers with a configurable status."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.status_codes: list[int] = []
        self.default_status = 200

    def fail_next(self, *status_codes: int) -> None:
        self.status_codes.extend(status_codes)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status_code = self.status_codes.pop(0) if self.status_codes else self.default_status
        return httpx.Response(status_code, json={"received": status_code < 300})

    def payloads(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]


class FakeWordPress:
    """Minimal WordPress REST API over an in-memory post table."""

    def __init__(self):
        self.posts: dict[int, dict] = {}
        self.requests: list[httpx.Request] = []
        self.next_id = 100

    def methods(self) -> list[str]:
        return [r.method for r in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/wp-json/wp/v2/posts" and request.method == "GET":
            cms_id = request.url.params.get("meta_value")
            matches = [
                post for post in self.posts.values()
                if post.get("meta", {}).get("_headless_cms_id") == cms_id
            ]
            return httpx.Response(200, json=matches[:1])

        if path == "/wp-json/wp/v2/posts" and request.method == "POST":
            post = json.loads(request.content)
            post["id"] = self.next_id
            self.next_id += 1
            self.posts[post["id"]] = post
            return httpx.Response(201, json=post)

        post_id = int(path.rsplit("/", 1)[-1])
        if post_id not in self.posts:
            return httpx.Response(
                404,
                json={"code": "rest_post_invalid_id", "message": "Invalid post ID.", "data": {"status": 404}},
            )

        if request.method == "PUT":
            post = {**json.loads(request.content), "id": post_id}
            self.posts[post_id] = post
            return httpx.Response(200, json=post)

        if request.method == "DELETE":
            return httpx.Response(200, json={"deleted": True, "previous": self.posts.pop(post_id)})

        return httpx.Response(405)


def route_hosts(routes: dict[str, Callable[[httpx.Request], httpx.Response]]) -> httpx.MockTransport:
    """MockTransport that dispatches on the request host."""

    def handler(request: httpx.Request) -> httpx.Response:
        return routes[request.url.host](request)

    return httpx.MockTransport(handler)


@pytest.fixture
def manual_clock():
    return ManualClock()


@pytest.fixture
def receiver():
    return FakeReceiver()


@pytest.fixture
def wordpress():
    return FakeWordPress()


@pytest.fixture
def recorder():
    return RecordingObserver()


@pytest_asyncio.fixture
async def dispatcher(manual_clock, receiver, recorder) -> AsyncGenerator[WebhookDispatcher, None]:
    """Dispatcher on a manual clock; tests drive it with `tick()` instead of the loop."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(receiver))
    dispatcher = WebhookDispatcher(
        config=DispatcherConfig(),
        executor=WebhookExecutor(client=client, clock=manual_clock),
        clock=manual_clock,
        observers=[recorder],
    )

    yield dispatcher

    dispatcher.clear()
    await dispatcher.stop(drain=True)
    await client.aclose()


@pytest_asyncio.fixture
async def session_maker() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """In-memory SQLite database with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    await engine.dispose()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        WORDPRESS_URL="http://wp.test",
        WORDPRESS_API_KEY="wp-key",
        INBOUND_WEBHOOK_SECRET=INBOUND_SECRET,
        WEBHOOK_RETRY_DELAY_MS=10,
        WEBHOOK_QUEUE_MAX_SIZE=3,
        WEBHOOK_POLL_INTERVAL_MS=5,
    )


@pytest_asyncio.fixture
async def bridge(test_settings, session_maker, receiver, wordpress) -> AsyncGenerator[SimpleNamespace, None]:
    """
    The API app with a running dispatcher and faked remote HTTP.

    `hooks.test` is a webhook receiver and `wp.test` a WordPress site.
    """
    http_client = httpx.AsyncClient(
        transport=route_hosts({"hooks.test": receiver, "wp.test": wordpress})
    )
    delivery_log = DeliveryLogObserver(session_maker)
    config = DispatcherConfig.from_settings(test_settings)
    dispatcher = WebhookDispatcher(
        config=config,
        executor=WebhookExecutor(timeout=config.timeout, client=http_client),
        observers=[delivery_log],
    )
    dispatcher.start()

    app.state.http_client = http_client
    app.state.delivery_log = delivery_log
    app.state.dispatcher = dispatcher
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_session_maker] = lambda: session_maker

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield SimpleNamespace(
            client=ac,
            dispatcher=dispatcher,
            delivery_log=delivery_log,
            receiver=receiver,
            wordpress=wordpress,
        )

    app.dependency_overrides.clear()
    dispatcher.clear()
    await dispatcher.stop(drain=True)
    await delivery_log.drain()
    await http_client.aclose()


@pytest.fixture
def sample_content():
    """Sample CMS content item for testing."""
    return {
        "id": "post-001",
        "title": "Hello World",
        "slug": "hello-world",
        "content": "<p>First post on the new site.</p>",
        "status": "published",
        "created_at": "2024-01-15T10:30:00Z",
        "author": {"id": 7, "name": "Ann Author"},
        "metadata": {"seo_title": "Hello SEO"},
    }
