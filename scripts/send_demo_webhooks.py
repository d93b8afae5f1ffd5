#!/usr/bin/env python3
"""
Demo Webhook Script

Drives the bridge against the mock receiver:
- queues a few content webhooks and waits for them
- makes the receiver fail twice so one webhook goes through its retries
- prints the dispatcher statistics

Run the bridge on :8000 and mock_webhook/server.py on :8001, then:
python scripts/send_demo_webhooks.py
"""
import asyncio
import os

import httpx

API_BASE = "http://localhost:8000/api/v1"
MOCK_BASE = "http://localhost:8001"
WEBHOOK_SECRET = os.environ.get("MOCK_WEBHOOK_SECRET", "test-secret")

SAMPLE_CONTENT = [
    {
        "id": "post-welcome",
        "title": "Welcome to the headless CMS",
        "content": "<p>Content authored once, published everywhere.</p>",
        "status": "published",
    },
    {
        "id": "post-roadmap",
        "title": "Product roadmap",
        "content": "<p>What ships next quarter.</p>",
        "status": "draft",
    },
    {
        "id": "post-release",
        "title": "Release notes 1.0",
        "content": "<p>Signed webhooks, retries and platform sync.</p>",
        "status": "published",
    },
]


async def send(client: httpx.AsyncClient, event: str, content: dict) -> None:
    response = await client.post(
        f"{API_BASE}/deliveries",
        params={"wait": "true"},
        json={
            "url": f"{MOCK_BASE}/webhook",
            "secret": WEBHOOK_SECRET,
            "event": event,
            "data": content,
        },
    )
    if response.status_code == 200:
        print(f"  ✓ {event} {content['id']} delivered")
    else:
        error = response.json().get("error", {})
        print(f"  ✗ {event} {content['id']} failed: {error.get('message')}")


async def main():
    print("\n" + "=" * 60)
    print("CMS Bridge - Demo Webhooks")
    print("=" * 60 + "\n")

    async with httpx.AsyncClient(timeout=60.0) as client:
        try:
            health = await client.get("http://localhost:8000/health")
            if health.status_code != 200:
                print("API is not healthy. Start the service first.")
                return
            await client.get(f"{MOCK_BASE}/health")
        except httpx.RequestError as e:
            print(f"Cannot connect: {e}")
            return

        await client.delete(f"{MOCK_BASE}/webhooks")

        print("Sending content webhooks...")
        await asyncio.gather(
            *(send(client, "content.published", content) for content in SAMPLE_CONTENT)
        )

        print("\nMaking the receiver fail twice, expect two retries...")
        await client.post(f"{MOCK_BASE}/fail", params={"count": 2, "status_code": 503})
        await send(client, "content.updated", SAMPLE_CONTENT[0])

        stats = (await client.get(f"{API_BASE}/deliveries/stats")).json()
        received = (await client.get(f"{MOCK_BASE}/webhooks")).json()

        print("\n" + "=" * 60)
        print(f"  Delivered: {stats.get('delivered', 0)}")
        print(f"  Failed: {stats.get('failed', 0)}")
        print(f"  Rate limit used: {stats['rate_limit_used']}/{stats['rate_limit_max']}")
        print(f"  Receiver got: {received['total']} webhooks")
        print("=" * 60 + "\n")


if __name__ == "__main__":
    asyncio.run(main())
