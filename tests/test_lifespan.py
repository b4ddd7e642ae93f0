import anyio
import pytest

from django_mcp_broker.middleware import LifespanMiddleware, create_sweeper_lifespan
from django_mcp_broker.records import PendingAuthRequest
from django_mcp_broker.store import TTLStore
from django_mcp_broker.sweeper import ExpirySweeper

from _helpers import FakeClock

pytestmark = pytest.mark.anyio


class LifespanChannel:
    """In-memory receive/send pair for driving the lifespan protocol."""

    def __init__(self):
        self.incoming_send, self.incoming = anyio.create_memory_object_stream(10)
        self.sent: list[dict] = []
        self.sent_event = anyio.Event()

    async def receive(self) -> dict:
        return await self.incoming.receive()

    async def send(self, message: dict) -> None:
        self.sent.append(message)
        self.sent_event.set()

    async def wait_for(self, message_type: str) -> None:
        with anyio.fail_after(5):
            while message_type not in [m["type"] for m in self.sent]:
                self.sent_event = anyio.Event()
                await self.sent_event.wait()


async def unreachable_app(scope, receive, send):
    raise AssertionError("lifespan messages must not reach the wrapped app")


async def test_startup_and_shutdown():
    calls = []

    async def on_startup():
        calls.append("startup")

    async def on_shutdown():
        calls.append("shutdown")

    channel = LifespanChannel()
    app = LifespanMiddleware(unreachable_app, on_startup=on_startup, on_shutdown=on_shutdown)

    await channel.incoming_send.send({"type": "lifespan.startup"})
    await channel.incoming_send.send({"type": "lifespan.shutdown"})
    await app({"type": "lifespan"}, channel.receive, channel.send)

    assert calls == ["startup", "shutdown"]
    assert [m["type"] for m in channel.sent] == ["lifespan.startup.complete", "lifespan.shutdown.complete"]


async def test_startup_failure():
    async def on_startup():
        raise RuntimeError("boom")

    async def on_shutdown():
        pass

    channel = LifespanChannel()
    app = LifespanMiddleware(unreachable_app, on_startup=on_startup, on_shutdown=on_shutdown)

    await channel.incoming_send.send({"type": "lifespan.startup"})
    await app({"type": "lifespan"}, channel.receive, channel.send)

    assert channel.sent == [{"type": "lifespan.startup.failed", "message": "boom"}]


async def test_http_passes_through():
    seen = []

    async def app(scope, receive, send):
        seen.append(scope["type"])

    async def noop():
        pass

    await LifespanMiddleware(app, on_startup=noop, on_shutdown=noop)({"type": "http"}, None, None)

    assert seen == ["http"]


async def test_sweeper_runs_between_startup_and_shutdown():
    clock = FakeClock()
    store = TTLStore("codes", ttl=10, clock=clock)
    store.put(
        "stale",
        PendingAuthRequest(
            internal_state="stale",
            code_challenge="challenge",
            client_redirect_uri="https://client.example.com/callback",
            created_at=clock(),
        ),
    )
    clock.advance(10)

    sweeper = ExpirySweeper([store], interval=0.01, clock=clock)
    on_startup, on_shutdown = create_sweeper_lifespan(sweeper)
    channel = LifespanChannel()
    app = LifespanMiddleware(unreachable_app, on_startup=on_startup, on_shutdown=on_shutdown)

    async with anyio.create_task_group() as tg:
        tg.start_soon(app, {"type": "lifespan"}, channel.receive, channel.send)

        await channel.incoming_send.send({"type": "lifespan.startup"})
        await channel.wait_for("lifespan.startup.complete")

        with anyio.fail_after(5):
            while len(store):
                await anyio.sleep(0.01)

        await channel.incoming_send.send({"type": "lifespan.shutdown"})
        await channel.wait_for("lifespan.shutdown.complete")

    assert "stale" not in store
