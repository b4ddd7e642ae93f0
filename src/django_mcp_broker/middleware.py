import logging
from contextlib import AsyncExitStack

from django_mcp_broker.sweeper import ExpirySweeper
from django_mcp_broker.types import ASGIApp, LifespanHook, Receive, Scope, Send

logger = logging.getLogger(__name__)


class LifespanMiddleware:
    def __init__(
        self,
        app: ASGIApp,
        on_startup: LifespanHook,
        on_shutdown: LifespanHook
    ):
        self.app: ASGIApp = app
        self.on_startup: LifespanHook = on_startup
        self.on_shutdown: LifespanHook = on_shutdown

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] == "lifespan":
            while True:
                message = await receive()
                if message["type"] == "lifespan.startup":
                    try:
                        await self.on_startup()
                    except Exception as e:
                        logger.exception("Lifespan startup failed")
                        await send({"type": "lifespan.startup.failed", "message": str(e)})
                        return
                    await send({"type": "lifespan.startup.complete"})
                elif message["type"] == "lifespan.shutdown":
                    await self.on_shutdown()
                    await send({"type": "lifespan.shutdown.complete"})
                    return
        else:
            await self.app(scope, receive, send)


def create_sweeper_lifespan(sweeper: ExpirySweeper) -> tuple[LifespanHook, LifespanHook]:
    stack = AsyncExitStack()

    async def on_startup():
        logger.info("Starting expiry sweeper...")
        await stack.enter_async_context(sweeper.run())

    async def on_shutdown():
        logger.info("Shutting down expiry sweeper...")
        await stack.aclose()

    return on_startup, on_shutdown
