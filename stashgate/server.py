"""
Local interception server.

Runs an aiohttp web application in front of the host application: every
request it receives is handed to the Gateway, which either serves it from
the store or forwards it to the configured origin. Two extra endpoints let
the host application reach the control channel and push dispatcher:

    POST /_stashgate/control   {"type": "force-activate"}
    POST /_stashgate/push      {"title": "...", "body": "..."}
"""

import asyncio
from typing import Optional

from aiohttp import web

from stashgate.core.models import RequestDescriptor, ResourceKind
from stashgate.exceptions import InstallError, NetworkError
from stashgate.gateway.gateway import Gateway
from stashgate.logging_config import get_logger

logger = get_logger(__name__)

CONTROL_PATH = "/_stashgate/control"
PUSH_PATH = "/_stashgate/push"


def descriptor_from_request(request: web.Request, body: Optional[bytes]) -> RequestDescriptor:
    """Build a RequestDescriptor from an incoming aiohttp request."""
    return RequestDescriptor(
        url=request.path_qs,
        method=request.method,
        kind=ResourceKind.parse(request.headers.get("Sec-Fetch-Dest")),
        navigation=request.headers.get("Sec-Fetch-Mode", "").lower() == "navigate",
        headers=dict(request.headers),
        body=body or None,
    )


class GatewayServer:
    """
    aiohttp server forwarding all traffic through a Gateway.

    The gateway is started when the application starts (restored from the
    store or installed) and closed when it shuts down. A failed install is
    logged and the server keeps forwarding requests untouched.
    """

    def __init__(self, gateway: Gateway, host: str = "127.0.0.1", port: int = 8080):
        self.gateway = gateway
        self.host = host
        self.port = port
        self._runner: Optional[web.AppRunner] = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post(CONTROL_PATH, self.handle_control)
        app.router.add_post(PUSH_PATH, self.handle_push)
        app.router.add_route("*", "/{tail:.*}", self.handle_request)
        app.on_startup.append(self._on_startup)
        app.on_cleanup.append(self._on_cleanup)
        return app

    async def _on_startup(self, app: web.Application) -> None:
        try:
            await self.gateway.start()
        except InstallError as e:
            logger.error(f"Gateway install failed, forwarding without caching: {e}")

    async def _on_cleanup(self, app: web.Application) -> None:
        await self.gateway.close()

    async def handle_request(self, request: web.Request) -> web.Response:
        body = await request.read() if request.can_read_body else None
        descriptor = descriptor_from_request(request, body)

        try:
            response = await self.gateway.handle_fetch(descriptor)
        except NetworkError as e:
            logger.warning(f"Pass-through request failed: {descriptor.method} {descriptor.url}: {e}")
            return web.Response(status=502, text=f"Bad gateway: {e}")

        return web.Response(
            status=response.status,
            headers=response.headers,
            body=response.body,
        )

    async def handle_control(self, request: web.Request) -> web.Response:
        try:
            message = await request.json()
        except ValueError:
            message = None
        transitioned = await self.gateway.post_message(message)
        return web.json_response({
            "accepted": transitioned,
            "state": self.gateway.state.value,
        })

    async def handle_push(self, request: web.Request) -> web.Response:
        notification = await self.gateway.push(await request.read())
        return web.json_response({
            "shown": notification is not None,
            "notification": notification.to_dict() if notification else None,
        })

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info(f"Gateway server listening on http://{self.host}:{self.port}")

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Gateway server stopped")

    async def serve_forever(self) -> None:
        await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()
