"""
Request ID middleware for tracing.

Uses pure ASGI middleware (not BaseHTTPMiddleware) to avoid breaking
async generator dependencies like get_db_session().
"""
import uuid

import structlog
from starlette.types import ASGIApp, Message, Receive, Scope, Send

# Embedded admin calls send X-Shop-Domain, Shopify webhooks X-Shopify-Shop-Domain
_SHOP_HEADERS = (b"x-shop-domain", b"x-shopify-shop-domain")


class RequestIdMiddleware:
    """
    Pure ASGI middleware that tags each request with an ID and its shop.

    Both are bound to the structlog context so every log line of the
    request carries them; the ID is echoed back in X-Request-ID.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = None
        shop_domain = None
        for header_name, header_value in scope.get("headers", []):
            if header_name == b"x-request-id":
                request_id = header_value.decode("latin-1")
            elif header_name in _SHOP_HEADERS and shop_domain is None:
                shop_domain = header_value.decode("latin-1").strip().lower()

        if not request_id:
            request_id = str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=scope.get("method", ""),
            path=scope.get("path", ""),
        )
        if shop_domain:
            structlog.contextvars.bind_contextvars(shop=shop_domain)

        # Inject request_id into scope state for handler access
        scope.setdefault("state", {})
        scope["state"]["request_id"] = request_id

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode("latin-1")))
                message = {**message, "headers": headers}
            await send(message)

        await self.app(scope, receive, send_with_request_id)
