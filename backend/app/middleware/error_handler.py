"""
Last-resort error handling middleware.

Application errors are rendered by the exception handlers in
app.core.errors; this only catches what escapes them. Pure ASGI, so
async generator dependencies like get_db_session() keep working.
"""
import json

from fastapi import HTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.core.logging import get_logger

logger = get_logger(__name__)


class ErrorHandlerMiddleware:
    """
    Turns unhandled exceptions into a JSON 500 without exception details.

    Does NOT catch HTTPException; FastAPI's handler owns those.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as e:
            if isinstance(e, HTTPException):
                raise

            logger.exception(
                "Unhandled exception",
                error_type=type(e).__name__,
                path=scope.get("path", "unknown"),
            )

            if response_started:
                # Headers already sent, can't change the response
                raise

            request_id = scope.get("state", {}).get("request_id")
            body = json.dumps({
                "detail": "Internal server error",
                "requestId": request_id,
            }).encode("utf-8")

            await send({
                "type": "http.response.start",
                "status": 500,
                "headers": [
                    (b"content-type", b"application/json"),
                    (b"content-length", str(len(body)).encode()),
                ],
            })
            await send({
                "type": "http.response.body",
                "body": body,
            })
