"""Request Timeouts: ASGI middleware enforcing the read and write timeouts.

Invariants:
    - Read timeout bounds the time spent receiving the request body; once the
      body is complete (or the response started) receive() is no longer bounded
    - Write timeout bounds the whole handler, from dispatch to last body chunk
    - A timeout of 0 disables that bound
    - A response that already started is never replaced, the exchange is aborted
"""

import asyncio
import logging

from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from apiserver.core.errors import RequestReadTimeoutError, ResponseWriteTimeoutError


class TimeoutMiddleware:
    """Pure ASGI middleware: wraps receive with a deadline and the app with wait_for."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        read_timeout: float,
        write_timeout: float,
        logger: logging.Logger | None = None,
    ):
        self.app = app
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self.logger = logger or logging.getLogger("apiserver")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not (self.read_timeout or self.write_timeout):
            await self.app(scope, receive, send)
            return

        loop = asyncio.get_running_loop()
        read_deadline = (
            loop.time() + self.read_timeout if self.read_timeout else None
        )
        response_started = False
        body_complete = False

        async def timed_receive() -> Message:
            nonlocal body_complete
            # after the body, receive() only waits for http.disconnect
            if read_deadline is None or body_complete or response_started:
                return await receive()
            remaining = max(read_deadline - loop.time(), 0)
            try:
                message = await asyncio.wait_for(receive(), remaining)
            except asyncio.TimeoutError:
                raise RequestReadTimeoutError(self.read_timeout) from None
            if message["type"] != "http.request" or not message.get("more_body", False):
                body_complete = True
            return message

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        call = self.app(scope, timed_receive, tracking_send)
        if not self.write_timeout:
            await call
            return
        try:
            await asyncio.wait_for(call, self.write_timeout)
        except asyncio.TimeoutError:
            exc = ResponseWriteTimeoutError(self.write_timeout)
            self.logger.warning(
                exc.message,
                extra={
                    "path": scope.get("path"),
                    "method": scope.get("method"),
                    "timeout": self.write_timeout,
                    "error_code": exc.code,
                },
            )
            if response_started:
                raise exc
            response = JSONResponse(exc.to_response(), status_code=exc.http_status)
            await response(scope, receive, send)
