"""JSON-RPC 2.0 Sideload Handler

Line-delimited JSON-RPC over stdin/stdout. Each line holds one request or
a batch (JSON array) of requests; notifications get no reply.
"""

import asyncio
import inspect
import json
import logging
import sys
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class RpcError(Exception):
    """Raised by method handlers to reply with a specific error object."""

    def __init__(self, code: int, message: str, data: Optional[Any] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def to_dict(self) -> dict:
        error = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


def _reply(msg_id: Any, *, result: Any = None, error: Optional[RpcError] = None) -> dict:
    reply = {"jsonrpc": "2.0", "id": msg_id}
    if error is not None:
        reply["error"] = error.to_dict()
    else:
        reply["result"] = result
    return reply


class SideloadHandler:
    """JSON-RPC 2.0 dispatcher for sideload mode."""

    def __init__(self):
        self._methods: Dict[str, Callable] = {}
        self._running = False

    def register_method(self, name: str, handler: Callable) -> None:
        """Register ``handler(params)``; it may return a value or an awaitable."""
        self._methods[name] = handler

    async def handle_request(self, raw: str) -> Optional[str]:
        """Handle one input line and return the reply line, if any."""
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            return json.dumps(_reply(None, error=RpcError(PARSE_ERROR, f"Parse error: {e}")))

        if isinstance(payload, list):
            if not payload:
                return json.dumps(_reply(None, error=RpcError(INVALID_REQUEST, "Empty batch")))
            replies: List[dict] = []
            for message in payload:
                reply = await self._dispatch(message)
                if reply is not None:
                    replies.append(reply)
            return json.dumps(replies) if replies else None

        reply = await self._dispatch(payload)
        return json.dumps(reply) if reply is not None else None

    async def _dispatch(self, message: Any) -> Optional[dict]:
        if not isinstance(message, dict) or not isinstance(message.get("method"), str):
            return _reply(None, error=RpcError(INVALID_REQUEST, "Invalid request"))

        method = message["method"]
        msg_id = message.get("id")
        is_notification = "id" not in message

        handler = self._methods.get(method)
        if handler is None:
            if is_notification:
                return None
            return _reply(msg_id, error=RpcError(METHOD_NOT_FOUND, f"Method not found: {method}"))

        try:
            result = handler(message.get("params") or {})
            if inspect.isawaitable(result):
                result = await result
        except RpcError as e:
            logger.warning(f"{method} failed with code {e.code}: {e.message}")
            return None if is_notification else _reply(msg_id, error=e)
        except Exception as e:
            logger.exception(f"Error handling {method}")
            return None if is_notification else _reply(msg_id, error=RpcError(INTERNAL_ERROR, str(e)))

        return None if is_notification else _reply(msg_id, result=result)

    @staticmethod
    def _write(line: str) -> None:
        sys.stdout.write(line + "\n")
        sys.stdout.flush()

    async def send_notification(self, method: str, params: dict) -> None:
        """Push a server-initiated notification to stdout."""
        self._write(json.dumps({"jsonrpc": "2.0", "method": method, "params": params}))

    async def _stdin_lines(self) -> AsyncIterator[str]:
        reader = asyncio.StreamReader()
        loop = asyncio.get_running_loop()
        await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
        while True:
            line = await reader.readline()
            if not line:
                logger.info("EOF on stdin")
                return
            yield line.decode("utf-8")

    async def run(self) -> None:
        """Serve stdin until EOF or ``stop()``."""
        self._running = True
        logger.info("Sideload handler started")

        try:
            async for line in self._stdin_lines():
                if line.strip():
                    try:
                        response = await self.handle_request(line)
                    except (TypeError, ValueError):
                        # result was not JSON serializable
                        logger.exception("Failed to encode sideload reply")
                        continue
                    if response is not None:
                        self._write(response)
                if not self._running:
                    break
        except asyncio.CancelledError:
            logger.info("Sideload handler cancelled")
        finally:
            self._running = False
            logger.info("Sideload handler stopped")

    def stop(self) -> None:
        """Stop after the reply currently being written."""
        self._running = False
