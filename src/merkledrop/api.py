"""
merkledrop/api.py

REST API host adapter for merkledrop.

Exposes the contract entry points over HTTP. The adapter trusts the
"sender" field of each request body, so it must run behind a host that
authenticates callers.
"""

import json
import logging
import time
import trio
from typing import Any, Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
from urllib.parse import parse_qs, urlsplit

from .contract import AirdropContract
from .errors import AirdropError, DecodeError
from .metrics import MetricsCollector

logger = logging.getLogger("merkledrop.api")

# HTTP status per error code
ERROR_STATUS = {
    "decode": 400,
    "unauthorized": 401,
    "not_found": 404,
    "already_claimed": 409,
    "invalid_proof": 422,
    "arithmetic": 422,
}

STATUS_TEXT = {
    200: "OK",
    400: "Bad Request",
    401: "Unauthorized",
    404: "Not Found",
    409: "Conflict",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
    503: "Service Unavailable",
}

HEADER_TERMINATOR = b"\r\n\r\n"
MAX_REQUEST_BYTES = 1 << 20
RECEIVE_CHUNK = 65536


@dataclass
class Request:
    """Parsed HTTP request."""
    method: str
    path: str
    query: Dict[str, List[str]]
    headers: Dict[str, str]
    body: bytes


@dataclass
class Response:
    """HTTP response to serialize back to the client."""
    status: int
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def json(cls, data: Any, status: int = 200) -> "Response":
        payload = json.dumps(data, indent=2).encode("utf-8")
        return cls(status, payload, {"Content-Type": "application/json"})

    @classmethod
    def text(cls, text: str, status: int = 200, content_type: str = "text/plain") -> "Response":
        return cls(status, text.encode("utf-8"), {"Content-Type": content_type})

    @classmethod
    def error(cls, error: AirdropError) -> "Response":
        """JSON body from the error, status from its code."""
        return cls.json(error.to_dict(), status=ERROR_STATUS.get(error.code, 400))

    def encode(self) -> bytes:
        """Status line, headers and body as wire bytes."""
        headers = dict(self.headers)
        headers["Content-Length"] = str(len(self.body))
        headers["Connection"] = "close"
        headers["Server"] = "merkledrop"

        reason = STATUS_TEXT.get(self.status, "Unknown")
        head = [f"HTTP/1.1 {self.status} {reason}"]
        head.extend(f"{name}: {value}" for name, value in headers.items())
        return ("\r\n".join(head) + "\r\n\r\n").encode("latin-1") + self.body


def parse_head(head: bytes) -> Tuple[str, str, Dict[str, str]]:
    """Split a request head into (method, target, lowercased headers)."""
    request_line, *header_lines = head.decode("latin-1").split("\r\n")
    parts = request_line.split()
    if len(parts) < 2:
        raise DecodeError(f"Malformed request line: {request_line!r}")

    headers = {}
    for line in header_lines:
        name, sep, value = line.partition(":")
        if sep:
            headers[name.strip().lower()] = value.strip()
    return parts[0].upper(), parts[1], headers


class AirdropAPI:
    """
    REST API server for merkledrop.

    Endpoints:
        GET  /             - Service info and endpoint list
        GET  /health       - Instantiation status
        GET  /metrics      - Prometheus metrics
        POST /instantiate  - {"sender": addr, "msg": {...config}}
        POST /execute      - {"sender": addr, "msg": {"claim": {...}}}
        POST /query        - {"msg": {"get_current_round": {}}}
        POST /migrate      - {"sender": addr, "msg": {}}

    Usage:
        contract = AirdropContract(FileBackend(storage_dir))
        api = AirdropAPI(contract, host="0.0.0.0", port=24650)
        trio.run(api.start)
    """

    def __init__(
        self,
        contract: AirdropContract,
        host: str = "127.0.0.1",
        port: int = 24650,
        enable_metrics: bool = True,
    ):
        """
        Initialize REST API server.

        Args:
            contract: Contract to expose via API
            host: Bind address
            port: Port to listen on
            enable_metrics: Serve /metrics and attach a collector to the contract
        """
        self.contract = contract
        self.host = host
        self.port = port

        self.metrics: Optional[MetricsCollector] = None
        if enable_metrics:
            self.metrics = contract.metrics or MetricsCollector(contract)
            contract.metrics = self.metrics

        self._running = False
        self._start_time = time.time()

        self._routes: Dict[Tuple[str, str], Callable] = {
            ("GET", "/"): self._handle_root,
            ("GET", "/health"): self._handle_health,
            ("GET", "/metrics"): self._handle_metrics,
            ("POST", "/instantiate"): self._handle_instantiate,
            ("POST", "/execute"): self._handle_execute,
            ("POST", "/query"): self._handle_query,
            ("POST", "/migrate"): self._handle_migrate,
        }

    async def start(self, task_status=trio.TASK_STATUS_IGNORED) -> None:
        """Serve until cancelled; reports the bound listeners via task_status."""
        if self._running:
            logger.warning("API server already running")
            return

        self._running = True
        logger.info(f"Serving merkledrop API on {self.host}:{self.port}")

        try:
            await trio.serve_tcp(
                self._handle_connection,
                self.port,
                host=self.host,
                task_status=task_status,
            )
        except OSError as e:
            logger.error(f"Cannot serve on {self.host}:{self.port}: {e}")
            raise
        finally:
            self._running = False

    async def _handle_connection(self, stream: trio.SocketStream) -> None:
        """One request per connection."""
        async with stream:
            try:
                try:
                    request = await self._read_request(stream)
                except DecodeError as e:
                    await stream.send_all(Response.error(e).encode())
                    return
                if request is None:
                    return
                response = await self._route_request(request)
                await stream.send_all(response.encode())
            except trio.BrokenResourceError as e:
                logger.debug(f"Client went away: {e}")

    async def _read_request(self, stream: trio.SocketStream) -> Optional[Request]:
        """
        Read one request from the stream.

        Returns None if the client closed before sending a full head.

        Raises:
            DecodeError: Malformed head or request larger than MAX_REQUEST_BYTES
        """
        buffer = bytearray()
        while HEADER_TERMINATOR not in buffer:
            if len(buffer) > MAX_REQUEST_BYTES:
                raise DecodeError("Request head too large")
            chunk = await stream.receive_some(RECEIVE_CHUNK)
            if not chunk:
                return None
            buffer += chunk

        head, _, body = bytes(buffer).partition(HEADER_TERMINATOR)
        method, target, headers = parse_head(head)

        try:
            length = int(headers.get("content-length", "0"))
        except ValueError as e:
            raise DecodeError("Invalid Content-Length") from e
        if length < 0 or length > MAX_REQUEST_BYTES:
            raise DecodeError(f"Unsupported Content-Length: {length}")

        while len(body) < length:
            chunk = await stream.receive_some(RECEIVE_CHUNK)
            if not chunk:
                break
            body += chunk

        url = urlsplit(target)
        return Request(
            method=method,
            path=url.path or "/",
            query=parse_qs(url.query),
            headers=headers,
            body=body[:length],
        )

    async def _route_request(self, request: Request) -> Response:
        """Dispatch to the route handler and turn failures into responses."""
        handler = self._routes.get((request.method, request.path))
        if handler is None:
            return Response.json({"error": "not_found", "message": "Not Found"}, status=404)
        try:
            return await handler(request)
        except AirdropError as e:
            return Response.error(e)
        except Exception as e:
            logger.error(f"Unhandled error on {request.method} {request.path}: {e}", exc_info=True)
            return Response.json({"error": "internal", "message": str(e)}, status=500)

    @staticmethod
    def _parse_body(request: Request, need_sender: bool = True) -> Tuple[Optional[str], Any]:
        """Extract (sender, msg) from a JSON request body."""
        try:
            body = json.loads(request.body.decode("utf-8") or "{}")
        except (UnicodeDecodeError, ValueError) as e:
            raise DecodeError(f"Invalid JSON body: {e}") from e
        if not isinstance(body, dict) or "msg" not in body:
            raise DecodeError("Request body must be an object with a 'msg' field")
        sender = body.get("sender")
        if need_sender and (not isinstance(sender, str) or not sender):
            raise DecodeError("Request body must include a 'sender'")
        return sender, body["msg"]

    # ========== Route Handlers ==========
    # Contract calls do blocking file I/O, so they run on a worker thread.
    # The contract lock serializes them.

    async def _handle_root(self, request: Request) -> Response:
        return Response.json({
            "name": "merkledrop",
            "routes": sorted(f"{method} {path}" for method, path in self._routes),
        })

    async def _handle_health(self, request: Request) -> Response:
        """Healthy once the contract is instantiated."""
        try:
            summary = await trio.to_thread.run_sync(self.contract.state_summary)
        except AirdropError:
            summary = None
        return Response.json({
            "status": "healthy" if summary else "uninitialized",
            "current_round_id": summary["state"].current_round_id if summary else None,
            "uptime_seconds": round(time.time() - self._start_time, 3),
        }, status=200 if summary else 503)

    async def _handle_metrics(self, request: Request) -> Response:
        if not self.metrics:
            return Response.json({"error": "not_found", "message": "Metrics disabled"}, status=404)
        return Response.text(
            await trio.to_thread.run_sync(self.metrics.collect),
            content_type="text/plain; version=0.0.4; charset=utf-8",
        )

    async def _handle_instantiate(self, request: Request) -> Response:
        sender, msg = self._parse_body(request)
        result = await trio.to_thread.run_sync(self.contract.instantiate, sender, msg)
        return Response.json(result.to_dict())

    async def _handle_execute(self, request: Request) -> Response:
        sender, msg = self._parse_body(request)
        result = await trio.to_thread.run_sync(self.contract.execute, sender, msg)
        return Response.json(result.to_dict())

    async def _handle_query(self, request: Request) -> Response:
        _, msg = self._parse_body(request, need_sender=False)
        return Response.json(await trio.to_thread.run_sync(self.contract.query, msg))

    async def _handle_migrate(self, request: Request) -> Response:
        sender, msg = self._parse_body(request)
        result = await trio.to_thread.run_sync(self.contract.migrate, sender, msg)
        return Response.json(result.to_dict())
