# cdc/stub/server.py
"""
Stub provider served to the client under test during a consumer run.

create_stub_app() builds a catch-all FastAPI app that answers from a frozen
InteractionStore. StubServer binds the listening socket itself (so a busy
port fails fast) and runs the app under uvicorn on a background thread.
"""

from __future__ import annotations

import logging
import socket
import threading
import time
from typing import Dict, List, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from cdc.core.errors import ContractError, PortInUse, UnmatchedStubRequest
from cdc.schemas import CapturedRequest, Interaction, ResponsePattern
from cdc.services.interaction_store import InteractionStore
from cdc.services.matcher import render, render_mapping
from shared.http import decode_body

log = logging.getLogger(__name__)



class AtomicCounter:
    """Lock-guarded counter; increments from concurrent requests are never lost."""

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def increment(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class InvocationLedger:
    """Per-interaction hit counts plus every request no interaction matched."""

    def __init__(self, interactions: List[Interaction]):
        self._counters: Dict[tuple, AtomicCounter] = {i.key: AtomicCounter() for i in interactions}
        self._unmatched: List[UnmatchedStubRequest] = []
        self._lock = threading.Lock()

    def hit(self, interaction: Interaction) -> int:
        return self._counters[interaction.key].increment()

    def miss(self, err: UnmatchedStubRequest) -> None:
        with self._lock:
            self._unmatched.append(err)

    def count(self, interaction: Interaction) -> int:
        return self._counters[interaction.key].value

    @property
    def unmatched(self) -> List[UnmatchedStubRequest]:
        with self._lock:
            return list(self._unmatched)


async def _capture(request: Request) -> CapturedRequest:
    raw = await request.body()
    return CapturedRequest(
        method=request.method,
        path=request.url.path,
        query=dict(request.query_params),
        headers=dict(request.headers),
        body=decode_body(raw, request.headers.get("content-type")),
    )


def _render_response(pattern: ResponsePattern) -> Response:
    headers = render_mapping(pattern.headers)
    if pattern.body is None:
        return Response(status_code=pattern.status, headers=headers)
    body = render(pattern.body)
    content_type = next((v for k, v in headers.items() if k.lower() == "content-type"), None)
    if isinstance(body, str) and content_type and "json" not in content_type.lower():
        return Response(content=body, status_code=pattern.status, headers=headers)
    return JSONResponse(content=body, status_code=pattern.status, headers=headers)


def create_stub_app(store: InteractionStore, ledger: InvocationLedger) -> FastAPI:
    app = FastAPI(title="Contract stub", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.store = store
    app.state.ledger = ledger

    async def stub(request: Request):
        captured = await _capture(request)
        interaction = app.state.store.find_matching_stub(captured)
        if interaction is None:
            err = UnmatchedStubRequest(captured.method, captured.path, captured.query, captured.body)
            app.state.ledger.miss(err)
            log.warning("unmatched stub request", extra={"extra": err.to_dict()})
            return JSONResponse(
                status_code=500,
                content={"error": "unmatched request", "detail": err.message, "request": err.to_dict()},
            )
        hits = app.state.ledger.hit(interaction)
        log.info(
            "stub request matched",
            extra={"extra": {"method": captured.method, "path": captured.path,
                             "interaction": interaction.description, "hits": hits}},
        )
        return _render_response(interaction.response)

    # methods=None: the route matches every verb, including non-standard ones
    app.add_route("/{full_path:path}", stub, include_in_schema=False)
    return app


class StubServer:
    """Scoped uvicorn server on a socket bound up front; stop() always releases the port."""

    def __init__(self, app: FastAPI, host: str = "127.0.0.1", port: int = 0, start_timeout: float = 5.0):
        self.app = app
        self.host = host
        self.port = port
        self.start_timeout = start_timeout
        self._sock: Optional[socket.socket] = None
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def _bind(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
            sock.listen(128)
        except OSError as e:
            sock.close()
            raise PortInUse(self.host, self.port, f"({e.strerror or e})") from e
        return sock

    def start(self) -> "StubServer":
        self._sock = self._bind()
        self.port = self._sock.getsockname()[1]
        config = uvicorn.Config(self.app, log_config=None, access_log=False, lifespan="off")
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=self._server.run, kwargs={"sockets": [self._sock]}, name="cdc-stub", daemon=True
        )
        self._thread.start()

        deadline = time.monotonic() + self.start_timeout
        while not self._server.started:
            if not self._thread.is_alive() or time.monotonic() > deadline:
                self.stop()
                raise ContractError(f"Stub server failed to start on {self.url}")
            time.sleep(0.01)
        log.info("stub server started", extra={"extra": {"url": self.url}})
        return self

    def stop(self) -> None:
        try:
            if self._server is not None:
                self._server.should_exit = True
            if self._thread is not None:
                self._thread.join(timeout=self.start_timeout)
        finally:
            if self._sock is not None:
                self._sock.close()
                self._sock = None
            self._server = None
            self._thread = None
            log.info("stub server stopped", extra={"extra": {"url": self.url}})

    def __enter__(self) -> "StubServer":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
