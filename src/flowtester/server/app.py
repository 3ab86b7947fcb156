# src/flowtester/server/app.py
"""Starlette ASGI application for the flowtester control surface.

Routes:
    POST /flow-tester/executeAction/{action}           run one command
    GET  /flow-tester/testCase                         list loaded test cases
    GET  /flow-tester/runTestCase/{suite_id}/{test_id} run one test case
    GET  /health                                       liveness
    WS   /flow-tester/notify                           real-time notifications

Usage:
    from flowtester.server.app import FlowTesterServer

    server = FlowTesterServer(orchestrator, bus)
    app = server.app
"""

from __future__ import annotations

import asyncio
import json
from contextlib import suppress
from typing import Any

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket, WebSocketDisconnect

from flowtester import __version__
from flowtester.contracts.events import NOTIFICATION_EVENTS
from flowtester.core.events import EventBus
from flowtester.core.logging import get_logger
from flowtester.engine.orchestrator import TestOrchestrator
from flowtester.server.commands import CommandDispatcher, CommandError

slog = get_logger(__name__)

# Per-subscriber backlog before notifications are dropped.
_QUEUE_SIZE = 1000


class NotificationHub:
    """Fans bus events out to websocket subscribers.

    Each subscriber owns a bounded queue bound to the loop it connected on.
    """

    def __init__(self, bus: EventBus) -> None:
        self._subscribers: dict[asyncio.Queue[dict[str, Any]], asyncio.AbstractEventLoop] = {}
        for event_type in NOTIFICATION_EVENTS:
            bus.subscribe(event_type, self.publish)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def connect(self) -> asyncio.Queue[dict[str, Any]]:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=_QUEUE_SIZE)
        self._subscribers[queue] = asyncio.get_running_loop()
        return queue

    def disconnect(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        self._subscribers.pop(queue, None)

    def publish(self, event: Any) -> None:
        message = {"topic": event.topic, "data": event.to_dict()}
        for queue, loop in list(self._subscribers.items()):
            loop.call_soon_threadsafe(self._enqueue, queue, message)

    @staticmethod
    def _enqueue(queue: asyncio.Queue[dict[str, Any]], message: dict[str, Any]) -> None:
        try:
            queue.put_nowait(message)
        except asyncio.QueueFull:
            slog.warning("notification_dropped", topic=message["topic"])


class FlowTesterServer:
    """Control server bound to one orchestrator.

    Args:
        orchestrator: Orchestrator the commands drive
        bus: Bus the orchestrator emits notifications on
    """

    def __init__(self, orchestrator: TestOrchestrator, bus: EventBus) -> None:
        self._orchestrator = orchestrator
        self._dispatcher = CommandDispatcher(orchestrator)
        self._hub = NotificationHub(bus)
        self._app = self._create_app()

    def _create_app(self) -> Starlette:
        routes = [
            Route("/health", self._health_endpoint, methods=["GET"]),
            Route("/flow-tester/executeAction/{action}", self._execute_action_endpoint, methods=["POST"]),
            Route("/flow-tester/testCase", self._test_case_endpoint, methods=["GET"]),
            Route("/flow-tester/runTestCase/{suite_id}/{test_id}", self._run_test_case_endpoint, methods=["GET"]),
            WebSocketRoute("/flow-tester/notify", self._notify_endpoint),
        ]
        return Starlette(routes=routes)

    @property
    def app(self) -> Starlette:
        return self._app

    @property
    def hub(self) -> NotificationHub:
        return self._hub

    async def _health_endpoint(self, request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "status": "healthy",
                "version": __version__,
                "state": str(self._orchestrator.state),
                "running": self._orchestrator.running,
            }
        )

    async def _execute_action_endpoint(self, request: Request) -> JSONResponse:
        command = request.path_params["action"]
        body = await request.body()
        payload: Any = None
        if body.strip():
            try:
                payload = json.loads(body)
            except json.JSONDecodeError as e:
                return self._error(CommandError(f"invalid JSON body: {e.msg}"))
        return await self._dispatch(command, payload)

    async def _test_case_endpoint(self, request: Request) -> JSONResponse:
        return await self._dispatch("listTestCases", None)

    async def _run_test_case_endpoint(self, request: Request) -> JSONResponse:
        payload = {"suiteID": request.path_params["suite_id"], "testID": request.path_params["test_id"]}
        return await self._dispatch("runTestCase", payload)

    async def _dispatch(self, command: str, payload: Any) -> JSONResponse:
        try:
            result = await self._dispatcher.dispatch(command, payload)
        except CommandError as e:
            return self._error(e)
        return JSONResponse(result)

    def _error(self, error: CommandError) -> JSONResponse:
        return JSONResponse({"error": str(error)}, status_code=error.status_code)

    async def _notify_endpoint(self, websocket: WebSocket) -> None:
        await websocket.accept()
        queue = self._hub.connect()
        sender = asyncio.create_task(self._forward(websocket, queue))
        slog.debug("notify_connected", subscribers=self._hub.subscriber_count)
        try:
            # Inbound frames are ignored; reading detects the disconnect.
            while (await websocket.receive())["type"] != "websocket.disconnect":
                pass
        finally:
            sender.cancel()
            with suppress(asyncio.CancelledError, WebSocketDisconnect):
                await sender
            self._hub.disconnect(queue)
            slog.debug("notify_disconnected", subscribers=self._hub.subscriber_count)

    @staticmethod
    async def _forward(websocket: WebSocket, queue: asyncio.Queue[dict[str, Any]]) -> None:
        while True:
            await websocket.send_json(await queue.get())


def create_app(orchestrator: TestOrchestrator, bus: EventBus) -> Starlette:
    """Create the ASGI application for ``orchestrator``.

    Returns:
        Starlette ASGI application with the server on ``app.state.server``
    """
    server = FlowTesterServer(orchestrator, bus)
    server.app.state.server = server
    return server.app
