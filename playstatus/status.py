#!/usr/bin/env python3
# Play Status
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Play Status service (playstatus)

Hosts a StatusCore: subscribes to the jukebox's now-playing channel over
MQTT, keeps the systemd status line showing the current track, and pushes
every update to UI clients over WebSocket.

Port: 8780

Endpoints:
  POST /status/start   {"key": "..."}  — subscribe with an application key
  POST /status/stop                    — drop the subscription
  GET  /status/state                   — last StateUpdate ({} when none)
  GET  /status                         — service / indicator summary
  GET  /ws                             — push feed of status_update messages
"""

import asyncio
import json
import logging
import os
import signal

from aiohttp import web

from .lib.broadcast import STATUS_UPDATE, Broadcaster
from .lib.config import cfg
from .lib.core import StatusCore
from .lib.indicator import SystemdIndicator
from .lib.notifier import (
    DEFAULT_ACTION,
    DEFAULT_CONTENT,
    DEFAULT_ICON,
    DEFAULT_TICKER,
    StateNotifier,
)
from .lib.transport import MqttTransport
from .lib.watchdog import sd_notify, watchdog_loop

logger = logging.getLogger("playstatus")

STATUS_PORT = 8780


class StatusService:
    """aiohttp host for StatusCore."""

    def __init__(self, transport_factory=MqttTransport, indicator=None):
        self.port = int(cfg("status", "port", default=STATUS_PORT))
        self._transport_factory = transport_factory
        self.broadcaster = Broadcaster()
        self.indicator = indicator or SystemdIndicator()
        self.notifier = StateNotifier(
            self.broadcaster,
            self.indicator,
            ticker_template=cfg("notification", "ticker", default=DEFAULT_TICKER),
            content_template=cfg("notification", "content", default=DEFAULT_CONTENT),
            icon=cfg("notification", "icon", default=DEFAULT_ICON),
            action=cfg("notification", "action_url", default=DEFAULT_ACTION),
        )
        self.core: StatusCore | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._ws_clients: set[web.WebSocketResponse] = set()
        self._runner: web.AppRunner | None = None
        self._watchdog_task: asyncio.Task | None = None
        self._push_tasks: set[asyncio.Task] = set()

    # ── App setup ──

    def create_app(self) -> web.Application:
        """Build the aiohttp app.  Must be called with the service's loop running."""
        self._loop = asyncio.get_running_loop()
        self.core = StatusCore(self._transport_factory(self._loop), self.notifier)
        self.broadcaster.register(STATUS_UPDATE, self._on_status_update)

        app = web.Application()
        app.router.add_get("/ws", self._handle_ws)
        app.router.add_post("/status/start", self._handle_start)
        app.router.add_post("/status/stop", self._handle_stop)
        app.router.add_get("/status/state", self._handle_state)
        app.router.add_get("/status", self._handle_status)
        app.on_shutdown.append(self._on_app_shutdown)
        return app

    async def start(self):
        """Start listening, then subscribe with the configured key, if any."""
        app = self.create_app()
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, "0.0.0.0", self.port)
        await site.start()
        logger.info("Play Status: HTTP + WebSocket on port %d", self.port)

        key = os.getenv("PLAY_APPLICATION_KEY") or cfg("status", "application_key", default="")
        if key:
            self.core.start(key)
        else:
            logger.info("No application key configured, waiting for /status/start")

        self._watchdog_task = asyncio.create_task(watchdog_loop())

    async def run(self):
        """Convenience entry-point: start + wait for signal + stop."""
        await self.start()
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop_event.set)
        try:
            await stop_event.wait()
        finally:
            await self.shutdown()

    async def shutdown(self):
        """Clean up resources."""
        sd_notify("STOPPING=1")
        if self._watchdog_task:
            self._watchdog_task.cancel()
            self._watchdog_task = None
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    async def _on_app_shutdown(self, app: web.Application):
        if self.core:
            # close() joins the worker thread; keep it off the loop
            await asyncio.get_running_loop().run_in_executor(None, self.core.close)
        self.broadcaster.unregister(STATUS_UPDATE, self._on_status_update)
        for task in list(self._push_tasks):
            task.cancel()
        for ws in list(self._ws_clients):
            await ws.close()
        self._ws_clients.clear()

    # ── Broadcast → WebSocket ──

    def _on_status_update(self, payload: dict):
        # Broadcasts arrive on whichever thread delivered the event
        if self._loop is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._schedule_push, payload)

    def _schedule_push(self, payload: dict):
        task = asyncio.ensure_future(self.push_status_update(payload))
        self._push_tasks.add(task)
        task.add_done_callback(self._push_tasks.discard)

    async def push_status_update(self, data: dict, reason: str = "update"):
        """Push a status_update to all connected WebSocket clients."""
        if not self._ws_clients:
            return

        message = json.dumps({
            "type": "status_update",
            "reason": reason,
            "data": data,
        })

        disconnected = set()
        # Clients connect and disconnect while we await each send
        for ws in list(self._ws_clients):
            try:
                await ws.send_str(message)
            except Exception:
                disconnected.add(ws)

        self._ws_clients -= disconnected

        if self._ws_clients:
            logger.info("Pushed status update to %d clients", len(self._ws_clients))

    async def _handle_ws(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        self._ws_clients.add(ws)
        logger.info("WebSocket client connected (%d total)", len(self._ws_clients))

        try:
            state = self.core.state if self.core else None
            if state is not None:
                await ws.send_json({
                    "type": "status_update",
                    "reason": "client_connect",
                    "data": state.to_dict(),
                })

            # Push-only, client messages are ignored
            async for msg in ws:
                pass
        finally:
            self._ws_clients.discard(ws)
            logger.info("WebSocket client disconnected (%d remaining)",
                        len(self._ws_clients))

        return ws

    # ── HTTP route handlers ──

    def _cors_headers(self):
        return {
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type",
        }

    async def _handle_start(self, request: web.Request) -> web.Response:
        try:
            data = await request.json()
        except Exception:
            data = {}
        key = data.get("key") if isinstance(data, dict) else None
        if not isinstance(key, str) or not key:
            return web.json_response(
                {"status": "error", "message": "missing key"},
                status=400, headers=self._cors_headers())
        self.core.start(key)
        return web.json_response({"status": "ok"}, headers=self._cors_headers())

    async def _handle_stop(self, request: web.Request) -> web.Response:
        self.core.stop()
        return web.json_response({"status": "ok"}, headers=self._cors_headers())

    async def _handle_state(self, request: web.Request) -> web.Response:
        state = self.core.state
        return web.json_response(
            state.to_dict() if state else {}, headers=self._cors_headers())

    async def _handle_status(self, request: web.Request) -> web.Response:
        content = getattr(self.indicator, "content", None)
        return web.json_response({
            "active": self.core.active,
            "key": self.core.credential,
            "ws_clients": len(self._ws_clients),
            "indicator": content.to_dict() if content else None,
        }, headers=self._cors_headers())


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    asyncio.run(StatusService().run())


if __name__ == "__main__":
    main()
