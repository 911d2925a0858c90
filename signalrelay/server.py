"""
Signaling relay server.

Serves one WebSocket endpoint that browser peers connect to, plus small
JSON endpoints for status and ICE server configuration.
"""
import argparse
import asyncio
import json
import sys
from typing import List, Optional, Set

from aiohttp import web

from .core.config import RelayConfig
from .core.logging import setup_logging, debug_log
from .relay import Relay, WebSocketConnection


class SignalingRelayServer:
    """Wires the relay to aiohttp WebSocket connections."""

    def __init__(self, config: Optional[RelayConfig] = None, relay: Optional[Relay] = None):
        self.config = config or RelayConfig()
        self.relay = relay or Relay(self.config)
        self._cleanup_tasks: Set[asyncio.Task] = set()

        debug_log(f"🚀 [Server] Signaling relay initialized", {"config": str(self.config)})

    async def handle_connection(self, request: web.Request) -> web.WebSocketResponse:
        """Run one participant's connection from upgrade to close."""
        ws = web.WebSocketResponse(
            heartbeat=self.config.heartbeat_or_none(),
            max_msg_size=self.config.max_message_size
        )
        await ws.prepare(request)

        connection = WebSocketConnection(ws, remote=request.remote, send_timeout=self.config.send_timeout)
        participant = await self.relay.on_connect(connection)

        if participant.id not in self.relay.registry:
            # Connected notice failed; the relay already dropped and closed it
            await connection.close()
            return ws

        try:
            async for msg in ws:
                if msg.type in (web.WSMsgType.TEXT, web.WSMsgType.BINARY):
                    try:
                        await self.relay.on_message(msg.data, participant.id)
                    except Exception as e:
                        debug_log(f"❌ [Server] Error handling message", {
                            "participant_id": participant.id,
                            "error": str(e),
                            "error_type": type(e).__name__
                        }, "ERROR")
                elif msg.type == web.WSMsgType.ERROR:
                    debug_log(f"❌ [Server] WebSocket error", {
                        "participant_id": participant.id,
                        "error": str(ws.exception())
                    }, "WARNING")
                    break
        finally:
            await self._disconnect(participant.id)

        return ws

    async def _disconnect(self, participant_id: str):
        """Run disconnect cleanup so that cancelling the handler can't cut it short.

        aiohttp may cancel the handler task when the peer goes away; the
        roster broadcast to the remaining participants must still happen.
        """
        task = asyncio.create_task(self.relay.on_disconnect(participant_id))
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)
        await asyncio.shield(task)

    def get_server_status(self) -> dict:
        """Get server status."""
        return {
            'server_type': 'signaling-relay',
            'ws_path': self.config.ws_path,
            'relay': self.relay.get_status()
        }

    async def cleanup(self):
        """Close every participant socket."""
        debug_log(f"🧹 [Server] Cleaning up server")
        if self._cleanup_tasks:
            await asyncio.gather(*self._cleanup_tasks, return_exceptions=True)
        await self.relay.close_all()
        debug_log(f"🧹 [Server] Server cleanup completed")


SERVER_KEY = web.AppKey("server", SignalingRelayServer)


async def handle_websocket(request: web.Request):
    return await request.app[SERVER_KEY].handle_connection(request)


async def handle_status(request: web.Request):
    """Handle status request."""
    server = request.app[SERVER_KEY]
    return web.Response(
        content_type="application/json",
        text=json.dumps(server.get_server_status(), default=str)
    )


async def handle_ice_servers(request: web.Request):
    """ICE servers for the browser's RTCPeerConnection."""
    server = request.app[SERVER_KEY]
    return web.json_response({'iceServers': server.config.get_ice_servers()})


async def _on_shutdown(app: web.Application):
    await app[SERVER_KEY].cleanup()


def create_app(config: Optional[RelayConfig] = None, server: Optional[SignalingRelayServer] = None) -> web.Application:
    """Build the aiohttp application."""
    server = server or SignalingRelayServer(config)

    app = web.Application()
    app[SERVER_KEY] = server

    app.router.add_get("/status", handle_status)
    app.router.add_get("/ice-servers", handle_ice_servers)
    app.router.add_get(server.config.ws_path, handle_websocket)

    app.on_shutdown.append(_on_shutdown)
    return app


async def serve(config: RelayConfig):
    """Run the relay until cancelled."""
    app = create_app(config)

    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, config.host, config.port)
    debug_log(f"🌐 [Main] Starting signaling relay on {config.host}:{config.port}{config.ws_path}")
    await site.start()

    try:
        await asyncio.Future()
    finally:
        await runner.cleanup()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="WebRTC signaling relay")
    parser.add_argument("--host", help="Interface to bind (RELAY_HOST)")
    parser.add_argument("--port", type=int, help="Port to listen on (RELAY_PORT)")
    parser.add_argument("--path", dest="ws_path", help="WebSocket path (RELAY_WS_PATH)")
    parser.add_argument("--heartbeat", type=float, help="Ping interval in seconds, 0 disables (RELAY_HEARTBEAT)")
    parser.add_argument("--log-level", dest="log_level", help="Log level (RELAY_LOG_LEVEL)")
    parser.add_argument("--log-file", dest="log_file", default="signalrelay.log",
                        help="Log file name inside RELAY_LOG_DIR; empty for console only")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main server function."""
    args = parse_args(argv)
    config = RelayConfig(
        host=args.host,
        port=args.port,
        ws_path=args.ws_path,
        heartbeat=args.heartbeat,
        log_level=args.log_level
    )

    setup_logging(config.log_level, log_file=args.log_file or None)
    debug_log(f"🚀 [Main] Starting signaling relay", {"config": str(config)})

    try:
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        debug_log(f"👋 [Main] Interrupted, shutting down")
    except OSError as e:
        debug_log(f"❌ [Main] Server startup error", {
            "error": str(e),
            "error_type": type(e).__name__
        }, "ERROR")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
