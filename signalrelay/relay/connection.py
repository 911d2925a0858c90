"""
Connection substrate used by the relay to push envelopes to participants.
"""
import asyncio
from typing import Optional

from aiohttp import web

from ..core.exceptions import SendFailure


class Connection:
    """Interface for a bidirectional, message-framed connection."""

    @property
    def closed(self) -> bool:
        raise NotImplementedError

    @property
    def remote(self) -> Optional[str]:
        return None

    async def send(self, text: str):
        """Send one text frame. Raises SendFailure if the peer is gone."""
        raise NotImplementedError

    async def close(self):
        raise NotImplementedError


class WebSocketConnection(Connection):
    """Connection backed by an aiohttp WebSocketResponse."""

    def __init__(self, ws: web.WebSocketResponse, remote: Optional[str] = None,
                 send_timeout: Optional[float] = None):
        self.ws = ws
        self._remote = remote
        self.send_timeout = send_timeout

    @property
    def closed(self) -> bool:
        return self.ws.closed

    @property
    def remote(self) -> Optional[str]:
        return self._remote

    async def send(self, text: str):
        if self.ws.closed:
            raise SendFailure("WebSocket already closed", {"remote": self._remote})
        try:
            if self.send_timeout:
                await asyncio.wait_for(self.ws.send_str(text), timeout=self.send_timeout)
            else:
                await self.ws.send_str(text)
        except asyncio.TimeoutError:
            raise SendFailure("Send timed out", {"remote": self._remote, "timeout": self.send_timeout})
        except (ConnectionError, RuntimeError) as e:
            raise SendFailure("Send failed", {
                "remote": self._remote,
                "error": str(e),
                "error_type": type(e).__name__
            })

    async def close(self):
        if not self.ws.closed:
            await self.ws.close()

    def __repr__(self):
        return f"WebSocketConnection(remote={self._remote!r}, closed={self.closed})"
