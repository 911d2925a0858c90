"""
Minimal signaling client for the relay.

Useful as a command-line probe:

    python -m signalrelay.client ws://localhost:8080/ --name alice
"""
import argparse
import asyncio
import json
import sys
from typing import Any, Dict, List, Optional

import websockets

from .core.logging import LoggerMixin, setup_logging
from .relay.envelope import JOIN, SIGNAL_SERVER_CONNECTED, USER_LIST, encode_envelope


class SignalingClient(LoggerMixin):
    """One participant's connection to the relay."""

    def __init__(self, url: str):
        super().__init__()
        self.url = url
        self.user_id: Optional[str] = None
        self.websocket = None

    async def connect(self, timeout: float = 5.0) -> str:
        """Open the socket and wait for the relay to assign our id."""
        self.websocket = await websockets.connect(self.url)
        notice = await self.wait_for(SIGNAL_SERVER_CONNECTED, timeout=timeout)
        self.user_id = notice['userId']
        self.log_info("🔗 [Client] Connected to relay", {"url": self.url, "user_id": self.user_id})
        return self.user_id

    async def send(self, message: Dict[str, Any]):
        await self.websocket.send(encode_envelope(message))

    async def join(self, user_name: str):
        await self.send({'type': JOIN, 'senderId': self.user_id, 'userName': user_name})

    async def send_signal(self, message_type: str, recipient_id: str, **payload):
        """Send an opaque signaling message (offer, answer, iceCandidate, ...)."""
        message = {'type': message_type, 'senderId': self.user_id, 'recipientId': recipient_id}
        message.update(payload)
        await self.send(message)

    async def receive(self, timeout: Optional[float] = None) -> Dict[str, Any]:
        raw = await asyncio.wait_for(self.websocket.recv(), timeout=timeout)
        return json.loads(raw)

    async def wait_for(self, message_type: str, timeout: Optional[float] = 5.0) -> Dict[str, Any]:
        """Skip messages until one of ``message_type`` arrives."""
        async def _wait():
            while True:
                message = await self.receive()
                if message.get('type') == message_type:
                    return message
        return await asyncio.wait_for(_wait(), timeout=timeout)

    async def wait_for_roster(self, predicate=None, timeout: Optional[float] = 5.0) -> List[Dict[str, str]]:
        """Wait for a roster update, optionally one matching ``predicate``."""
        async def _wait():
            while True:
                message = await self.wait_for(USER_LIST, timeout=None)
                users = message.get('users', [])
                if predicate is None or predicate(users):
                    return users
        return await asyncio.wait_for(_wait(), timeout=timeout)

    async def close(self):
        if self.websocket is not None:
            await self.websocket.close()
            self.websocket = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


async def probe(url: str, name: str):
    async with SignalingClient(url) as client:
        print(f"Assigned id: {client.user_id}")
        await client.join(name)
        while True:
            message = await client.receive()
            if message.get('type') == USER_LIST:
                print("Roster:")
                for user in message.get('users', []):
                    marker = " (me)" if user.get('userId') == client.user_id else ""
                    print(f"  {user.get('userId')}  {user.get('userName') or '-'}{marker}")
            else:
                print(json.dumps(message))


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Signaling relay probe client")
    parser.add_argument("url", help="Relay WebSocket URL, e.g. ws://localhost:8080/")
    parser.add_argument("--name", default="probe", help="Display name to join with")
    parser.add_argument("--log-level", dest="log_level", default="WARNING")
    args = parser.parse_args(argv)

    setup_logging(args.log_level, log_file=None)
    try:
        asyncio.run(probe(args.url, args.name))
    except KeyboardInterrupt:
        pass
    except (OSError, websockets.exceptions.WebSocketException) as e:
        print(f"❌ Connection error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
