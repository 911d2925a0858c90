"""
Signaling relay: participant lifecycle and message routing.
"""
import asyncio
import datetime
import inspect
import uuid
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Set

from ..core.config import RelayConfig
from ..core.exceptions import (
    MalformedEnvelope,
    SendFailure,
    SignalRelayError,
    StaleSender,
    UnknownRecipient,
    UnroutableEnvelope
)
from ..core.logging import LoggerMixin
from .connection import Connection
from .envelope import (
    JOIN,
    Envelope,
    ForwardRequest,
    JoinRequest,
    Unroutable,
    connected_notice,
    decode_envelope,
    encode_envelope,
    error_notice,
    roster_update
)
from .registry import Participant, ParticipantRegistry


def default_id_factory() -> str:
    return str(uuid.uuid4())


class Relay(LoggerMixin):
    """Owns the participant registry and implements the signaling protocol.

    Per participant the relay-side lifecycle is
    connecting -> connected (anonymous) -> connected (named) -> disconnected.
    A join may arrive any number of times; the last name wins.

    Every failure is scoped to one message or one connection: bad payloads
    and routing misses are dropped (and reported to drop listeners), and a
    failed send is handled as if the peer had disconnected.
    """

    def __init__(self, config: Optional[RelayConfig] = None,
                 id_factory: Optional[Callable[[], str]] = None):
        super().__init__()
        self.config = config or RelayConfig()
        self.registry = ParticipantRegistry()
        self.id_factory = id_factory or default_id_factory

        # type -> handler, checked before sender/recipient forwarding
        self.structural_handlers: Dict[str, Callable] = {}
        self.register_handler(JOIN, self.handle_join)

        # Observability hook for silent drops
        self.drop_listeners: Set[Callable] = set()

        # Keeps roster broadcasts from interleaving
        self._roster_lock = asyncio.Lock()

        self.stats = {
            'connections': 0,
            'disconnects': 0,
            'messages_received': 0,
            'messages_forwarded': 0,
            'joins': 0,
            'roster_broadcasts': 0,
            'send_failures': 0,
            'drops': defaultdict(int),
            'start_time': datetime.datetime.now()
        }

    # Handler registration

    def register_handler(self, message_type: str, handler: Callable):
        """Register a structural handler; it takes priority over forwarding."""
        self.structural_handlers[message_type] = handler
        self.log_debug("Structural handler registered", {"type": message_type})

    def unregister_handler(self, message_type: str):
        self.structural_handlers.pop(message_type, None)

    def add_drop_listener(self, callback: Callable):
        """Add a ``callback(error, payload)`` invoked for every dropped message."""
        self.drop_listeners.add(callback)

    def remove_drop_listener(self, callback: Callable):
        self.drop_listeners.discard(callback)

    # Connection lifecycle

    def _new_id(self) -> str:
        participant_id = self.id_factory()
        while participant_id in self.registry:
            participant_id = self.id_factory()
        return participant_id

    async def on_connect(self, connection: Connection) -> Participant:
        """Register a new connection and tell it its assigned id."""
        participant = Participant(id=self._new_id(), connection=connection)
        self.registry.add(participant)
        self.stats['connections'] += 1

        self.log_info("🔗 [Relay] Participant connected", {
            "participant_id": participant.id,
            "remote": connection.remote,
            "participants": len(self.registry)
        })

        await self.send_to(participant, connected_notice(participant.id))
        return participant

    async def on_disconnect(self, participant_id: str) -> bool:
        """Remove a participant and push the new roster to everyone left.

        Returns False (and broadcasts nothing) if the participant was
        already gone.
        """
        if self._forget(participant_id) is None:
            return False
        await self.broadcast_roster()
        return True

    def _forget(self, participant_id: str) -> Optional[Participant]:
        participant = self.registry.remove(participant_id)
        if participant is None:
            return None

        self.stats['disconnects'] += 1
        self.log_info("🔌 [Relay] Participant disconnected", {
            "participant_id": participant_id,
            "display_name": participant.display_name,
            "participants": len(self.registry)
        })
        return participant

    # Inbound messages

    async def on_message(self, raw: Any, participant_id: Optional[str] = None):
        """Decode one inbound frame and dispatch it.

        ``participant_id`` is the connection the frame arrived on. It is
        used for bookkeeping and malformed-envelope notices only; routing
        always goes by the envelope's own senderId/recipientId.
        """
        self.stats['messages_received'] += 1
        self.registry.touch(participant_id)

        try:
            envelope = decode_envelope(raw)
        except MalformedEnvelope as e:
            self.log_warning("⚠️ [Relay] Dropping malformed envelope", {
                "participant_id": participant_id,
                "error": str(e)
            })
            self._drop(e, raw)
            await self._notify_malformed(participant_id, e)
            return

        await self.dispatch(envelope)

    async def dispatch(self, envelope: Envelope):
        message_type = envelope.type if isinstance(envelope.type, str) else None
        handler = self.structural_handlers.get(message_type)

        if handler:
            result = handler(envelope)
            if inspect.isawaitable(result):
                await result
        elif isinstance(envelope, ForwardRequest):
            await self.route(envelope)
        elif isinstance(envelope, (JoinRequest, Unroutable)):
            self._drop(UnroutableEnvelope("No handler and no sender/recipient pair", {
                "type": envelope.type
            }), envelope.raw)
        else:
            raise TypeError(f"Unknown envelope variant: {type(envelope).__name__}")

    async def handle_join(self, envelope: JoinRequest):
        """Set the sender's display name, then broadcast the roster."""
        user_name = envelope.user_name
        if user_name is not None and not isinstance(user_name, str):
            user_name = str(user_name)

        if not self.registry.rename(envelope.sender_id, user_name):
            self._drop(StaleSender("Join from unknown sender", {"sender_id": envelope.sender_id}), envelope.raw)
            return

        self.stats['joins'] += 1
        self.log_info("👋 [Relay] Participant joined", {
            "participant_id": envelope.sender_id,
            "display_name": user_name
        })

        await self.broadcast_roster()

    async def route(self, envelope: ForwardRequest) -> bool:
        """Forward an opaque envelope verbatim to its recipient."""
        if envelope.sender_id not in self.registry:
            self._drop(StaleSender("Message from unknown sender", {
                "sender_id": envelope.sender_id,
                "type": envelope.type
            }), envelope.raw)
            return False

        recipient = self.registry.get(envelope.recipient_id)
        if recipient is None:
            self._drop(UnknownRecipient("Recipient not registered", {
                "recipient_id": envelope.recipient_id,
                "type": envelope.type
            }), envelope.raw)
            return False

        delivered = await self.send_to(recipient, envelope.raw)
        if delivered:
            self.stats['messages_forwarded'] += 1
            self.log_debug("📨 [Relay] Forwarded envelope", {
                "type": envelope.type,
                "sender_id": envelope.sender_id,
                "recipient_id": envelope.recipient_id
            })
        return delivered

    # Outbound messages

    async def send_to(self, participant: Participant, message: Dict[str, Any]) -> bool:
        """Send to one participant; a failed send counts as its disconnect."""
        if await self._send(participant, encode_envelope(message)):
            return True
        await self._evict([participant.id])
        return False

    async def broadcast(self, message: Dict[str, Any]) -> List[str]:
        """Send to every participant; returns the ids whose send failed.

        Failed participants are removed and the remaining ones get a fresh
        roster.
        """
        failed = await self._fan_out(message)
        await self._evict(failed)
        return failed

    async def _evict(self, participant_ids: List[str]) -> bool:
        """Remove participants whose send failed, close them, resend the roster."""
        removed = [p for p in (self._forget(pid) for pid in participant_ids) if p is not None]
        if not removed:
            return False
        await self._close_connections(removed)
        await self.broadcast_roster()
        return True

    async def broadcast_roster(self):
        """Send the full participant list to every participant.

        If some sends fail, those participants are dropped and the smaller
        roster goes out again, until a round completes cleanly. Dropped
        participants have their transport closed once the lock is released.
        """
        evicted = []
        async with self._roster_lock:
            while len(self.registry):
                roster = self.registry.roster()
                failed = await self._fan_out(roster_update(roster))
                self.stats['roster_broadcasts'] += 1

                self.log_debug("📡 [Relay] Roster broadcast", {
                    "participants": len(roster),
                    "failed": failed
                })

                if not failed:
                    break
                for participant_id in failed:
                    participant = self._forget(participant_id)
                    if participant is not None:
                        evicted.append(participant)

        await self._close_connections(evicted)

    async def _fan_out(self, message: Dict[str, Any]) -> List[str]:
        participants = self.registry.participants()
        if not participants:
            return []

        text = encode_envelope(message)
        results = await asyncio.gather(*(self._send(participant, text) for participant in participants))
        return [participant.id for participant, ok in zip(participants, results) if not ok]

    async def _send(self, participant: Participant, text: str) -> bool:
        try:
            await participant.connection.send(text)
            return True
        except SendFailure as e:
            self.stats['send_failures'] += 1
            self.log_warning("❌ [Relay] Send failed", {
                "participant_id": participant.id,
                "error": str(e)
            })
            return False

    async def _notify_malformed(self, participant_id: Optional[str], error: MalformedEnvelope):
        if not self.config.notify_malformed:
            return
        participant = self.registry.get(participant_id)
        if participant is not None:
            await self.send_to(participant, error_notice(error.reason, str(error)))

    def _drop(self, error: SignalRelayError, payload: Any):
        self.stats['drops'][error.reason] += 1
        self.log_debug(f"🗑️ [Relay] Dropped message ({error.reason})", error.details)

        for callback in list(self.drop_listeners):
            try:
                callback(error, payload)
            except Exception as e:
                self.log_error("Error in drop listener", {
                    "reason": error.reason,
                    "error": str(e),
                    "error_type": type(e).__name__
                })

    # Status & shutdown

    def get_participant(self, participant_id: str) -> Optional[Participant]:
        return self.registry.get(participant_id)

    def get_status(self) -> Dict[str, Any]:
        """Get relay status."""
        uptime = datetime.datetime.now() - self.stats['start_time']
        return {
            'participants': len(self.registry),
            'roster': self.registry.roster(),
            'structural_handlers': list(self.structural_handlers.keys()),
            'stats': {
                'connections': self.stats['connections'],
                'disconnects': self.stats['disconnects'],
                'messages_received': self.stats['messages_received'],
                'messages_forwarded': self.stats['messages_forwarded'],
                'joins': self.stats['joins'],
                'roster_broadcasts': self.stats['roster_broadcasts'],
                'send_failures': self.stats['send_failures'],
                'drops': dict(self.stats['drops']),
                'uptime_seconds': uptime.total_seconds()
            }
        }

    async def close_all(self):
        """Close every participant connection."""
        participants = self.registry.participants()
        self.log_info("🧹 [Relay] Closing all connections", {"participants": len(participants)})

        await self._close_connections(participants)

    async def _close_connections(self, participants: List[Participant]):
        if participants:
            await asyncio.gather(*(self._close(participant) for participant in participants))

    async def _close(self, participant: Participant):
        try:
            await asyncio.wait_for(participant.connection.close(), timeout=self.config.send_timeout or None)
        except Exception as e:
            self.log_warning("Error closing connection", {
                "participant_id": participant.id,
                "error": str(e),
                "error_type": type(e).__name__
            })
