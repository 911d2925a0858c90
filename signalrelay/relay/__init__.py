"""
Relay module for the signaling server.
Handles the participant registry, envelope decoding and message routing.
"""

from .connection import Connection, WebSocketConnection
from .envelope import decode_envelope, encode_envelope
from .registry import Participant, ParticipantRegistry
from .relay import Relay

__all__ = [
    'Connection',
    'WebSocketConnection',
    'decode_envelope',
    'encode_envelope',
    'Participant',
    'ParticipantRegistry',
    'Relay'
]
