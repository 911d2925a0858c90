"""
WebRTC signaling relay.

Browser peers connect over WebSocket, get an id, announce a display name
and exchange offers, answers and ICE candidates through the relay.
"""

from .core import RelayConfig
from .relay import Relay, Participant, ParticipantRegistry
from .server import SignalingRelayServer, create_app

__version__ = "0.1.0"

__all__ = [
    'RelayConfig',
    'Relay',
    'Participant',
    'ParticipantRegistry',
    'SignalingRelayServer',
    'create_app'
]
