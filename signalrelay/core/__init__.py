"""
Core module for the signaling relay.
Contains configuration, logging, and common exceptions.
"""

from .config import RelayConfig
from .logging import setup_logging, debug_log, LoggerMixin
from .exceptions import (
    SignalRelayError,
    MalformedEnvelope,
    UnroutableEnvelope,
    UnknownRecipient,
    StaleSender,
    SendFailure,
    DuplicateParticipant
)

__all__ = [
    'RelayConfig',
    'setup_logging',
    'debug_log',
    'LoggerMixin',
    'SignalRelayError',
    'MalformedEnvelope',
    'UnroutableEnvelope',
    'UnknownRecipient',
    'StaleSender',
    'SendFailure',
    'DuplicateParticipant'
]
