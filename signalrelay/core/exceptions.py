"""
Custom exception classes for the signaling relay.

Routing and envelope errors double as drop reasons: the relay never raises
them to a client, it hands them to drop listeners and counts them by
``reason``.
"""


class SignalRelayError(Exception):
    """Base exception for the signaling relay."""

    reason = 'error'

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{super().__str__()} - {self.details}"
        return super().__str__()


class EnvelopeError(SignalRelayError):
    """Raised when an inbound envelope cannot be processed."""
    pass


class MalformedEnvelope(EnvelopeError):
    """Raised when an inbound payload is not a decodable JSON object."""

    reason = 'malformed-envelope'


class RoutingError(SignalRelayError):
    """Raised when an envelope cannot be routed."""

    reason = 'unroutable'


class UnroutableEnvelope(RoutingError):
    """No structural handler and no sender/recipient pair."""
    pass


class UnknownRecipient(RoutingError):
    """Recipient id is not in the registry."""

    reason = 'unknown-recipient'


class StaleSender(RoutingError):
    """Sender id is not (or no longer) in the registry."""

    reason = 'stale-sender'


class TransportError(SignalRelayError):
    """Raised when there's a transport-related error."""
    pass


class SendFailure(TransportError):
    """Raised when a send hits a connection that is already gone."""

    reason = 'send-failure'


class RegistryError(SignalRelayError):
    """Raised when there's a registry-related error."""
    pass


class DuplicateParticipant(RegistryError):
    """Raised when a participant id is registered twice."""
    pass
