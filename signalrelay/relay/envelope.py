"""
Signaling envelope codec.

Inbound payloads are decoded into one of three variants so the relay can
dispatch on the variant instead of on a raw ``type`` string:

- ``JoinRequest``: structural message handled by the relay itself
- ``ForwardRequest``: opaque message routed by senderId/recipientId
- ``Unroutable``: anything else, dropped by the relay

Forwarded envelopes keep the original decoded object in ``raw`` and are
re-sent verbatim; the relay never looks inside offer/answer/candidate
payloads.
"""
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from ..core.exceptions import MalformedEnvelope


# Message types, as spoken by the browser client
SIGNAL_SERVER_CONNECTED = 'signalServerConnected'
JOIN = 'join'
USER_LIST = 'userList'
OFFER = 'offer'
ANSWER = 'answer'
ICE_CANDIDATE = 'iceCandidate'
ERROR = 'error'


@dataclass(frozen=True)
class JoinRequest:
    sender_id: Optional[str]
    user_name: Optional[str]
    raw: Dict[str, Any]

    type = JOIN


@dataclass(frozen=True)
class ForwardRequest:
    type: Any
    sender_id: str
    recipient_id: str
    raw: Dict[str, Any]


@dataclass(frozen=True)
class Unroutable:
    type: Any
    raw: Dict[str, Any]


Envelope = Union[JoinRequest, ForwardRequest, Unroutable]


def _non_empty_id(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


def parse_payload(payload: Union[str, bytes, bytearray]) -> Dict[str, Any]:
    """Decode a text or binary frame into a JSON object."""
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = bytes(payload).decode('utf-8')
        except UnicodeDecodeError as e:
            raise MalformedEnvelope("Payload is not valid UTF-8", {"error": str(e)})

    if not isinstance(payload, str):
        raise MalformedEnvelope("Unsupported payload type", {"payload_type": type(payload).__name__})

    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedEnvelope("Payload is not valid JSON", {"error": str(e)})

    if not isinstance(data, dict):
        raise MalformedEnvelope("Payload is not a JSON object", {"json_type": type(data).__name__})

    return data


def classify(data: Dict[str, Any]) -> Envelope:
    """Turn a decoded envelope into its variant."""
    message_type = data.get('type')

    if message_type == JOIN:
        return JoinRequest(
            sender_id=_non_empty_id(data.get('senderId')),
            user_name=data.get('userName'),
            raw=data
        )

    sender_id = _non_empty_id(data.get('senderId'))
    recipient_id = _non_empty_id(data.get('recipientId'))

    if sender_id and recipient_id:
        return ForwardRequest(
            type=message_type,
            sender_id=sender_id,
            recipient_id=recipient_id,
            raw=data
        )

    return Unroutable(type=message_type, raw=data)


def decode_envelope(payload: Union[str, bytes, bytearray]) -> Envelope:
    """Decode a raw frame; raises MalformedEnvelope when it can't."""
    return classify(parse_payload(payload))


def encode_envelope(message: Dict[str, Any]) -> str:
    return json.dumps(message, separators=(',', ':'))


def connected_notice(user_id: str) -> Dict[str, Any]:
    return {'type': SIGNAL_SERVER_CONNECTED, 'userId': user_id}


def roster_update(entries: List[Dict[str, str]]) -> Dict[str, Any]:
    return {'type': USER_LIST, 'users': entries}


def error_notice(reason: str, detail: Optional[str] = None) -> Dict[str, Any]:
    message = {'type': ERROR, 'reason': reason}
    if detail:
        message['detail'] = detail
    return message
