"""
Configuration management for the signaling relay.
"""
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class RelayConfig:
    """Relay configuration settings.

    Explicit keyword arguments win; anything left at its default is read
    from the environment in ``__post_init__``.
    """

    # Listener
    host: Optional[str] = None
    port: Optional[int] = None
    ws_path: Optional[str] = None

    # Connection handling
    heartbeat: Optional[float] = None  # seconds, 0 disables
    send_timeout: Optional[float] = None
    max_message_size: Optional[int] = None
    notify_malformed: Optional[bool] = None

    # Logging
    log_level: Optional[str] = None

    # ICE servers handed to browser clients
    stun_url: Optional[str] = None
    turn_address: Optional[str] = None
    turn_username: Optional[str] = None
    turn_password: Optional[str] = None

    ice_servers: List[Dict[str, Any]] = field(default_factory=list)

    def __post_init__(self):
        """Initialize configuration from environment variables."""
        if self.host is None:
            self.host = os.environ.get('RELAY_HOST', '0.0.0.0')
        if self.port is None:
            self.port = int(os.environ.get('RELAY_PORT', 8080))
        if self.ws_path is None:
            self.ws_path = os.environ.get('RELAY_WS_PATH', '/')
        if not self.ws_path.startswith('/'):
            self.ws_path = '/' + self.ws_path

        if self.heartbeat is None:
            self.heartbeat = float(os.environ.get('RELAY_HEARTBEAT', 30.0))
        if self.send_timeout is None:
            self.send_timeout = float(os.environ.get('RELAY_SEND_TIMEOUT', 5.0))
        if self.max_message_size is None:
            self.max_message_size = int(os.environ.get('RELAY_MAX_MESSAGE_SIZE', 1024 * 1024))
        if self.notify_malformed is None:
            self.notify_malformed = _env_bool('RELAY_NOTIFY_MALFORMED', False)

        if self.log_level is None:
            self.log_level = os.environ.get('RELAY_LOG_LEVEL', 'INFO')

        if self.stun_url is None:
            self.stun_url = os.environ.get('STUN_URL', 'stun:stun.l.google.com:19302')
        if self.turn_address is None:
            self.turn_address = os.environ.get('TURN_ADDRESS')
        if self.turn_username is None:
            self.turn_username = os.environ.get('TURN_USERNAME', 'user')
        if self.turn_password is None:
            self.turn_password = os.environ.get('TURN_PASSWORD', 'password')

        self._build_ice_servers()

    def _build_ice_servers(self):
        """Build the ICE server list advertised to clients."""
        ice_servers = []

        if self.stun_url:
            ice_servers.append({'urls': self.stun_url})

        if self.turn_address:
            address = self.turn_address
            if not address.startswith(('turn:', 'turns:')):
                address = f"turn:{address}"
            ice_servers.append({
                'urls': address,
                'username': self.turn_username,
                'credential': self.turn_password
            })

        self.ice_servers = ice_servers

    def get_ice_servers(self) -> List[Dict[str, Any]]:
        """Get ICE servers in RTCConfiguration.iceServers shape."""
        return [dict(server) for server in self.ice_servers]

    def heartbeat_or_none(self) -> Optional[float]:
        """Heartbeat interval for aiohttp, or None when disabled."""
        return self.heartbeat if self.heartbeat and self.heartbeat > 0 else None

    def __str__(self) -> str:
        """String representation of configuration."""
        return (f"RelayConfig(host={self.host}, port={self.port}, ws_path={self.ws_path}, "
                f"heartbeat={self.heartbeat}, turn={'on' if self.turn_address else 'off'})")
