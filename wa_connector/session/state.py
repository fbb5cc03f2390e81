"""Connection state of a tenant session."""

from enum import Enum


class ConnectionState(str, Enum):
    """
    Coarse connection state.

    OFFLINE -> RECONNECTING   pairing token issued, disconnect detected
    RECONNECTING -> ONLINE    engine ready
    OFFLINE -> ONLINE         engine ready with restored credentials
    RECONNECTING -> OFFLINE   re-initialization failed, auth failure
    ONLINE -> RECONNECTING    disconnect, new pairing token
    """
    OFFLINE = "OFFLINE"
    RECONNECTING = "RECONNECTING"
    ONLINE = "ONLINE"
