"""
Connector Exceptions

Every error the connector raises on purpose derives from ConnectorError.
The HTTP layer maps them to status codes via ``status_code``:

- SessionNotReadyError: tenant exists but is not ONLINE (client error)
- EngineError: a single engine call failed
- EngineNotFoundError: the engine has no such chat/message/contact;
  answered like any other engine failure (500)
- MediaFetchError: the outbound media download failed
"""


class ConnectorError(Exception):
    """Base exception for connector errors."""
    status_code: int = 500


class SessionNotReadyError(ConnectorError):
    """Tenant session is not ONLINE."""
    status_code = 400

    def __init__(self, tenant_id: str, state: str):
        self.tenant_id = tenant_id
        self.state = state
        super().__init__(f"Session for tenant {tenant_id} is not ONLINE (state: {state})")


class EngineError(ConnectorError):
    """An engine call failed."""
    pass


class EngineNotFoundError(EngineError):
    """The engine does not know the requested object."""
    pass


class MediaFetchError(ConnectorError):
    """Downloading media from a URL failed."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to fetch media from {url}: {reason}")
