# Transport Layer
# HTTP routes, Server-Sent Events framing and the FastAPI application
# Session and engine logic stay independent of the web framework

from wa_connector.transport.app import AppSettings, app, create_app

__all__ = ["AppSettings", "app", "create_app"]
