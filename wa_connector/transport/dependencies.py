"""Request-scoped accessors for the objects the app keeps on ``app.state``."""

from fastapi import Request

from wa_connector.media.fetcher import MediaFetcher
from wa_connector.session.registry import SessionRegistry


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def get_media_fetcher(request: Request) -> MediaFetcher:
    return request.app.state.media_fetcher
