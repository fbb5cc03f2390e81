"""
Contact Name Resolution

Resolves participant ids (``5511999999999@c.us``) to display names with a
per-session cache. A name is looked up at most once per id: failures are
cached as the bare number so an unreachable contact never triggers a
second engine query.
"""

import asyncio
import logging
from typing import Any, Iterable

from wa_connector.engine.ports import EngineClient, serialize_id

logger = logging.getLogger(__name__)

DEFAULT_CONTACT_NAME = "Contact"


def parse_number_from_wid(wid: str | None) -> str:
    """Return the part of a WhatsApp id before ``@`` (the whole id if there is none)."""
    wid = wid or ""
    index = wid.find("@")
    return wid[:index] if index > 0 else wid


def best_contact_name(contact: dict[str, Any] | None) -> str:
    """
    Pick a display name for a contact.

    Priority: name > pushname > shortName > verifiedName > number > "Contact".
    """
    contact = contact or {}
    contact_id = serialize_id(contact.get("id"))
    return (
        contact.get("name")
        or contact.get("pushname")
        or contact.get("shortName")
        or contact.get("verifiedName")
        or parse_number_from_wid(contact_id if isinstance(contact_id, str) else None)
        or DEFAULT_CONTACT_NAME
    )


class NameResolver:
    """
    Cached wid -> display name lookup for one tenant session.

    The cache is never evicted while the session lives. Concurrent
    resolutions of the same uncached id share a single engine query.
    """

    def __init__(self, client: EngineClient):
        self._client = client
        self._cache: dict[str, str] = {}
        self._pending: dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._cache)

    async def resolve(self, wid: str | None) -> str | None:
        """Return the display name for ``wid``; None for an empty id."""
        if not wid:
            return None
        if wid in self._cache:
            return self._cache[wid]

        task = self._pending.get(wid)
        if task is None:
            task = asyncio.create_task(self._lookup(wid))
            self._pending[wid] = task
            task.add_done_callback(lambda _: self._pending.pop(wid, None))
        return await asyncio.shield(task)

    async def resolve_many(self, wids: Iterable[str]) -> dict[str, str | None]:
        """Resolve several ids concurrently."""
        wids = list(dict.fromkeys(wids))
        names = await asyncio.gather(*(self.resolve(wid) for wid in wids))
        return dict(zip(wids, names))

    async def _lookup(self, wid: str) -> str:
        try:
            contact = await self._client.get_contact_by_id(wid)
            name = best_contact_name(contact)
        except Exception as e:
            logger.debug(f"Contact lookup failed for {wid}, using number: {e}")
            name = parse_number_from_wid(wid)
        self._cache[wid] = name
        return name
