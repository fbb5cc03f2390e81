"""
Test Contact Name Resolution

Tests for display-name priority, the per-session cache and the fallback
to the bare number when a lookup fails.
"""

import asyncio

import pytest

from wa_connector.contacts import NameResolver, best_contact_name, parse_number_from_wid
from wa_connector.engine import InMemoryEngineClient

WID = "5511988887777@c.us"


@pytest.fixture
def client():
    return InMemoryEngineClient("acme")


@pytest.fixture
def resolver(client):
    return NameResolver(client)


class TestBestContactName:
    """Tests for display-name priority"""

    def test_name_wins(self):
        contact = {"id": WID, "name": "Maria Silva", "pushname": "Maria", "shortName": "Mari"}
        assert best_contact_name(contact) == "Maria Silva"

    def test_pushname_then_short_then_verified(self):
        assert best_contact_name({"id": WID, "pushname": "Maria", "shortName": "Mari"}) == "Maria"
        assert best_contact_name({"id": WID, "shortName": "Mari", "verifiedName": "ACME"}) == "Mari"
        assert best_contact_name({"id": WID, "verifiedName": "ACME Ltda"}) == "ACME Ltda"

    def test_number_from_serialized_id(self):
        assert best_contact_name({"id": {"_serialized": WID}}) == "5511988887777"

    def test_default_when_nothing_known(self):
        assert best_contact_name({}) == "Contact"
        assert best_contact_name(None) == "Contact"


class TestParseNumber:
    def test_strips_domain(self):
        assert parse_number_from_wid(WID) == "5511988887777"

    def test_without_domain(self):
        assert parse_number_from_wid("5511988887777") == "5511988887777"

    def test_empty(self):
        assert parse_number_from_wid(None) == ""


class TestNameResolver:
    """Tests for cached resolution"""

    @pytest.mark.asyncio
    async def test_empty_id_resolves_to_none(self, resolver, client):
        assert await resolver.resolve("") is None
        assert await resolver.resolve(None) is None
        assert not client.contact_lookups

    @pytest.mark.asyncio
    async def test_resolves_and_caches(self, resolver, client):
        client.add_contact({"id": {"_serialized": WID}, "pushname": "Maria"})

        assert await resolver.resolve(WID) == "Maria"
        assert await resolver.resolve(WID) == "Maria"

        assert client.contact_lookups[WID] == 1
        assert len(resolver) == 1

    @pytest.mark.asyncio
    async def test_cache_is_not_refreshed(self, resolver, client):
        client.add_contact({"id": {"_serialized": WID}, "pushname": "Maria"})
        await resolver.resolve(WID)

        client.contacts[WID]["pushname"] = "Maria Renamed"

        assert await resolver.resolve(WID) == "Maria"

    @pytest.mark.asyncio
    async def test_failed_lookup_falls_back_to_number_once(self, resolver, client):
        client.failing_contacts.add(WID)

        assert await resolver.resolve(WID) == "5511988887777"
        assert await resolver.resolve(WID) == "5511988887777"

        assert client.contact_lookups[WID] == 1

    @pytest.mark.asyncio
    async def test_unknown_contact_falls_back_to_number(self, resolver):
        assert await resolver.resolve("5511911112222@c.us") == "5511911112222"

    @pytest.mark.asyncio
    async def test_concurrent_resolutions_share_one_query(self, resolver, client):
        client.add_contact({"id": {"_serialized": WID}, "name": "Maria"})

        names = await asyncio.gather(*(resolver.resolve(WID) for _ in range(5)))

        assert names == ["Maria"] * 5
        assert client.contact_lookups[WID] == 1

    @pytest.mark.asyncio
    async def test_resolve_many(self, resolver, client):
        other = "5511911112222@c.us"
        client.add_contact({"id": {"_serialized": WID}, "name": "Maria"})

        names = await resolver.resolve_many([WID, other, WID])

        assert names == {WID: "Maria", other: "5511911112222"}
        assert client.contact_lookups[WID] == 1
