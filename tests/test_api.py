"""
Test HTTP API

End-to-end tests of the FastAPI routes against the in-memory engine.
"""

import base64

import httpx
import pytest
from fastapi.testclient import TestClient

from wa_connector.engine import InMemoryEngineFactory, MediaPayload
from wa_connector.media import MediaFetcher
from wa_connector.transport import AppSettings, create_app

GROUP_ID = "120363000000000001@g.us"
MARIA = "5511988887777@c.us"
JOAO = "5511977776666@c.us"


@pytest.fixture
def factory():
    return InMemoryEngineFactory(ready_on_initialize=True)


@pytest.fixture
def app(factory):
    return create_app(engine_factory=factory, settings=AppSettings(stream_keepalive_seconds=0.05))


@pytest.fixture
def api(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def online(api, factory):
    """Start tenant "acme", wait until ONLINE and seed it with chats and contacts"""
    response = api.post("/sessions/acme/start", params={"wait": "true"})
    assert response.json()["status"] == "ONLINE"

    engine = factory.clients["acme"]
    engine.add_contact({"id": {"_serialized": MARIA}, "pushname": "Maria", "name": None})
    engine.add_contact({"id": {"_serialized": JOAO}, "shortName": "João"})
    engine.add_chat({
        "id": {"_serialized": MARIA, "user": "5511988887777"},
        "name": "Maria",
        "isGroup": False,
        "unreadCount": 2,
        "timestamp": 300,
    })
    engine.add_chat({
        "id": {"_serialized": GROUP_ID, "user": "120363000000000001"},
        "name": "Suporte",
        "isGroup": True,
        "archived": True,
        "timestamp": 100,
        "lastMessage": {"id": "m0", "body": "segunda via do boleto", "author": JOAO, "timestamp": 500},
        "participants": [
            {"id": {"_serialized": MARIA}, "isAdmin": False, "isSuperAdmin": True},
            {"id": {"_serialized": JOAO}, "isAdmin": False},
        ],
    })
    engine.add_chat({"id": "status@broadcast", "name": "Status", "isAnnouncement": True, "timestamp": 999})
    return engine


class TestServiceRoutes:
    def test_banner(self, api):
        response = api.get("/")
        assert response.status_code == 200
        assert response.text.startswith("WA QR Connector up")

    def test_health(self, api, online):
        body = api.get("/health").json()

        assert body["status"] == "healthy"
        assert body["sessions"] == 1
        assert body["online"] == 1


class TestSessionRoutes:
    """Tests for /sessions lifecycle routes"""

    def test_start_without_wait_reports_current_state(self, api):
        response = api.post("/sessions/acme/start")

        assert response.json() == {"ok": True, "tenant": "acme", "status": "OFFLINE"}

    def test_list_and_status(self, api, online):
        assert api.get("/sessions").json() == [{"tenant": "acme", "status": "ONLINE"}]

        status = api.get("/sessions/status").json()
        assert status["ok"] is True
        assert status["status"] == "online"
        assert status["sessions"] == [{"tenant": "acme", "status": "ONLINE"}]

        assert api.get("/sessions/acme/status").json() == {"ok": True, "tenant": "acme", "status": "ONLINE"}

    def test_unknown_tenant_status_is_404(self, api):
        response = api.get("/sessions/nobody/status")

        assert response.status_code == 404
        assert response.json() == {"ok": False, "error": "Session not found"}
        assert api.get("/sessions/nobody/debug").status_code == 404

    def test_debug(self, api, online):
        body = api.get("/sessions/acme/debug").json()

        assert body["ok"] is True
        assert body["status"] == "ONLINE"
        assert body["hasQR"] is False
        assert body["listeners"] == 0
        assert body["cacheSize"] == 0

    def test_stop(self, api, online, factory):
        assert api.post("/sessions/acme/stop").json() == {"ok": True, "tenant": "acme"}
        assert api.get("/sessions").json() == []
        assert factory.clients["acme"].destroyed is True

    def test_stop_unknown_tenant(self, api):
        assert api.post("/sessions/nobody/stop").json() == {"ok": True, "tenant": "nobody"}

    def test_stream_rejects_unknown_types(self, api):
        response = api.get("/sessions/acme/stream", params={"types": "status,typing"})

        assert response.status_code == 400
        assert response.json()["ok"] is False


class TestNotReady:
    """Data-plane routes require an ONLINE session"""

    def test_unknown_tenant_is_booted_and_rejected(self, api, app):
        response = api.get("/sessions/ghost/chats")

        assert response.status_code == 400
        assert response.json()["ok"] is False
        assert "not ONLINE" in response.json()["error"]
        assert "ghost" in app.state.registry

    def test_body_is_validated_before_the_session_is_touched(self, api, app):
        response = api.post("/sessions/ghost/messages", json={"to": "5511988887777"})

        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "to and body are required"}
        assert "ghost" not in app.state.registry


class TestContactRoutes:
    def test_contact(self, api, online):
        body = api.get(f"/sessions/acme/contacts/{MARIA}").json()

        assert body == {
            "ok": True,
            "id": MARIA,
            "name": "Maria",
            "number": "5511988887777",
            "raw": {"name": None, "pushname": "Maria", "shortName": None, "verifiedName": None},
        }

    def test_unknown_contact_has_no_raw(self, api, online):
        body = api.get("/sessions/acme/contacts/5511900000000@c.us").json()

        assert body["name"] == "5511900000000"
        assert body["raw"] is None

    def test_contact_map(self, api, online):
        body = api.get("/sessions/acme/contacts", params={"ids": f"{MARIA}, {JOAO},"}).json()

        assert body == {"ok": True, "map": {MARIA: "Maria", JOAO: "João"}}

    def test_participants(self, api, online):
        body = api.get(f"/sessions/acme/chats/{GROUP_ID}/participants").json()

        assert body["items"] == [
            {"id": MARIA, "name": "Maria", "isAdmin": True},
            {"id": JOAO, "name": "João", "isAdmin": False},
        ]

    def test_participants_of_direct_chat_is_empty(self, api, online):
        assert api.get(f"/sessions/acme/chats/{MARIA}/participants").json() == {"ok": True, "items": []}

    def test_unknown_chat_is_engine_failure(self, api, online):
        response = api.get("/sessions/acme/chats/nobody@c.us/participants")

        assert response.status_code == 500
        assert response.json() == {"ok": False, "error": "Chat nobody@c.us not found"}

    def test_unknown_chat_history_is_engine_failure(self, api, online):
        response = api.get("/sessions/acme/chats/nope@c.us/messages")

        assert response.status_code == 500
        assert response.json()["ok"] is False


class TestChatRoutes:
    """Tests for chat listing, photos, history and read receipts"""

    def test_list_excludes_announcements_and_sorts_newest_first(self, api, online):
        body = api.get("/sessions/acme/chats").json()

        assert body["total"] == 2
        assert body["offset"] == 0
        assert body["limit"] == 30
        assert [c["id"] for c in body["items"]] == [GROUP_ID, MARIA]
        assert body["items"][0]["lastMessage"]["authorName"] == "João"

    def test_filters(self, api, online):
        def ids(**params):
            return [c["id"] for c in api.get("/sessions/acme/chats", params=params).json()["items"]]

        assert ids(isGroup="true") == [GROUP_ID]
        assert ids(isGroup="false") == [MARIA]
        assert ids(archived="false") == [MARIA]
        assert ids(unreadOnly="true") == [MARIA]
        assert ids(isGroup="maybe") == [GROUP_ID, MARIA]
        assert ids(q="BOLETO") == [GROUP_ID]
        assert ids(q="5511988887777") == [MARIA]

    def test_pagination_is_clamped(self, api, online):
        body = api.get("/sessions/acme/chats", params={"limit": 1000, "offset": 1}).json()

        assert body["limit"] == 200
        assert [c["id"] for c in body["items"]] == [MARIA]
        assert body["total"] == 2

    def test_invalid_limit_is_400(self, api, online):
        response = api.get("/sessions/acme/chats", params={"limit": "many"})

        assert response.status_code == 400
        assert response.json()["ok"] is False

    def test_photo(self, api, online):
        online.profile_pics[MARIA] = "https://pps.example/maria.jpg"

        body = api.get(f"/sessions/acme/chats/{MARIA}/photo").json()

        assert body == {"ok": True, "chatId": MARIA, "url": "https://pps.example/maria.jpg"}

    def test_messages(self, api, online):
        online.add_message({
            "id": {"_serialized": "false_g_1"},
            "from": GROUP_ID,
            "to": "me@c.us",
            "author": MARIA,
            "body": "oi",
            "type": "chat",
            "timestamp": 10,
        })
        online.add_message({"id": "false_g_2", "from": GROUP_ID, "author": JOAO, "body": "tudo bem?"})

        items = api.get(f"/sessions/acme/chats/{GROUP_ID}/messages", params={"limit": 1}).json()
        assert [m["id"] for m in items] == ["false_g_2"]

        items = api.get(f"/sessions/acme/chats/{GROUP_ID}/messages").json()
        assert [(m["id"], m["authorName"]) for m in items] == [("false_g_1", "Maria"), ("false_g_2", "João")]

    def test_read(self, api, online):
        assert api.post(f"/sessions/acme/chats/{MARIA}/read").json() == {"ok": True}
        assert online.seen == [MARIA]
        assert online.chats[MARIA]["unreadCount"] == 0


class TestMessageRoutes:
    """Tests for sending messages and downloading media"""

    def test_send_text_normalizes_bare_number(self, api, online):
        response = api.post("/sessions/acme/messages", json={"to": "5511988887777", "body": "oi"})

        assert response.status_code == 200
        assert response.json()["ok"] is True
        assert response.json()["messageId"].startswith("true_5511988887777@c.us_")
        assert online.sent[-1] == {"to": MARIA, "content": "oi", "options": {}}

    def test_send_quoted_reply(self, api, online):
        api.post("/sessions/acme/messages", json={"to": GROUP_ID, "body": "ok", "quotedMsgId": "false_g_1"})

        assert online.sent[-1]["to"] == GROUP_ID
        assert online.sent[-1]["options"] == {"quotedMessageId": "false_g_1"}

    def test_media_validation(self, api, online):
        no_to = api.post("/sessions/acme/messages/media", json={"base64": "AAAA"})
        no_media = api.post("/sessions/acme/messages/media", json={"to": MARIA})
        no_filename = api.post(
            "/sessions/acme/messages/media", json={"to": MARIA, "base64": "AAAA", "mimetype": "image/png"}
        )

        assert no_to.json()["error"] == "to is required"
        assert no_media.json()["error"] == "mediaUrl or base64 is required"
        assert no_filename.json()["error"] == "mimetype and filename are required with base64"
        assert {r.status_code for r in (no_to, no_media, no_filename)} == {400}

    def test_send_base64_media(self, api, online):
        response = api.post("/sessions/acme/messages/media", json={
            "to": "5511988887777",
            "base64": "iVBOR",
            "mimetype": "image/png",
            "filename": "logo.png",
            "caption": "nosso logo",
        })

        assert response.json()["ok"] is True
        sent = online.sent[-1]
        assert sent["to"] == MARIA
        assert sent["content"] == MediaPayload(mimetype="image/png", data="iVBOR", filename="logo.png")
        assert sent["options"] == {"caption": "nosso logo"}

    def test_send_media_from_url(self, api, app, online):
        def cdn(request):
            return httpx.Response(200, content=b"%PDF-1.7", headers={"content-type": "application/pdf"})

        app.state.media_fetcher = MediaFetcher(
            client=httpx.AsyncClient(transport=httpx.MockTransport(cdn))
        )

        response = api.post("/sessions/acme/messages/media", json={
            "to": MARIA,
            "mediaUrl": "https://cdn.example.com/files/boleto.pdf?sig=1",
        })

        assert response.json()["ok"] is True
        media = online.sent[-1]["content"]
        assert media.mimetype == "application/pdf"
        assert media.filename == "boleto.pdf"
        assert base64.b64decode(media.data) == b"%PDF-1.7"
        assert online.sent[-1]["options"] == {}

    def test_media_url_failure_is_500(self, api, app, online):
        app.state.media_fetcher = MediaFetcher(
            client=httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(403)))
        )

        response = api.post("/sessions/acme/messages/media", json={
            "to": MARIA,
            "mediaUrl": "https://cdn.example.com/private.png",
        })

        assert response.status_code == 500
        assert response.json()["ok"] is False
        assert "HTTP 403" in response.json()["error"]

    def test_download_media(self, api, online):
        online.add_message({"id": "false_m_1", "from": MARIA, "hasMedia": True, "type": "audio"})
        online.media["false_m_1"] = MediaPayload(mimetype="audio/ogg", data="T2dn", filename=None)

        body = api.get("/sessions/acme/messages/false_m_1/media").json()

        assert body == {
            "ok": True,
            "messageId": "false_m_1",
            "mimetype": "audio/ogg",
            "filename": "file",
            "data": "T2dn",
        }

    def test_download_media_missing(self, api, online):
        online.add_message({"id": "false_m_2", "from": MARIA, "hasMedia": False, "body": "oi"})

        for message_id in ("false_m_2", "nope"):
            response = api.get(f"/sessions/acme/messages/{message_id}/media")
            assert response.status_code == 404
            assert response.json()["ok"] is False
