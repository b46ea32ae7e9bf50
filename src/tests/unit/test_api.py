"""Tests for the vaultmirror REST API."""

import re

import pytest
from fastapi.testclient import TestClient

from vaultmirror.api.app import create_app
from vaultmirror.core.remote import RemoteStoreError
from vaultmirror.core.sync import set_engine
from vaultmirror.core.types import PlatformRole, VaultRole
from vaultmirror.storage import UsersRepo, VaultsRepo, get_connection

API_KEY = "test-key"


@pytest.fixture
def team_vault(store):
    """Non-default vault rooted at remote folder 'team-root'."""
    with get_connection(store.db_path) as conn:
        return VaultsRepo(conn).create("team", "Team", "team-root")


@pytest.fixture
def grant(store):
    """Create a user with an optional vault role."""

    def _grant(user_id, vault_id=None, role=None, platform_role=PlatformRole.MEMBER):
        with get_connection(store.db_path) as conn:
            UsersRepo(conn).upsert(user_id, role=platform_role)
            if vault_id and role:
                VaultsRepo(conn).upsert_user_role(user_id, vault_id, role)

    return _grant


@pytest.fixture
def client(monkeypatch, make_engine, vault, remote):
    """Test client with an engine over the fake remote store."""
    remote.add_note("root", "pub", "Public.md", "Hello [[Draft]]")
    remote.add_note("root", "drf", "Draft.md", "---\ndraft: true\n---\nwip")
    remote.add_note("root", "unl", "Unlisted.md", "---\nunlisted: true\n---\nhidden")
    remote.add_note("attachments", "att", "pic.png", b"PNG", mime_type="image/png")
    remote.add_note("team-root", "tm1", "Plan.md", "team plan")

    monkeypatch.setattr("vaultmirror.api.middleware.VAULTMIRROR_API_KEY", API_KEY)
    monkeypatch.setattr("vaultmirror.api.middleware.VAULTMIRROR_ALLOW_NO_AUTH", False)
    set_engine(make_engine())
    yield TestClient(create_app(), headers={"X-API-Key": API_KEY})
    set_engine(None)


class TestAuthentication:
    """Tests for the API key middleware."""

    def test_health_is_public(self, client):
        """Health endpoints need no key."""
        response = client.get("/api/v1/health/live", headers={"X-API-Key": ""})
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_missing_key(self, client):
        """Requests without a key are rejected."""
        response = client.get("/api/v1/vaults", headers={"X-API-Key": ""})
        assert response.status_code == 401

    def test_invalid_key(self, client):
        """Requests with a wrong key are rejected."""
        response = client.get("/api/v1/vaults", headers={"X-API-Key": "wrong"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid API key"

    def test_unconfigured_key_fails_closed(self, client, monkeypatch):
        """Without a configured key the API refuses requests."""
        monkeypatch.setattr("vaultmirror.api.middleware.VAULTMIRROR_API_KEY", None)

        assert client.get("/api/v1/vaults").status_code == 503

    def test_unconfigured_key_allowed(self, client, monkeypatch):
        """Auth can be switched off explicitly."""
        monkeypatch.setattr("vaultmirror.api.middleware.VAULTMIRROR_API_KEY", None)
        monkeypatch.setattr("vaultmirror.api.middleware.VAULTMIRROR_ALLOW_NO_AUTH", True)

        assert client.get("/api/v1/vaults").status_code == 200


class TestHealth:
    """Tests for the health endpoint."""

    def test_health(self, client):
        """Health reports the remote store."""
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["components"]["remote"]["healthy"] is True


class TestVaults:
    """Tests for vault listing."""

    def test_anonymous_sees_default(self, client, team_vault):
        """Anonymous callers only see the default vault."""
        response = client.get("/api/v1/vaults")

        assert response.status_code == 200
        assert [v["slug"] for v in response.json()] == ["notes"]
        assert response.json()[0]["role"] is None

    def test_member_sees_memberships(self, client, team_vault, grant):
        """Members see vaults they hold a role in, with that role."""
        grant("alice", team_vault.id, VaultRole.EDITOR)

        response = client.get("/api/v1/vaults", headers={"X-User-ID": "alice"})

        roles = {v["slug"]: v["role"] for v in response.json()}
        assert roles == {"notes": None, "team": "editor"}


class TestNotes:
    """Tests for note endpoints."""

    def test_list_notes_hides_drafts_and_unlisted(self, client):
        """Only listable notes are returned."""
        response = client.get("/api/v1/vaults/notes/notes")

        assert response.status_code == 200
        body = response.json()
        assert [n["id"] for n in body["notes"]] == ["drive-pub"]
        assert body["stale"] is False
        assert body["folder_tree"]["notes"] == [{"id": "drive-pub", "title": "Public"}]

    def test_get_note_by_legacy_id(self, client):
        """Legacy ids resolve to the note."""
        client.get("/api/v1/vaults/notes/notes")

        response = client.get("/api/v1/vaults/notes/notes/note-1")

        assert response.status_code == 200
        assert response.json()["id"] == "drive-pub"

    def test_unlisted_note_by_link(self, client, grant, vault):
        """Unlisted notes open for vault members."""
        grant("bob", vault.id, VaultRole.VIEWER)

        response = client.get(
            "/api/v1/vaults/notes/notes/drive-unl", headers={"X-User-ID": "bob"}
        )

        assert response.status_code == 200

    def test_draft_hidden_from_anonymous(self, client):
        """Drafts are not found for anonymous callers."""
        assert client.get("/api/v1/vaults/notes/notes/drive-drf").status_code == 404

    def test_draft_visible_to_editor(self, client, grant, vault):
        """Editors can open drafts."""
        grant("carol", vault.id, VaultRole.EDITOR)

        response = client.get(
            "/api/v1/vaults/notes/notes/drive-drf", headers={"X-User-ID": "carol"}
        )

        assert response.status_code == 200
        assert response.json()["publish_state"]["is_draft"] is True

    def test_unknown_note(self, client):
        """Unknown notes return 404."""
        assert client.get("/api/v1/vaults/notes/notes/nope").status_code == 404

    def test_search_index(self, client):
        """The search index holds listable notes only."""
        response = client.get("/api/v1/vaults/notes/search-index")

        entries = response.json()["entries"]
        assert [e["id"] for e in entries] == ["drive-pub"]
        assert entries[0]["content"] == "hello   draft  "

    def test_private_vault_hidden(self, client, team_vault):
        """Vaults the caller cannot view look missing."""
        assert client.get("/api/v1/vaults/team/notes").status_code == 404

    def test_unknown_vault(self, client):
        """Unknown vaults return 404."""
        assert client.get("/api/v1/vaults/missing/notes").status_code == 404

    def test_member_reads_private_vault(self, client, team_vault, grant):
        """Vault viewers can read a non-default vault."""
        grant("dave", team_vault.id, VaultRole.VIEWER)

        response = client.get(
            "/api/v1/vaults/team/notes", headers={"X-User-ID": "dave"}
        )

        assert response.status_code == 200
        assert [n["id"] for n in response.json()["notes"]] == ["drive-tm1"]

    def test_sync_failure(self, client, remote):
        """A failed sync with nothing to serve returns 502."""
        remote.list_error = RemoteStoreError("drive down")

        response = client.get("/api/v1/vaults/notes/notes")

        assert response.status_code == 502
        assert "drive down" in response.json()["detail"]


class TestRefresh:
    """Tests for the refresh endpoint."""

    def test_requires_editor(self, client, grant, vault):
        """Viewers cannot refresh."""
        grant("erin", vault.id, VaultRole.VIEWER)

        response = client.post(
            "/api/v1/vaults/notes/refresh", headers={"X-User-ID": "erin"}
        )

        assert response.status_code == 404

    def test_editor_refreshes(self, client, grant, vault, remote):
        """Editors force a full re-sync."""
        grant("frank", vault.id, VaultRole.EDITOR)
        client.get("/api/v1/vaults/notes/notes")
        remote.fetches.clear()

        response = client.post(
            "/api/v1/vaults/notes/refresh", headers={"X-User-ID": "frank"}
        )

        assert response.status_code == 200
        assert response.json()["sync_stats"]["fetched"] == 3
        assert sorted(remote.fetches) == ["drf", "pub", "unl"]

    def test_platform_admin_refreshes(self, client, grant):
        """Platform admins can refresh any vault."""
        grant("root-user", platform_role=PlatformRole.ADMIN)

        response = client.post(
            "/api/v1/vaults/notes/refresh", headers={"X-User-ID": "root-user"}
        )

        assert response.status_code == 200

    def test_failed_refresh_serves_stale(self, client, grant, vault, remote):
        """A failed refresh reports the error with the previous result."""
        grant("gina", vault.id, VaultRole.OWNER)
        client.get("/api/v1/vaults/notes/notes")
        remote.list_error = RemoteStoreError("drive down")

        response = client.post(
            "/api/v1/vaults/notes/refresh", headers={"X-User-ID": "gina"}
        )

        assert response.status_code == 200
        assert response.json()["stale"] is True
        assert response.json()["sync_error"] == "drive down"


class TestAttachments:
    """Tests for the attachment endpoint."""

    def test_fetch(self, client):
        """Attachments are returned with their content type."""
        response = client.get("/api/v1/vaults/notes/attachments/pic.png")

        assert response.status_code == 200
        assert response.content == b"PNG"
        assert response.headers["content-type"] == "image/png"

    def test_missing(self, client):
        """Unknown attachments return 404."""
        response = client.get("/api/v1/vaults/notes/attachments/nope.png")
        assert response.status_code == 404

    def test_not_configured(self, client, team_vault, grant):
        """Vaults without an attachments folder return 503."""
        grant("hank", team_vault.id, VaultRole.VIEWER)

        response = client.get(
            "/api/v1/vaults/team/attachments/pic.png", headers={"X-User-ID": "hank"}
        )

        assert response.status_code == 503

    def test_embedded_image_url_is_served(self, client, remote):
        """Image embeds in rendered notes link to a working attachment URL."""
        remote.add_note("root", "pics", "Pics.md", "![[pic.png]]")

        note = client.get("/api/v1/vaults/notes/notes/drive-pics").json()
        src = re.search(r'<img src="([^"]+)"', note["html"]).group(1)
        response = client.get(src)

        assert response.status_code == 200
        assert response.content == b"PNG"
