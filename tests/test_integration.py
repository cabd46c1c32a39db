"""
Integration tests for the full document flow: HTTP API -> storage -> websocket.

Drives the API the way a UI does and checks both the files on disk and the
tree_changed notices pushed to connected clients.
"""

import pytest
import json
from fastapi.testclient import TestClient

from notex.main import app
from notex.services.store import DocumentStore, get_store


@pytest.fixture
def store(tmp_path):
    return DocumentStore(tmp_path / "Notes")


@pytest.fixture
def client(store):
    """Create test client over a temporary storage root"""
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestTreeNotifications:
    """Tests for tree_changed broadcasts"""

    def test_create_folder_notifies(self, client):
        with client.websocket_connect("/ws") as websocket:
            response = client.post("/api/folders", json={"name": "Work"})
            assert response.status_code == 200

            message = json.loads(websocket.receive_text())

            assert message["type"] == "tree_changed"
            assert message["data"] == {"action": "create_folder", "path": "Work"}

    def test_create_document_notifies_with_path(self, client):
        with client.websocket_connect("/ws") as websocket:
            node = client.post("/api/documents", json={"name": "Todo"}).json()

            message = json.loads(websocket.receive_text())

            assert message["data"]["action"] == "create"
            assert message["data"]["path"] == node["path"]

    def test_content_writes_do_not_notify(self, client):
        """Only structural changes trigger a rescan"""
        with client.websocket_connect("/ws") as websocket:
            node = client.post("/api/documents", json={"name": "Todo"}).json()
            websocket.receive_text()

            client.put("/api/documents/content", json={"path": node["path"], "content": "x"})
            client.post("/api/folders", json={"name": "Marker"})

            message = json.loads(websocket.receive_text())
            assert message["data"]["path"] == "Marker"


class TestFullDocumentFlow:
    """Test complete end-to-end flows"""

    def test_folder_note_rename_delete(self, client, store):
        """Create -> write -> rename parent -> read at new path -> delete"""
        with client.websocket_connect("/ws") as websocket:
            # 1. Folder "Work"
            folder = client.post("/api/folders", json={"name": "Work"}).json()
            assert folder["success"] is True
            msg = json.loads(websocket.receive_text())
            assert msg["data"]["action"] == "create_folder"

            # 2. Note "Todo" inside it
            note = client.post("/api/documents", json={"parentPath": "Work", "name": "Todo"}).json()
            assert note["path"] == f"Work/{note['id']}.json"
            websocket.receive_text()

            # 3. Write and read back
            client.put("/api/documents/content", json={"path": note["path"], "content": "buy milk"})
            body = client.get("/api/documents/content", params={"path": note["path"]}).json()
            assert body["content"] == "buy milk"

            # 4. Rename the folder
            work = client.get("/api/tree").json()[0]
            renamed = client.post("/api/documents/rename", json={"node": work, "newTitle": "Projects"}).json()
            assert renamed["path"] == "Projects"
            msg = json.loads(websocket.receive_text())
            assert msg["data"] == {"action": "rename", "path": "Projects"}

            # 5. Same id, new path, same content
            tree = client.get("/api/tree").json()
            moved = tree[0]["children"][0]
            assert moved["id"] == note["id"]
            assert moved["path"] == f"Projects/{note['id']}.json"
            body = client.get("/api/documents/content", params={"path": moved["path"]}).json()
            assert body["content"] == "buy milk"
            assert not (store.root / "Work").exists()

            # 6. Delete the folder and everything under it
            deleted = client.delete("/api/documents", params={"path": "Projects", "type": "folder"}).json()
            assert deleted["success"] is True
            msg = json.loads(websocket.receive_text())
            assert msg["data"] == {"action": "delete", "path": "Projects"}

            # 7. Nothing left
            assert client.get("/api/tree").json() == []

    def test_canvas_survives_many_saves(self, client, store):
        """Repeated save/load cycles never add a layer of encoding"""
        node = client.post("/api/documents", json={"name": "Board", "type": "canvas"}).json()
        snapshot = {"store": {"shape:1": {"props": {"text": "say \"hi\""}}}}

        content = snapshot
        for _ in range(3):
            client.put("/api/documents/content", json={"path": node["path"], "content": content})
            content = client.get("/api/documents/content", params={"path": node["path"]}).json()["content"]

        assert content == snapshot
        assert json.loads((store.root / node["path"]).read_text())["content"] == snapshot
