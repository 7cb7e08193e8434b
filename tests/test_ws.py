"""Tests for WebSocket connection manager and event helpers.

Covers ConnectionManager unit tests, event helper functions, and
verification that API operations emit consumable events.
"""

import json
import sqlite3
import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from api.app import create_app
from api.deps import enrich_event_payload
from api.ws import ConnectionManager, broadcast_pending, manager
from db.client import get_connection
from db.events import emit_event, get_unconsumed_events, mark_event_consumed
from db.migrations import init_db


# ── Fixtures ──────────────────────────────────────────────


@pytest.fixture()
def db_path(tmp_path: Path) -> str:
    path = str(tmp_path / "test.db")
    conn = init_db(path)
    conn.close()
    return path


@pytest.fixture()
def conn(db_path: str) -> sqlite3.Connection:
    """A raw DB connection for direct event/helper testing."""
    c = get_connection(db_path)
    yield c  # type: ignore[misc]
    c.close()


@pytest_asyncio.fixture()
async def client(db_path: str) -> AsyncGenerator[AsyncClient, None]:
    app = create_app(db_path=db_path)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _insert_event(
    conn: sqlite3.Connection,
    event_type: str,
    payload: dict[str, Any],
    consumed: int = 0,
) -> str:
    """Insert a raw event row for testing. Returns the event ID."""
    event_id = str(uuid.uuid4())
    conn.execute(
        "INSERT INTO events (id, type, payload, created_at, consumed) VALUES (?, ?, ?, ?, ?)",
        (event_id, event_type, json.dumps(payload), _now(), consumed),
    )
    conn.commit()
    return event_id


# ── ConnectionManager ─────────────────────────────────────


class TestConnectionManager:
    @pytest.mark.asyncio
    async def test_connect_and_broadcast(self) -> None:
        mgr = ConnectionManager()
        ws = AsyncMock()
        await mgr.connect(ws)

        ws.accept.assert_awaited_once()
        await mgr.broadcast({"type": "x", "payload": {}})
        ws.send_json.assert_awaited_once_with({"type": "x", "payload": {}})

    @pytest.mark.asyncio
    async def test_dead_connection_dropped(self) -> None:
        mgr = ConnectionManager()
        good, bad = AsyncMock(), AsyncMock()
        bad.send_json.side_effect = RuntimeError("closed")
        await mgr.connect(good)
        await mgr.connect(bad)

        await mgr.broadcast({"type": "x", "payload": {}})
        assert mgr.active_connections == [good]

    @pytest.mark.asyncio
    async def test_disconnect_twice(self) -> None:
        mgr = ConnectionManager()
        ws = AsyncMock()
        await mgr.connect(ws)
        mgr.disconnect(ws)
        mgr.disconnect(ws)
        assert mgr.active_connections == []


# ── Event helpers ─────────────────────────────────────────


class TestEventHelpers:
    def test_unconsumed_only(self, conn: sqlite3.Connection) -> None:
        first = _insert_event(conn, "task_created", {"task_id": "a"})
        _insert_event(conn, "task_created", {"task_id": "b"}, consumed=1)

        events = get_unconsumed_events(conn)
        assert [e["id"] for e in events] == [first]
        assert events[0]["payload"] == {"task_id": "a"}

        mark_event_consumed(conn, first)
        assert get_unconsumed_events(conn) == []

    def test_emit_event_needs_caller_commit(self, conn: sqlite3.Connection) -> None:
        event_id = emit_event(conn, "dependency_removed", {"dependency_id": "d"})
        conn.rollback()
        assert all(e["id"] != event_id for e in get_unconsumed_events(conn))

    @pytest.mark.asyncio
    async def test_enrich_task_event(
        self, client: AsyncClient, conn: sqlite3.Connection
    ) -> None:
        resp = await client.post("/tasks", json={"name": "A"})
        task = resp.json()

        event = {"type": "task_created", "payload": {"task_id": task["id"]}}
        enriched = enrich_event_payload(conn, event)
        assert enriched["payload"]["name"] == "A"

    @pytest.mark.asyncio
    async def test_enrich_dependency_event(
        self, client: AsyncClient, conn: sqlite3.Connection
    ) -> None:
        a = (await client.post("/tasks", json={"name": "A"})).json()
        b = (await client.post("/tasks", json={"name": "B"})).json()
        dep = (
            await client.post(
                "/dependencies",
                json={"dependent_task_id": a["id"], "blocking_task_id": b["id"]},
            )
        ).json()

        event = {"type": "dependency_created", "payload": {"dependency_id": dep["id"]}}
        enriched = enrich_event_payload(conn, event)
        assert enriched["payload"]["blocking_task_id"] == b["id"]

    def test_enrich_fallback(self, conn: sqlite3.Connection) -> None:
        event = {"type": "task_deleted", "payload": {"task_id": "gone"}}
        assert enrich_event_payload(conn, event) == event


# ── API operations emit events ────────────────────────────


class TestApiEmitsEvents:
    @pytest.mark.asyncio
    async def test_dependency_lifecycle_events(
        self, client: AsyncClient, conn: sqlite3.Connection
    ) -> None:
        a = (await client.post("/tasks", json={"name": "A"})).json()
        b = (await client.post("/tasks", json={"name": "B"})).json()
        dep = (
            await client.post(
                "/dependencies",
                json={"dependent_task_id": a["id"], "blocking_task_id": b["id"]},
            )
        ).json()
        await client.delete(f"/dependencies/{dep['id']}")

        types = [e["type"] for e in get_unconsumed_events(conn)]
        assert types == [
            "task_created",
            "task_created",
            "dependency_created",
            "dependency_removed",
        ]

    @pytest.mark.asyncio
    async def test_rejected_dependency_emits_nothing(
        self, client: AsyncClient, conn: sqlite3.Connection
    ) -> None:
        a = (await client.post("/tasks", json={"name": "A"})).json()
        await client.post(
            "/dependencies",
            json={"dependent_task_id": a["id"], "blocking_task_id": a["id"]},
        )
        types = [e["type"] for e in get_unconsumed_events(conn)]
        assert types == ["task_created"]

    @pytest.mark.asyncio
    async def test_broadcast_pending_marks_consumed(
        self,
        client: AsyncClient,
        conn: sqlite3.Connection,
        db_path: str,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        ws = AsyncMock()
        monkeypatch.setattr(manager, "active_connections", [ws])

        await client.post("/tasks", json={"name": "A"})
        sent = await broadcast_pending(db_path)

        assert sent == 1
        message = ws.send_json.await_args.args[0]
        assert message["type"] == "task_created"
        assert message["payload"]["name"] == "A"
        assert get_unconsumed_events(conn) == []
