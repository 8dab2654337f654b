"""SQLite-based document store for docbot.

3 tables:
    documents, document_versions, agent_logs
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from loguru import logger

from docbot.agent.errors import DocumentNotFoundError


class DocumentStore:
    """SQLite document storage — single source of truth for document content."""

    def __init__(self, db_path: str = "data/docbot.db"):
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()
        logger.info(f"DocumentStore initialized: {db_path}")

    @contextmanager
    def _get_conn(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            yield conn
        finally:
            conn.close()

    def _init_db(self):
        with self._get_conn() as conn:
            conn.executescript(_SCHEMA)
            conn.commit()

    # ════════════════════════════════════════════════════════════
    # DOCUMENTS
    # ════════════════════════════════════════════════════════════

    def create_document(
        self,
        user_id: str,
        title: str = "",
        content: str = "",
        document_id: str | None = None,
    ) -> str:
        """Create a document owned by ``user_id`` and return its id."""
        did = document_id or str(uuid.uuid4())
        with self._get_conn() as conn:
            conn.execute(
                "INSERT INTO documents (document_id, user_id, title, content) "
                "VALUES (?, ?, ?, ?)",
                (did, user_id, title, content),
            )
            conn.commit()
        logger.info(f"Document created: {did} (owner={user_id})")
        return did

    def get_document(self, document_id: str, user_id: str) -> dict[str, Any] | None:
        """Return the document row if it exists and belongs to ``user_id``."""
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT document_id, user_id, title, content, created_at, updated_at "
                "FROM documents WHERE document_id = ? AND user_id = ?",
                (document_id, user_id),
            ).fetchone()
        return dict(row) if row else None

    def read_content(self, document_id: str, user_id: str) -> str:
        """Return current document content.

        Raises
        ------
        DocumentNotFoundError
            Document does not exist or is owned by another user.
        """
        doc = self.get_document(document_id, user_id)
        if doc is None:
            raise DocumentNotFoundError(document_id)
        return doc["content"] or ""

    def write_content(self, document_id: str, user_id: str, content: str) -> None:
        """Replace document content, keeping the previous content as a version."""
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT content FROM documents WHERE document_id = ? AND user_id = ?",
                (document_id, user_id),
            ).fetchone()
            if row is None:
                raise DocumentNotFoundError(document_id)
            conn.execute(
                "INSERT INTO document_versions (document_id, content) VALUES (?, ?)",
                (document_id, row["content"] or ""),
            )
            conn.execute(
                "UPDATE documents SET content = ?, updated_at = CURRENT_TIMESTAMP "
                "WHERE document_id = ?",
                (content, document_id),
            )
            conn.commit()
        logger.debug(f"Document {document_id} updated ({len(content)} chars)")

    def get_versions(self, document_id: str, limit: int = 20) -> list[dict[str, Any]]:
        """Previous contents of a document, newest first."""
        with self._get_conn() as conn:
            rows = conn.execute(
                "SELECT id, content, created_at FROM document_versions "
                "WHERE document_id = ? ORDER BY id DESC LIMIT ?",
                (document_id, limit),
            ).fetchall()
        return [dict(r) for r in rows]

    # ════════════════════════════════════════════════════════════
    # AGENT LOGS
    # ════════════════════════════════════════════════════════════

    def add_agent_log(
        self,
        document_id: str,
        user_id: str,
        kind: str,
        content: str,
        step_number: int = 0,
        tool_calls: list[dict[str, Any]] | None = None,
    ) -> int:
        """Append an audit entry (goal, step or final message) for a session."""
        with self._get_conn() as conn:
            cursor = conn.execute(
                """INSERT INTO agent_logs
                   (document_id, user_id, kind, content, step_number, tool_calls)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    document_id,
                    user_id,
                    kind,
                    content,
                    step_number,
                    json.dumps(tool_calls, ensure_ascii=False) if tool_calls else None,
                ),
            )
            conn.commit()
        return cursor.lastrowid

    def get_agent_logs(
        self, document_id: str, limit: int = 100
    ) -> list[dict[str, Any]]:
        """Audit entries for a document, oldest first."""
        with self._get_conn() as conn:
            rows = conn.execute(
                "SELECT id, user_id, kind, content, step_number, tool_calls, created_at "
                "FROM agent_logs WHERE document_id = ? ORDER BY id LIMIT ?",
                (document_id, limit),
            ).fetchall()
        result = []
        for r in rows:
            entry = dict(r)
            entry["tool_calls"] = json.loads(entry["tool_calls"]) if entry["tool_calls"] else []
            result.append(entry)
        return result


_SCHEMA = """
-- 1. Documents (markdown content, owner-scoped)
CREATE TABLE IF NOT EXISTS documents (
    document_id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT DEFAULT '',
    content TEXT DEFAULT '',
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_documents_user ON documents(user_id);

-- 2. Document versions (content before each write)
CREATE TABLE IF NOT EXISTS document_versions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id TEXT NOT NULL,
    content TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (document_id) REFERENCES documents(document_id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_versions_document ON document_versions(document_id, id DESC);

-- 3. Agent logs (audit trail per document)
CREATE TABLE IF NOT EXISTS agent_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    kind TEXT NOT NULL,
    content TEXT,
    step_number INTEGER DEFAULT 0,
    tool_calls TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_agent_logs_document ON agent_logs(document_id, id);
"""
