"""
CoFoundry Safety — SQLite storage.

Check-ins, trusted contacts and saved discovery filters persist in SQLite
across restarts. Check-ins are never deleted; terminal ones are history.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

from cofoundry.core.search_filter import FilterPreset, SearchHistoryEntry
from cofoundry.data.models import CheckIn, TrustedContact

logger = logging.getLogger(__name__)


class _SQLiteDB(ABC):
    """Connection handling shared by the stores below."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from cofoundry.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @abstractmethod
    def _init_db(self) -> None:
        """Create this store's tables if they are missing."""


class CheckInDB(_SQLiteDB):
    """SQLite-backed CheckInStorePort. Each row holds one check-in record as JSON."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS check_ins (
                    id          TEXT    PRIMARY KEY,
                    status      TEXT    NOT NULL,
                    user_id     INTEGER,
                    record      TEXT    NOT NULL,
                    updated_at  TEXT    NOT NULL
                )
            """)
        logger.debug("Check-ins table initialized at %s", self._db_path)

    def load(self) -> list[CheckIn]:
        """Return every stored check-in, oldest write first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT record FROM check_ins ORDER BY updated_at, id"
            ).fetchall()
        check_ins: list[CheckIn] = []
        for row in rows:
            try:
                check_ins.append(CheckIn.from_record(json.loads(row["record"])))
            except (KeyError, ValueError) as exc:
                logger.error("Skipping unreadable check-in record: %s", exc)
        return check_ins

    def save(self, check_ins: list[CheckIn]) -> None:
        """Upsert every check-in in the list. Rows not in the list are kept."""
        now = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO check_ins (id, status, user_id, record, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    status = excluded.status,
                    user_id = excluded.user_id,
                    record = excluded.record,
                    updated_at = CASE
                        WHEN check_ins.record = excluded.record THEN check_ins.updated_at
                        ELSE excluded.updated_at
                    END
                """,
                [
                    (c.id, c.status.value, c.user_id, json.dumps(c.to_record()), now)
                    for c in check_ins
                ],
            )
        logger.debug("Saved %d check-ins", len(check_ins))

    def get(self, check_in_id: str) -> CheckIn | None:
        """Fetch a single check-in by ID."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT record FROM check_ins WHERE id = ?", (check_in_id,)
            ).fetchone()
        if row is None:
            return None
        return CheckIn.from_record(json.loads(row["record"]))


class TrustedContactDB(_SQLiteDB):
    """SQLite-backed storage for trusted contacts."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS trusted_contacts (
                    id                      INTEGER PRIMARY KEY AUTOINCREMENT,
                    name                    TEXT    NOT NULL,
                    phone                   TEXT    NOT NULL DEFAULT '',
                    email                   TEXT,
                    telegram_chat_id        INTEGER,
                    receive_meeting_alerts  INTEGER NOT NULL DEFAULT 1,
                    user_id                 INTEGER
                )
            """)
        logger.debug("Trusted contacts table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_contact(row: sqlite3.Row) -> TrustedContact:
        return TrustedContact(
            id=row["id"],
            name=row["name"],
            phone=row["phone"],
            email=row["email"],
            telegram_chat_id=row["telegram_chat_id"],
            receive_meeting_alerts=bool(row["receive_meeting_alerts"]),
            user_id=row["user_id"],
        )

    def add_contact(
        self,
        name: str,
        phone: str = "",
        email: str | None = None,
        telegram_chat_id: int | None = None,
        receive_meeting_alerts: bool = True,
        user_id: int | None = None,
    ) -> TrustedContact:
        """Insert a new trusted contact. Whitespace is stripped from text fields."""
        name = name.strip()
        phone = phone.strip()
        email = email.strip() if email else None
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO trusted_contacts
                    (name, phone, email, telegram_chat_id, receive_meeting_alerts, user_id)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (name, phone, email, telegram_chat_id, int(receive_meeting_alerts), user_id),
            )
            contact_id = cursor.lastrowid

        contact = TrustedContact(
            id=contact_id,
            name=name,
            phone=phone,
            email=email,
            telegram_chat_id=telegram_chat_id,
            receive_meeting_alerts=receive_meeting_alerts,
            user_id=user_id,
        )
        logger.info("Trusted contact added: #%d '%s'", contact_id, name)
        return contact

    def get_contact(self, contact_id: int) -> TrustedContact | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM trusted_contacts WHERE id = ?", (contact_id,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_contact(row)

    def list_all(
        self, user_id: int | None = None, meeting_alerts_only: bool = False,
    ) -> list[TrustedContact]:
        """Return contacts, optionally scoped to a user and/or opted-in only."""
        conditions: list[str] = []
        params: list = []
        if user_id is not None:
            conditions.append("user_id = ?")
            params.append(user_id)
        if meeting_alerts_only:
            conditions.append("receive_meeting_alerts = 1")

        query = "SELECT * FROM trusted_contacts"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY name"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_contact(r) for r in rows]

    def set_meeting_alerts(self, contact_id: int, enabled: bool) -> bool:
        """Toggle the meeting-alert opt-in. Returns False if the contact is unknown."""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE trusted_contacts SET receive_meeting_alerts = ? WHERE id = ?",
                (int(enabled), contact_id),
            )
        updated = cursor.rowcount > 0
        if updated:
            logger.info("Contact #%d meeting alerts %s", contact_id, "on" if enabled else "off")
        return updated

    def delete_contact(self, contact_id: int) -> bool:
        """Permanently delete a contact. Existing check-ins keep their snapshot."""
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM trusted_contacts WHERE id = ?", (contact_id,),
            )
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Trusted contact #%d deleted", contact_id)
        return deleted


class FilterPresetDB(_SQLiteDB):
    """Saved discovery filter presets and recent search history."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS filter_presets (
                    id          TEXT    PRIMARY KEY,
                    user_id     INTEGER,
                    name        TEXT    NOT NULL,
                    payload     TEXT    NOT NULL,
                    last_used   TEXT    NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS search_history (
                    id          TEXT    PRIMARY KEY,
                    user_id     INTEGER,
                    payload     TEXT    NOT NULL,
                    timestamp   TEXT    NOT NULL
                )
            """)
        logger.debug("Filter preset tables initialized at %s", self._db_path)

    def save_preset(self, preset: FilterPreset, user_id: int | None = None) -> FilterPreset:
        """Insert or replace a preset by id."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO filter_presets (id, user_id, name, payload, last_used)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    preset.id, user_id, preset.name,
                    preset.model_dump_json(), preset.last_used.isoformat(),
                ),
            )
        logger.info("Filter preset saved: '%s'", preset.name)
        return preset

    def get_preset(self, preset_id: str) -> FilterPreset | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT payload FROM filter_presets WHERE id = ?", (preset_id,)
            ).fetchone()
        if row is None:
            return None
        return FilterPreset.model_validate_json(row["payload"])

    def list_presets(self, user_id: int | None = None) -> list[FilterPreset]:
        """Presets, most recently used first."""
        query = "SELECT payload FROM filter_presets"
        params: list = []
        if user_id is not None:
            query += " WHERE user_id = ?"
            params.append(user_id)
        query += " ORDER BY last_used DESC"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [FilterPreset.model_validate_json(r["payload"]) for r in rows]

    def mark_preset_used(self, preset_id: str, when: datetime | None = None) -> FilterPreset | None:
        """Bump last_used and usage_count. Returns None for an unknown id."""
        preset = self.get_preset(preset_id)
        if preset is None:
            return None
        preset.last_used = when or datetime.now(timezone.utc)
        preset.usage_count += 1
        with self._connect() as conn:
            conn.execute(
                "UPDATE filter_presets SET payload = ?, last_used = ? WHERE id = ?",
                (preset.model_dump_json(), preset.last_used.isoformat(), preset_id),
            )
        return preset

    def delete_preset(self, preset_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM filter_presets WHERE id = ?", (preset_id,))
        return cursor.rowcount > 0

    def add_history(self, entry: SearchHistoryEntry, user_id: int | None = None) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO search_history (id, user_id, payload, timestamp) VALUES (?, ?, ?, ?)",
                (entry.id, user_id, entry.model_dump_json(), entry.timestamp.isoformat()),
            )

    def recent_history(
        self, limit: int = 10, user_id: int | None = None,
    ) -> list[SearchHistoryEntry]:
        """Most recent searches first."""
        query = "SELECT payload FROM search_history"
        params: list = []
        if user_id is not None:
            query += " WHERE user_id = ?"
            params.append(user_id)
        query += " ORDER BY timestamp DESC LIMIT ?"
        params.append(limit)
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [SearchHistoryEntry.model_validate_json(r["payload"]) for r in rows]
