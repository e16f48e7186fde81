"""Document storage layer for the clan bot.

Each record is a JSON document addressed by (collection, id) in a single
SQLite table: players, hall of fame entries and the roster backup.
"""

import json
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Tuple

import aiosqlite

from .config import DATABASE_PATH
from .models import HallOfFameEntry, Player
from .timeutils import timestamp

logger = logging.getLogger(__name__)

PLAYERS = "players"
HALL_OF_FAME = "hall_of_fame"
BACKUPS = "backups"
BACKUP_DOC = "player_list"


class StorageError(Exception):
    """Raised when the document store fails; records whether a write was in progress."""

    def __init__(self, message: str, during_write: bool = False):
        super().__init__(message)
        self.during_write = during_write


class WriteBatch:
    """Collects document writes and commits them in a single transaction."""

    def __init__(self, storage: "PlayerStorage"):
        self.storage = storage
        self.operations: List[Tuple[str, str, str, Any]] = []

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> "WriteBatch":
        self.operations.append(("set", collection, doc_id, data))
        return self

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> "WriteBatch":
        self.operations.append(("update", collection, doc_id, fields))
        return self

    def delete(self, collection: str, doc_id: str) -> "WriteBatch":
        self.operations.append(("delete", collection, doc_id, None))
        return self

    def increment(self, collection: str, doc_id: str, field_name: str, amount: int = 1,
                  defaults: Optional[Dict[str, Any]] = None) -> "WriteBatch":
        """Increment a numeric field, creating the document from defaults if needed."""
        self.operations.append(("increment", collection, doc_id, (field_name, amount, defaults or {})))
        return self

    async def commit(self):
        """Apply every collected write atomically."""
        async with self.storage._connect(writing=True) as db:
            for op, collection, doc_id, payload in self.operations:
                if op == "set":
                    await self.storage._write_doc(db, collection, doc_id, payload)
                elif op == "update":
                    current = await self.storage._read_doc(db, collection, doc_id)
                    if current is None:
                        raise StorageError(f"Document {collection}/{doc_id} not found", during_write=True)
                    current.update(payload)
                    await self.storage._write_doc(db, collection, doc_id, current)
                elif op == "delete":
                    await db.execute("DELETE FROM documents WHERE collection = ? AND id = ?", (collection, doc_id))
                elif op == "increment":
                    field_name, amount, defaults = payload
                    current = await self.storage._read_doc(db, collection, doc_id) or dict(defaults)
                    current[field_name] = (current.get(field_name) or 0) + amount
                    await self.storage._write_doc(db, collection, doc_id, current)
        logger.debug(f"Committed batch with {len(self.operations)} operation(s)")
        self.operations = []


class PlayerStorage:
    """Handles all document store operations."""

    def __init__(self, db_path: str = DATABASE_PATH):
        self.db_path = db_path

    @asynccontextmanager
    async def _connect(self, writing: bool = False):
        try:
            async with aiosqlite.connect(self.db_path) as db:
                yield db
                if writing:
                    await db.commit()
        except aiosqlite.Error as e:
            logger.error(f"Database error ({'write' if writing else 'read'}): {e}")
            raise StorageError(str(e), during_write=writing) from e

    @staticmethod
    async def _read_doc(db: aiosqlite.Connection, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        async with db.execute(
            "SELECT data FROM documents WHERE collection = ? AND id = ?", (collection, doc_id)
        ) as cursor:
            row = await cursor.fetchone()
            return json.loads(row[0]) if row else None

    @staticmethod
    async def _write_doc(db: aiosqlite.Connection, collection: str, doc_id: str, data: Dict[str, Any]):
        await db.execute(
            "INSERT OR REPLACE INTO documents (collection, id, data) VALUES (?, ?, ?)",
            (collection, doc_id, json.dumps(data, ensure_ascii=False)),
        )

    async def initialize(self):
        """Initialize the database with the documents table."""
        async with self._connect(writing=True) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    PRIMARY KEY(collection, id)
                )
            """)

    def batch(self) -> WriteBatch:
        """Start an atomic multi-document batch."""
        return WriteBatch(self)

    async def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        async with self._connect() as db:
            return await self._read_doc(db, collection, doc_id)

    async def _find_one(self, json_field: str, value: Any) -> Optional[Player]:
        async with self._connect() as db:
            async with db.execute(
                f"SELECT id, data FROM documents WHERE collection = ? AND json_extract(data, '$.{json_field}') = ? LIMIT 1",
                (PLAYERS, value),
            ) as cursor:
                row = await cursor.fetchone()
                return Player.from_document(row[0], json.loads(row[1])) if row else None

    # Players

    async def get_player(self, player_id: str) -> Optional[Player]:
        """Get a player by document id."""
        data = await self.get_document(PLAYERS, player_id)
        return Player.from_document(player_id, data) if data is not None else None

    async def find_player_by_member(self, member_id: str) -> Optional[Player]:
        """Get the player registered to a messaging member id."""
        return await self._find_one("memberId", member_id)

    async def find_player_by_lowercase_name(self, name: str) -> Optional[Player]:
        """Get a player whose name matches case-insensitively."""
        return await self._find_one("name_lowercase", name.lower())

    async def get_all_players(self) -> List[Player]:
        """Get every player, ordered by lowercase name."""
        async with self._connect() as db:
            async with db.execute(
                "SELECT id, data FROM documents WHERE collection = ? "
                "ORDER BY json_extract(data, '$.name_lowercase')",
                (PLAYERS,),
            ) as cursor:
                rows = await cursor.fetchall()
                return [Player.from_document(row[0], json.loads(row[1])) for row in rows]

    async def add_player(self, player: Player) -> Player:
        """Create a new player document, assigning an id when missing."""
        if not player.id:
            player.id = uuid.uuid4().hex
        if player.registered_at is None:
            player.registered_at = timestamp()
        async with self._connect(writing=True) as db:
            await self._write_doc(db, PLAYERS, player.id, player.to_document())
        logger.debug(f"Player {player.name} ({player.member_id}) added")
        return player

    async def update_player_fields(self, player_id: str, fields: Dict[str, Any]) -> bool:
        """Merge fields into a player document. Returns False if the player no longer exists."""
        async with self._connect(writing=True) as db:
            current = await self._read_doc(db, PLAYERS, player_id)
            if current is None:
                return False
            current.update(fields)
            if "name" in fields:
                from .names import sanitize_name

                current["name_lowercase"] = fields["name"].lower()
                current["sanitizedName"] = sanitize_name(fields["name"])
            await self._write_doc(db, PLAYERS, player_id, current)
            return True

    async def set_daily_points(self, player_id: str, day_index: int, points: int) -> bool:
        """Set the war points of a single day."""
        async with self._connect(writing=True) as db:
            current = await self._read_doc(db, PLAYERS, player_id)
            if current is None:
                return False
            player = Player.from_document(player_id, current)
            player.daily_points[day_index] = points
            current["dailyPoints"] = player.daily_points
            await self._write_doc(db, PLAYERS, player_id, current)
            return True

    async def add_warned_absence(self, player_id: str, day_index: int) -> bool:
        """Record a penalized absence day (array union, idempotent)."""
        async with self._connect(writing=True) as db:
            current = await self._read_doc(db, PLAYERS, player_id)
            if current is None:
                return False
            days = set(current.get("warnedAbsences") or [])
            days.add(day_index)
            current["warnedAbsences"] = sorted(days)
            await self._write_doc(db, PLAYERS, player_id, current)
            return True

    async def increment_field(self, collection: str, doc_id: str, field_name: str, amount: int = 1,
                              defaults: Optional[Dict[str, Any]] = None):
        """Increment a numeric field on a single document."""
        await self.batch().increment(collection, doc_id, field_name, amount, defaults).commit()

    async def delete_player(self, player_id: str):
        """Delete a player document."""
        async with self._connect(writing=True) as db:
            await db.execute("DELETE FROM documents WHERE collection = ? AND id = ?", (PLAYERS, player_id))
        logger.debug(f"Player {player_id} deleted")

    # Hall of fame

    async def get_hall_of_fame(self) -> List[HallOfFameEntry]:
        """Get the hall of fame, most wins first."""
        async with self._connect() as db:
            async with db.execute(
                "SELECT data FROM documents WHERE collection = ? "
                "ORDER BY json_extract(data, '$.wins') DESC, json_extract(data, '$.name')",
                (HALL_OF_FAME,),
            ) as cursor:
                rows = await cursor.fetchall()
                entries = [json.loads(row[0]) for row in rows]
                return [HallOfFameEntry(entry["name"], entry.get("wins", 0)) for entry in entries]

    # Backups

    async def save_backup(self):
        """Overwrite the roster backup with the current players."""
        players = await self.get_all_players()
        data = {
            "players": [dict(player.to_document(), id=player.id) for player in players],
            "lastUpdated": timestamp(),
        }
        async with self._connect(writing=True) as db:
            await self._write_doc(db, BACKUPS, BACKUP_DOC, data)
        logger.debug(f"Roster backup updated with {len(players)} player(s)")

    async def load_backup(self) -> Optional[List[Dict[str, Any]]]:
        """Get the backed-up player documents, or None if no backup exists."""
        data = await self.get_document(BACKUPS, BACKUP_DOC)
        if data is None:
            return None
        return data.get("players") or []
