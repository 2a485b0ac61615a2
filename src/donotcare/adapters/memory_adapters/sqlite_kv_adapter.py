import json
import sqlite3
import threading
from datetime import datetime
from typing import Any, Dict

from donotcare.utils.logging_handler import setup_logger
from donotcare.ports.memory_port import KeyValuePort


class SqliteKeyValueAdapter(KeyValuePort):
    """KeyValuePort over a single sqlite table. Values are stored as JSON text."""

    def __init__(self, db_path: str = ":memory:"):
        self.logger = setup_logger(__name__)
        self.db_path = db_path
        self._lock = threading.Lock()
        # the ticker thread and the web loop share this connection
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.cur = self.conn.cursor()
        self._initialize_tables()

    def _initialize_tables(self):
        """Private method to ensure schema exists."""
        with self._lock:
            self.cur.execute("""
            CREATE TABLE IF NOT EXISTS Settings(
                Key TEXT PRIMARY KEY,
                Value TEXT NOT NULL,
                UpdatedOn TEXT
            );""")
            self.conn.commit()

    def close(self):
        with self._lock:
            self.conn.close()

    def get(self, key: str, default: Any = None) -> Any:
        try:
            with self._lock:
                self.cur.execute("SELECT Value FROM Settings WHERE Key = ?", (key,))
                row = self.cur.fetchone()
        except sqlite3.Error as e:
            self.logger.exception(f"Database error in get: {e}")
            return default
        if row is None:
            return default
        try:
            return json.loads(row[0])
        except json.JSONDecodeError:
            self.logger.warning(f"Discarding unreadable value for '{key}'.")
            return default

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value)
        try:
            with self._lock:
                self.cur.execute("""
                    INSERT INTO Settings (Key, Value, UpdatedOn) VALUES (?, ?, ?)
                    ON CONFLICT(Key) DO UPDATE SET Value = excluded.Value, UpdatedOn = excluded.UpdatedOn
                """, (key, payload, datetime.now().isoformat(timespec="seconds")))
                self.conn.commit()
        except sqlite3.Error as e:
            self.logger.exception(f"Database error in set: {e}")
            raise

    def remove(self, key: str) -> None:
        try:
            with self._lock:
                self.cur.execute("DELETE FROM Settings WHERE Key = ?", (key,))
                self.conn.commit()
        except sqlite3.Error as e:
            self.logger.exception(f"Database error in remove: {e}")
            raise

    def items(self) -> Dict[str, Any]:
        """All stored pairs, for diagnostics."""
        with self._lock:
            self.cur.execute("SELECT Key, Value FROM Settings ORDER BY Key")
            rows = self.cur.fetchall()
        return {k: json.loads(v) for k, v in rows}
