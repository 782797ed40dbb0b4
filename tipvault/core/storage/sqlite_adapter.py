import json
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from tipvault.utils.logger import get_logger

logger = get_logger("storage.sqlite")


class SQLiteAdapter:
    """
    SQLite backend for persistent storage.

    Provides:
    1. Metadata store (clock, counters, default fee)
    2. Account states, token balances and allowances
    3. Stake records and stake-type configuration
    4. Event log

    Token amounts can exceed 64 bits, so they are stored as TEXT.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn_local = threading.local()

        # Ensure directory exists
        if not db_path.parent.exists():
            db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create connection for current thread."""
        if not hasattr(self._conn_local, "conn"):
            self._conn_local.conn = sqlite3.connect(
                self.db_path,
                timeout=30.0,
                check_same_thread=False
            )
            self._conn_local.conn.row_factory = sqlite3.Row
            # Enable WAL mode for better concurrency
            self._conn_local.conn.execute("PRAGMA journal_mode=WAL;")
            self._conn_local.conn.execute("PRAGMA synchronous=NORMAL;")
        return self._conn_local.conn

    def close(self) -> None:
        """Close this thread's connection."""
        conn = getattr(self._conn_local, "conn", None)
        if conn is not None:
            conn.close()
            del self._conn_local.conn

    def _init_schema(self):
        """Initialize database schema."""
        conn = self._get_conn()
        with conn:
            # 1. Metadata
            conn.execute("""
                CREATE TABLE IF NOT EXISTS meta (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)

            # 2. Accounts (one per merchant)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS accounts (
                    address BLOB PRIMARY KEY,
                    merchant BLOB NOT NULL UNIQUE,
                    data TEXT NOT NULL
                )
            """)

            # 3. Token state
            conn.execute("""
                CREATE TABLE IF NOT EXISTS balances (
                    address BLOB PRIMARY KEY,
                    amount TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS allowances (
                    owner BLOB NOT NULL,
                    spender BLOB NOT NULL,
                    amount TEXT NOT NULL,
                    PRIMARY KEY (owner, spender)
                )
            """)

            # 4. Staking state
            conn.execute("""
                CREATE TABLE IF NOT EXISTS stakes (
                    stake_id INTEGER PRIMARY KEY,
                    data TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS stake_types (
                    stake_type INTEGER PRIMARY KEY,
                    reward_modifier INTEGER NOT NULL,
                    duration_modifier INTEGER NOT NULL,
                    duration INTEGER NOT NULL
                )
            """)

            # 5. Event log
            conn.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    seq INTEGER PRIMARY KEY,
                    name TEXT NOT NULL,
                    timestamp INTEGER NOT NULL,
                    data TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_event_name ON events(name);")

    # =========================================================================
    # Metadata
    # =========================================================================

    def set_meta(self, key: str, value: str):
        conn = self._get_conn()
        with conn:
            conn.execute("INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)", (key, value))

    def get_meta(self, key: str) -> Optional[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT value FROM meta WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row['value'] if row else None

    def get_all_meta(self) -> Dict[str, str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT key, value FROM meta")
        return {row['key']: row['value'] for row in cursor}

    # =========================================================================
    # Reads
    # =========================================================================

    def get_all_accounts(self) -> List[Dict[str, Any]]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT data FROM accounts ORDER BY rowid ASC")
        return [json.loads(row['data']) for row in cursor]

    def get_all_balances(self) -> List[Tuple[bytes, int]]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT address, amount FROM balances")
        return [(row['address'], int(row['amount'])) for row in cursor]

    def get_all_allowances(self) -> List[Tuple[bytes, bytes, int]]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT owner, spender, amount FROM allowances")
        return [(row['owner'], row['spender'], int(row['amount'])) for row in cursor]

    def get_all_stakes(self) -> List[Dict[str, Any]]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT data FROM stakes ORDER BY stake_id ASC")
        return [json.loads(row['data']) for row in cursor]

    def get_all_stake_types(self) -> List[Tuple[int, int, int, int]]:
        conn = self._get_conn()
        cursor = conn.execute(
            "SELECT stake_type, reward_modifier, duration_modifier, duration FROM stake_types"
        )
        return [tuple(row) for row in cursor]

    def get_events(self, name: Optional[str] = None) -> List[Dict[str, Any]]:
        """Get events in emission order, optionally filtered by name."""
        conn = self._get_conn()
        if name is None:
            cursor = conn.execute("SELECT data FROM events ORDER BY seq ASC")
        else:
            cursor = conn.execute("SELECT data FROM events WHERE name = ? ORDER BY seq ASC", (name,))
        return [json.loads(row['data']) for row in cursor]

    # =========================================================================
    # Snapshot write
    # =========================================================================

    def write_snapshot(
        self,
        meta: Dict[str, str],
        accounts: List[Tuple[bytes, bytes, Dict[str, Any]]],
        balances: List[Tuple[bytes, int]],
        allowances: List[Tuple[bytes, bytes, int]],
        stakes: List[Tuple[int, Dict[str, Any]]],
        stake_types: List[Tuple[int, int, int, int]],
        events: List[Tuple[str, int, Dict[str, Any]]],
    ):
        """
        Atomically replace the persisted state.

        Args:
            meta: key -> value metadata
            accounts: (address, merchant, record) per account
            balances: (address, amount)
            allowances: (owner, spender, amount)
            stakes: (stake_id, record)
            stake_types: (stake_type, reward_modifier, duration_modifier, duration)
            events: (name, timestamp, record) in emission order
        """
        conn = self._get_conn()
        with conn:
            for table in ("meta", "accounts", "balances", "allowances", "stakes", "stake_types", "events"):
                conn.execute(f"DELETE FROM {table}")

            conn.executemany(
                "INSERT INTO meta (key, value) VALUES (?, ?)",
                list(meta.items())
            )
            conn.executemany(
                "INSERT INTO accounts (address, merchant, data) VALUES (?, ?, ?)",
                [(address, merchant, json.dumps(record)) for address, merchant, record in accounts]
            )
            conn.executemany(
                "INSERT INTO balances (address, amount) VALUES (?, ?)",
                [(address, str(amount)) for address, amount in balances]
            )
            conn.executemany(
                "INSERT INTO allowances (owner, spender, amount) VALUES (?, ?, ?)",
                [(owner, spender, str(amount)) for owner, spender, amount in allowances]
            )
            conn.executemany(
                "INSERT INTO stakes (stake_id, data) VALUES (?, ?)",
                [(stake_id, json.dumps(record)) for stake_id, record in stakes]
            )
            conn.executemany(
                "INSERT INTO stake_types (stake_type, reward_modifier, duration_modifier, duration) "
                "VALUES (?, ?, ?, ?)",
                stake_types
            )
            conn.executemany(
                "INSERT INTO events (seq, name, timestamp, data) VALUES (?, ?, ?, ?)",
                [(seq, name, ts, json.dumps(record)) for seq, (name, ts, record) in enumerate(events)]
            )

        logger.debug(
            f"Snapshot written: {len(accounts)} accounts, {len(stakes)} stakes, {len(events)} events"
        )
