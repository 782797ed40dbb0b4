from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from tipvault.core.storage.sqlite_adapter import SQLiteAdapter
from tipvault.crypto import hex_to_bytes
from tipvault.utils.logger import get_logger

logger = get_logger("storage.manager")


class StorageManager:
    """
    Manages persistent storage for a deployment.

    Coordinates data persistence using SQLite adapter.
    Handles:
    - Engine metadata (clock, stake counter, reward reserve, default fee)
    - Token balances and allowances
    - Account states and stake records
    - Event log
    """

    def __init__(self, data_dir: Path, db_name: str = "tipvault.db"):
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / db_name
        self.adapter = SQLiteAdapter(self.db_path)

        logger.info(f"StorageManager initialized at {self.db_path}")

    def close(self) -> None:
        self.adapter.close()

    # =========================================================================
    # Metadata
    # =========================================================================

    def is_empty(self) -> bool:
        """True if no snapshot has been written yet."""
        return self.adapter.get_meta("now") is None

    def get_meta_int(self, key: str, default: int = 0) -> int:
        value = self.adapter.get_meta(key)
        return int(value) if value is not None else default

    def get_meta(self, key: str) -> Optional[str]:
        return self.adapter.get_meta(key)

    # =========================================================================
    # Snapshots
    # =========================================================================

    def save_snapshot(
        self,
        meta: Dict[str, Any],
        accounts: List[Dict[str, Any]],
        balances: Dict[bytes, int],
        allowances: Dict[Tuple[bytes, bytes], int],
        stakes: List[Dict[str, Any]],
        stake_types: Dict[int, Tuple[int, int, int]],
        events: List[Dict[str, Any]],
    ):
        """
        Persist a full deployment snapshot in one transaction.

        Account and stake records are the dicts produced by their
        `to_dict()` methods; events are `Event.to_dict()` records.
        """
        account_rows = [
            (hex_to_bytes(a["address"]), hex_to_bytes(a["merchant_owner"]), a)
            for a in accounts
        ]
        self.adapter.write_snapshot(
            meta={k: str(v) for k, v in meta.items()},
            accounts=account_rows,
            balances=list(balances.items()),
            allowances=[(owner, spender, amount) for (owner, spender), amount in allowances.items()],
            stakes=[(s["stake_id"], s) for s in stakes],
            stake_types=[(t, *values) for t, values in sorted(stake_types.items())],
            events=[(e["name"], e["timestamp"], e) for e in events],
        )
        logger.info(f"Snapshot saved to {self.db_path}")

    def load_accounts(self) -> List[Dict[str, Any]]:
        return self.adapter.get_all_accounts()

    def load_balances(self) -> Dict[bytes, int]:
        return dict(self.adapter.get_all_balances())

    def load_allowances(self) -> Dict[Tuple[bytes, bytes], int]:
        return {(owner, spender): amount for owner, spender, amount in self.adapter.get_all_allowances()}

    def load_stakes(self) -> List[Dict[str, Any]]:
        return self.adapter.get_all_stakes()

    def load_stake_types(self) -> Dict[int, Tuple[int, int, int]]:
        return {t: (reward, multiplier, duration) for t, reward, multiplier, duration in self.adapter.get_all_stake_types()}

    def load_events(self, name: Optional[str] = None) -> List[Dict[str, Any]]:
        return self.adapter.get_events(name)
