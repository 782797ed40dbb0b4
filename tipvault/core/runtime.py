"""
Runtime - deterministic execution environment for TipVault.

Conceptual Background:
---------------------
Every operation on an account, the token or the staking facility is
applied as one step of a single, strictly serialized state-transition
log. The Runtime supplies what such an environment must provide:

1. **Clock**: a monotonic `now` (seconds). Time gates (premium expiry,
   lock and unbonding windows) are checks against this value, never
   blocking waits.
2. **Event log**: append-only records emitted by operations
   (tips, stakes, settlements, withdrawals).
3. **Atomicity**: `atomic()` keeps an undo journal for the operation.
   Components call `preserve()` / `preserve_item()` before they write,
   and a failing operation replays the journal backwards, so a rejected
   call leaves no partial token movement behind.

The journal only holds what the operation touched: the cost of a call
does not grow with the number of accounts, stakes or holders.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, Iterator, List, MutableMapping, Optional

from tipvault.core.errors import TipVaultError
from tipvault.crypto import bytes_to_hex, hex_to_bytes, is_valid_address
from tipvault.utils.logger import get_logger

logger = get_logger("runtime")

# Marks a mapping key that did not exist before the write
_ABSENT = object()


# =============================================================================
# Events
# =============================================================================


@dataclass
class Event:
    """
    A record emitted by a completed operation.

    Attributes:
        name: Event name (e.g. "TipReceived")
        emitter: Address of the emitting component
        timestamp: Runtime time at emission
        data: Event payload
    """
    name: str
    emitter: bytes
    timestamp: int
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly representation (addresses hex-encoded)."""
        return {
            "name": self.name,
            "emitter": bytes_to_hex(self.emitter),
            "timestamp": self.timestamp,
            "data": {
                k: bytes_to_hex(v) if isinstance(v, bytes) else v
                for k, v in self.data.items()
            },
        }

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> "Event":
        """Inverse of to_dict; hex addresses in the payload become bytes again."""
        return cls(
            name=record["name"],
            emitter=hex_to_bytes(record["emitter"]),
            timestamp=record["timestamp"],
            data={
                k: hex_to_bytes(v) if isinstance(v, str) and is_valid_address(v) else v
                for k, v in record["data"].items()
            },
        )


# =============================================================================
# Runtime
# =============================================================================


class Runtime:
    """
    Serialized execution environment: clock, event log and rollback.

    Attributes:
        now: Current time in seconds
        events: Events emitted by committed operations
    """

    def __init__(self, start_time: int = 0):
        if start_time < 0:
            raise ValueError("start_time must be non-negative")
        self._now = start_time
        self.events: List[Event] = []
        self._journal: List[Callable[[], None]] = []
        self._depth = 0

    # =========================================================================
    # Clock
    # =========================================================================

    @property
    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        """Move the clock forward by `seconds`. Returns the new time."""
        if seconds < 0:
            raise ValueError(f"Cannot move clock backwards by {seconds}s")
        self._now += seconds
        return self._now

    def set_time(self, timestamp: int) -> None:
        """Jump the clock to an absolute time (never backwards)."""
        if timestamp < self._now:
            raise ValueError(f"Clock is monotonic: {timestamp} < {self._now}")
        self._now = timestamp

    # =========================================================================
    # Events
    # =========================================================================

    def emit(self, name: str, emitter: bytes, **data: Any) -> Event:
        """Append an event stamped with the current time."""
        event = Event(name=name, emitter=emitter, timestamp=self._now, data=data)
        self.events.append(event)
        return event

    def events_named(self, name: str, emitter: Optional[bytes] = None) -> List[Event]:
        """Filter the event log by name (and optionally emitter)."""
        return [
            e for e in self.events
            if e.name == name and (emitter is None or e.emitter == emitter)
        ]

    # =========================================================================
    # Atomic execution
    # =========================================================================

    @property
    def in_operation(self) -> bool:
        return self._depth > 0

    @property
    def journal_size(self) -> int:
        """Undo entries recorded by the running operation."""
        return len(self._journal)

    def preserve(self, obj: Any, *names: str) -> None:
        """
        Record attributes of `obj` so a rollback puts them back.

        Must be called before the attributes are written. Outside an
        operation there is nothing to roll back and the call is a no-op.
        """
        if not self._depth:
            return
        saved = [(name, getattr(obj, name)) for name in names]

        def undo() -> None:
            for name, value in saved:
                setattr(obj, name, value)

        self._journal.append(undo)

    def preserve_item(self, mapping: MutableMapping, key: Hashable) -> None:
        """Record `mapping[key]` (or its absence) before it is written."""
        if not self._depth:
            return
        saved = mapping.get(key, _ABSENT)

        def undo() -> None:
            if saved is _ABSENT:
                mapping.pop(key, None)
            else:
                mapping[key] = saved

        self._journal.append(undo)

    @contextmanager
    def atomic(self, operation: str = "operation") -> Iterator[None]:
        """
        Run a block as one all-or-nothing state transition.

        Nested scopes join the outermost one; only the outermost scope
        rolls back.
        """
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        event_count = len(self.events)
        self._depth = 1
        try:
            yield
        except TipVaultError as e:
            self._rollback(event_count)
            logger.warning(f"{operation} rejected [{e.error_code}]: {e.message}")
            raise
        except Exception:
            self._rollback(event_count)
            logger.error(f"{operation} aborted by unexpected error", exc_info=True)
            raise
        finally:
            self._depth = 0
            self._journal.clear()

    def _rollback(self, event_count: int) -> None:
        for undo in reversed(self._journal):
            undo()
        del self.events[event_count:]

    def __repr__(self) -> str:
        return f"Runtime(now={self._now}, events={len(self.events)})"
