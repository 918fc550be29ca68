"""
Record store with a transaction boundary.

Stands in for the hosting platform's storage: records live under
deterministic addresses derived from stable seed tuples, and every
state-mutating operation runs inside an all-or-nothing transaction.

    governor  ← ("governor", authority)
    proposal  ← ("proposal", governor_address, proposal_id)
    vote      ← ("vote", proposal_address, voter)
"""

import copy
import hashlib
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from ..constants import ADDRESS_DIGEST_SIZE
from ..exceptions import StateError
from ..logger import get_logger

logger = get_logger(__name__)

Seed = Union[bytes, str, int]


def _seed_bytes(seed: Seed) -> bytes:
    if isinstance(seed, bytes):
        return seed
    if isinstance(seed, str):
        return seed.encode()
    if isinstance(seed, int) and not isinstance(seed, bool):
        return seed.to_bytes(8, "little")
    raise TypeError(f"Unsupported seed type: {type(seed).__name__}")


def derive_address(*seeds: Seed) -> str:
    """
    Deterministic 32-byte blake2b address for a seed tuple.

    Each seed is length-prefixed so ("ab", "c") and ("a", "bc") differ.
    """
    hasher = hashlib.blake2b(digest_size=ADDRESS_DIGEST_SIZE)
    for seed in seeds:
        raw = _seed_bytes(seed)
        hasher.update(len(raw).to_bytes(4, "little"))
        hasher.update(raw)
    return hasher.hexdigest()


class Transaction:
    """
    Handle for one open transaction.

    Collects events until commit. Callbacks registered with on_commit run
    once the outermost operation has committed; on_rollback callbacks run
    (newest first) when the store restores its snapshot.
    """

    def __init__(self) -> None:
        self.events: List[Any] = []
        self._on_commit: List[Callable[[], None]] = []
        self._on_rollback: List[Callable[[], None]] = []

    def emit(self, event: Any) -> None:
        self.events.append(event)

    def on_commit(self, callback: Callable[[], None]) -> None:
        self._on_commit.append(callback)

    def on_rollback(self, callback: Callable[[], None]) -> None:
        self._on_rollback.append(callback)

    def committed(self) -> None:
        for callback in self._on_commit:
            callback()

    def rolled_back(self) -> None:
        for callback in reversed(self._on_rollback):
            callback()


class MemoryStore:
    """
    In-memory record store.

    Transactions are serialized by a re-entrant lock. The outermost
    transaction snapshots every record on entry and restores the snapshot
    if the body raises, so no partial mutation survives a failure.
    """

    def __init__(self) -> None:
        self._records: Dict[str, Any] = {}
        self._lock = threading.RLock()
        self._depth = 0
        self._current: Optional[Transaction] = None

    # ── Transaction boundary ──────────────────────────────────────────

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        with self._lock:
            if self._depth > 0:
                # Nested: join the enclosing transaction
                self._depth += 1
                try:
                    yield self._current
                finally:
                    self._depth -= 1
                return

            snapshot = copy.deepcopy(self._records)
            tx = Transaction()
            self._current = tx
            self._depth = 1
            try:
                yield tx
            except BaseException:
                self._restore(snapshot)
                tx.rolled_back()
                logger.debug("Transaction rolled back (%d events dropped)", len(tx.events))
                raise
            finally:
                self._depth = 0
                self._current = None

    def _restore(self, snapshot: Dict[str, Any]) -> None:
        """Put every record back to its snapshot, keeping object identity."""
        for address in list(self._records):
            if address not in snapshot:
                del self._records[address]
        for address, saved in snapshot.items():
            live = self._records.get(address)
            if live is not None and type(live) is type(saved) and hasattr(live, "__dict__"):
                live.__dict__.clear()
                live.__dict__.update(saved.__dict__)
            else:
                self._records[address] = saved

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @property
    def is_outermost(self) -> bool:
        """True inside the outermost transaction, on the thread holding it."""
        return self._depth == 1

    # ── Records ───────────────────────────────────────────────────────

    def create(self, address: str, record: Any) -> Any:
        """Store *record* under a fresh *address*."""
        if address in self._records:
            raise StateError(f"Record already exists at {address[:16]}…")
        self._records[address] = record
        return record

    def get(self, address: str) -> Optional[Any]:
        return self._records.get(address)

    def exists(self, address: str) -> bool:
        return address in self._records

    def values(self, record_type: Optional[type] = None) -> List[Any]:
        if record_type is None:
            return list(self._records.values())
        return [r for r in self._records.values() if isinstance(r, record_type)]

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"<MemoryStore records={len(self._records)}>"
