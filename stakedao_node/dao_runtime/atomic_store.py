from __future__ import annotations

"""
Keyed record storage + atomic persistence.

KeyedStore
    Records live under derived keys (see keys.py). Each logical command
    opens a StoreTransaction: loads hand out fresh copies, writes are staged,
    and nothing becomes visible until commit(). A failing command simply
    drops its transaction, so no record is ever partially updated.

AtomicLedgerStore
    JSON snapshot persistence (not log-structured):
    - Atomic write with directory fsync
    - Rolling backups (.bak1, .bak2, ...) to survive partial writes/corruption
    - Load fallback: primary -> bak1 -> bak2 -> ...
    - Write-ahead journal marker (.journal) so incomplete saves are detectable
"""

import copy
import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Type, TypeVar, Union

from .errors import ALREADY_EXISTS, NOT_FOUND, error_for

log = logging.getLogger(__name__)

JsonDict = Dict[str, Any]
PathLike = Union[str, Path]

R = TypeVar("R")


@dataclass(frozen=True)
class Refund:
    recipient: str
    amount: int


# ---------------------------------------------------------------------------
# Keyed storage
# ---------------------------------------------------------------------------


class StoreTransaction:
    """
    Staged view over a KeyedStore. Obtain one via KeyedStore.transaction().
    """

    def __init__(self, parent: "KeyedStore") -> None:
        self._parent = parent
        # key -> entry, or None for a staged delete
        self._staged: Dict[str, Optional[JsonDict]] = {}

    def _entry(self, key: str) -> Optional[JsonDict]:
        if key in self._staged:
            return self._staged[key]
        return self._parent._records.get(key)

    def exists(self, key: str) -> bool:
        return self._entry(key) is not None

    def create(self, key: str, record: Any, *, payer: Optional[str] = None, deposit: int = 0) -> None:
        if self.exists(key):
            raise error_for(ALREADY_EXISTS, f"{record.KIND} {key[:12]}")
        self._staged[key] = {
            "kind": record.KIND,
            "data": record.to_dict(),
            "deposit": {"payer": payer, "amount": int(deposit)},
        }

    def load(self, key: str, cls: Type[R]) -> R:
        entry = self._entry(key)
        if entry is None or entry.get("kind") != cls.KIND:  # type: ignore[attr-defined]
            raise error_for(NOT_FOUND, f"{cls.KIND} {key[:12]}")  # type: ignore[attr-defined]
        return cls.from_dict(copy.deepcopy(entry["data"]))  # type: ignore[attr-defined]

    def store(self, key: str, record: Any) -> None:
        entry = self._entry(key)
        if entry is None:
            raise error_for(NOT_FOUND, f"{record.KIND} {key[:12]}")
        staged = dict(entry)
        staged["data"] = record.to_dict()
        self._staged[key] = staged

    def destroy(self, key: str, refund_to: str) -> Refund:
        entry = self._entry(key)
        if entry is None:
            raise error_for(NOT_FOUND, key[:12])
        self._staged[key] = None
        held = int((entry.get("deposit") or {}).get("amount", 0))
        return Refund(recipient=refund_to, amount=held)

    @property
    def has_changes(self) -> bool:
        return bool(self._staged)

    def commit(self) -> None:
        self._parent._apply(self._staged)
        self._staged = {}


class KeyedStore:
    """
    In-memory keyed record store with transactional writes.

    Records must expose `KIND`, `to_dict()` and a `from_dict()` classmethod.
    """

    def __init__(self) -> None:
        self._records: Dict[str, JsonDict] = {}
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        with self._lock:
            tx = StoreTransaction(self)
            yield tx
            tx.commit()

    def _apply(self, staged: Dict[str, Optional[JsonDict]]) -> None:
        with self._lock:
            for key, entry in staged.items():
                if entry is None:
                    self._records.pop(key, None)
                else:
                    self._records[key] = entry

    # Autocommit conveniences --------------------------------------------

    def exists(self, key: str) -> bool:
        return key in self._records

    def create(self, key: str, record: Any, *, payer: Optional[str] = None, deposit: int = 0) -> None:
        with self.transaction() as tx:
            tx.create(key, record, payer=payer, deposit=deposit)

    def load(self, key: str, cls: Type[R]) -> R:
        with self.transaction() as tx:
            return tx.load(key, cls)

    def store(self, key: str, record: Any) -> None:
        with self.transaction() as tx:
            tx.store(key, record)

    def destroy(self, key: str, refund_to: str) -> Refund:
        with self.transaction() as tx:
            return tx.destroy(key, refund_to)

    def keys(self, kind: Optional[str] = None) -> List[str]:
        with self._lock:
            return [k for k, e in self._records.items() if kind is None or e.get("kind") == kind]

    # Snapshot -----------------------------------------------------------

    def snapshot(self) -> JsonDict:
        with self._lock:
            return copy.deepcopy(self._records)

    def restore(self, records: Optional[JsonDict]) -> None:
        with self._lock:
            self._records = copy.deepcopy(records or {})


# ---------------------------------------------------------------------------
# Snapshot persistence
# ---------------------------------------------------------------------------


class AtomicLedgerStore:
    """
    One JSON snapshot file plus `keep_backups` older generations:

        dao_state.json  <- newest
        dao_state.json.bak1
        dao_state.json.bak2  <- oldest

    save() marks a journal, shifts every generation down by one, writes the
    new snapshot through a temp file + rename, then clears the journal.
    load() returns the newest generation that still parses.
    """

    def __init__(
        self,
        data_dir: Optional[PathLike] = None,
        *,
        filename: str = "dao_state.json",
        keep_backups: int = 2,
    ) -> None:
        self.data_dir = Path(data_dir or ".")
        self.filename = filename
        self.keep_backups = max(0, int(keep_backups))

    @property
    def path(self) -> Path:
        return self.data_dir / self.filename

    @property
    def journal_path(self) -> Path:
        return self.data_dir / f"{self.filename}.journal"

    def generations(self) -> List[Path]:
        """Snapshot paths, newest first."""
        return [self.path] + [self.data_dir / f"{self.filename}.bak{i}" for i in range(1, self.keep_backups + 1)]

    # Reading -------------------------------------------------------------

    def load(self) -> Optional[JsonDict]:
        if self.journal_path.exists():
            log.warning("Journal marker present; last save of %s may be incomplete", self.path)

        for candidate in self.generations():
            if not candidate.exists():
                continue
            try:
                state = json.loads(candidate.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError, json.JSONDecodeError):
                log.warning("Skipping unreadable snapshot %s", candidate, exc_info=True)
                continue
            if isinstance(state, dict):
                return state
        return None

    # Writing -------------------------------------------------------------

    def save(self, state: JsonDict) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(state, ensure_ascii=False, sort_keys=True, separators=(",", ":")).encode("utf-8")

        self._write(self.journal_path, b"1")
        self._shift_generations()
        self._write(self.path, payload)
        self.journal_path.unlink()

    def _shift_generations(self) -> None:
        gens = self.generations()
        # oldest first, so nothing is overwritten before it has moved
        for older, newer in reversed(list(zip(gens[1:], gens[:-1]))):
            if newer.exists():
                os.replace(newer, older)

    def _write(self, target: Path, data: bytes) -> None:
        tmp = tempfile.NamedTemporaryFile(
            dir=self.data_dir, prefix=target.name + ".", suffix=".tmp", delete=False
        )
        tmp_path = Path(tmp.name)
        try:
            with tmp:
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_path, target)
            self._sync_dir()
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    def _sync_dir(self) -> None:
        # O_DIRECTORY is POSIX-only; elsewhere the rename is as durable as it gets
        flag = getattr(os, "O_DIRECTORY", None)
        if flag is None:
            return
        fd = os.open(self.data_dir, flag)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
