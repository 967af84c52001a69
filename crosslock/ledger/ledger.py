"""
Settlement journal for CrossLock.

Append-only, hash-chained, Ed25519-signed record of committed transitions.

Entry contract:
    data_hash     = SHA-256(JCS(data))
    entry hash    = SHA-256(JCS({index, previous_hash, timestamp, entry_type, data_hash}))
    previous_hash = hash of the previous entry, GENESIS_HASH for index 0
    signature     = Ed25519 over the raw entry hash bytes, base64url

An entry enters memory only after its line is on disk.
"""

import json
import logging
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from crosslock.core.canonical import canonical_hash, to_json_value
from crosslock.core.crypto import Ed25519Signer
from crosslock.core.exceptions import LedgerError
from crosslock.core.time import journal_timestamp

logger = logging.getLogger(__name__)


@dataclass
class LedgerEntry:
    """A single entry in the journal"""
    index:         int
    previous_hash: str
    timestamp:     str
    entry_type:    str
    data:          dict
    data_hash:     str
    signature:     str

    def to_dict(self) -> dict:
        return {
            "index":         self.index,
            "previous_hash": self.previous_hash,
            "timestamp":     self.timestamp,
            "entry_type":    self.entry_type,
            "data":          self.data,
            "data_hash":     self.data_hash,
            "signature":     self.signature,
        }

    @staticmethod
    def from_dict(data: dict) -> "LedgerEntry":
        return LedgerEntry(
            index=         data["index"],
            previous_hash= data["previous_hash"],
            timestamp=     data["timestamp"],
            entry_type=    data["entry_type"],
            data=          data["data"],
            data_hash=     data["data_hash"],
            signature=     data["signature"],
        )

    def compute_hash(self) -> str:
        """Hash of this entry for chaining"""
        return canonical_hash({
            "index":         self.index,
            "previous_hash": self.previous_hash,
            "timestamp":     self.timestamp,
            "entry_type":    self.entry_type,
            "data_hash":     self.data_hash,
        })


class Ledger:
    """
    Append-only cryptographic journal.

    With ledger_path=None the journal lives in memory only. With a path, an
    existing file is loaded and verified on construction.
    """

    GENESIS_HASH = "0" * 64

    def __init__(self, signer: Ed25519Signer, ledger_path: Optional[Path] = None):
        self.signer      = signer
        self.ledger_path = Path(ledger_path) if ledger_path is not None else None
        self.entries: List[LedgerEntry] = []

        if self.ledger_path is not None and self.ledger_path.exists():
            self._load()
            self.verify_or_raise()

    def append(self, entry_type: str, data: dict) -> LedgerEntry:
        """Sign and persist one entry. Raises LedgerError if it cannot be written."""
        data = to_json_value(data)
        index = len(self.entries)
        previous_hash = self.entries[-1].compute_hash() if self.entries else self.GENESIS_HASH

        entry = LedgerEntry(
            index=         index,
            previous_hash= previous_hash,
            timestamp=     journal_timestamp(),
            entry_type=    entry_type,
            data=          data,
            data_hash=     canonical_hash(data),
            signature=     "",
        )
        entry.signature = self.signer.sign(bytes.fromhex(entry.compute_hash()))

        self._write_entry(entry)
        self.entries.append(entry)
        return entry

    def get_all_entries(self) -> List[LedgerEntry]:
        return self.entries.copy()

    def get_entry_by_index(self, index: int) -> Optional[LedgerEntry]:
        if 0 <= index < len(self.entries):
            return self.entries[index]
        return None

    def get_entries_by_type(self, entry_type: str) -> List[LedgerEntry]:
        return [e for e in self.entries if e.entry_type == entry_type]

    def get_stats(self) -> Dict[str, object]:
        type_counts: Dict[str, int] = {}
        for entry in self.entries:
            type_counts[entry.entry_type] = type_counts.get(entry.entry_type, 0) + 1

        return {
            "total_entries":    len(self.entries),
            "by_type":          type_counts,
            "first_entry_time": self.entries[0].timestamp if self.entries else None,
            "last_entry_time":  self.entries[-1].timestamp if self.entries else None,
            "signer":           self.signer.public_key_hex,
        }

    def verify_or_raise(self) -> None:
        """Verify genesis linkage, chain linkage, data hashes and signatures."""
        if not self.entries:
            return

        if self.entries[0].previous_hash != self.GENESIS_HASH:
            raise LedgerError("First entry does not link to genesis hash")

        for i, entry in enumerate(self.entries):
            if entry.index != i:
                raise LedgerError(
                    f"Index gap at position {i}", {"index": entry.index}
                )
            if i > 0:
                expected_prev_hash = self.entries[i - 1].compute_hash()
                if entry.previous_hash != expected_prev_hash:
                    raise LedgerError(
                        f"Chain break at index {i}: "
                        f"expected {expected_prev_hash}, got {entry.previous_hash}"
                    )
            if canonical_hash(entry.data) != entry.data_hash:
                raise LedgerError(f"Data hash mismatch at index {i}")
            if not Ed25519Signer.verify_detached(
                bytes.fromhex(entry.compute_hash()),
                entry.signature,
                self.signer.public_key_hex,
            ):
                raise LedgerError(f"Invalid signature at index {i}")

    def verify_chain(self) -> bool:
        try:
            self.verify_or_raise()
        except LedgerError as exc:
            logger.warning("journal verification failed: %s", exc)
            return False
        return True

    # ── Internal ──────────────────────────────────────────────

    def _write_entry(self, entry: LedgerEntry) -> None:
        if self.ledger_path is None:
            return
        try:
            self.ledger_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.ledger_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise LedgerError(f"Failed to write journal entry: {e}") from e

    def _load(self) -> None:
        self.entries = []
        try:
            with open(self.ledger_path, "r", encoding="utf-8") as f:
                lines = f.readlines()
        except OSError as e:
            raise LedgerError(f"Failed to load journal: {e}") from e

        for line_num, line in enumerate(lines, 1):
            line = line.strip()
            if not line:
                continue
            try:
                self.entries.append(LedgerEntry.from_dict(json.loads(line)))
            except json.JSONDecodeError as e:
                if line_num == len(lines):
                    # Torn final write: keep the prefix and rewrite the file.
                    warnings.warn(
                        f"Ledger: dropping unreadable last line of {self.ledger_path}: {e}",
                        RuntimeWarning,
                        stacklevel=3,
                    )
                    self._rewrite()
                    break
                raise LedgerError(f"Invalid JSON at line {line_num}: {e}") from e
            except KeyError as e:
                raise LedgerError(f"Missing field {e} at line {line_num}") from e

    def _rewrite(self) -> None:
        try:
            with open(self.ledger_path, "w", encoding="utf-8") as f:
                for entry in self.entries:
                    f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise LedgerError(f"Failed to rewrite journal: {e}") from e
