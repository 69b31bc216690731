import os, pathlib
from dataclasses import dataclass
from typing import Set

from .errors import PersistenceError

FIELDS = ("tx_hash", "block_number", "caller", "event", "assets", "shares", "swap_fee")


@dataclass(frozen=True)
class OutputRecord:
    tx_hash: str
    block_number: int
    caller: str
    event: str
    assets: str
    shares: str
    swap_fee: str

    def to_line(self) -> str:
        return "\t".join(str(getattr(self, f)) for f in FIELDS) + "\n"


def _complete_text(path: pathlib.Path) -> str:
    """File contents up to the last newline; anything after it is a torn write."""
    text = path.read_text(encoding="utf-8")
    cut = text.rfind("\n")
    return text[:cut + 1]


def load(path) -> Set[str]:
    """tx hashes already recorded in the output log (missing file = empty log)."""
    path = pathlib.Path(path)
    if not path.exists():
        return set()
    try:
        text = _complete_text(path)
    except (OSError, UnicodeDecodeError) as e:
        raise PersistenceError(f"cannot read {path}: {e}") from e
    seen = set()
    for line in text.split("\n"):
        if line.strip() == "":
            continue
        seen.add(line.split("\t", 1)[0].strip())
    return seen


class CheckpointStore:
    """
    Append-only tab-separated log, one line per decoded tx.
    The handle is opened once; every append is flushed and fsync'd before returning.
    """

    def __init__(self, path):
        self.path = pathlib.Path(path)
        self.seen: Set[str] = set()
        self._fh = None

    def __contains__(self, tx_hash: str) -> bool:
        return tx_hash in self.seen

    def __len__(self):
        return len(self.seen)

    def load(self) -> Set[str]:
        self.seen = load(self.path)
        print(f"[checkpoint] {self.path}: {len(self.seen)} txs already recorded")
        return self.seen

    def open(self):
        if self._fh is not None:
            return self
        try:
            if self.path.exists():
                self._drop_torn_tail()
            else:
                self.path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(self.path, "a", encoding="utf-8", newline="\n")
        except OSError as e:
            raise PersistenceError(f"cannot open {self.path}: {e}") from e
        return self

    def _drop_torn_tail(self):
        size = self.path.stat().st_size
        if size == 0:
            return
        with open(self.path, "rb+") as f:
            data = f.read()
            keep = data.rfind(b"\n") + 1
            if keep != size:
                print(f"[checkpoint] dropping {size - keep} bytes of torn record at end of {self.path}")
                f.truncate(keep)
                f.flush()
                os.fsync(f.fileno())

    def append(self, record: OutputRecord):
        if self._fh is None:
            self.open()
        try:
            self._fh.write(record.to_line())
            self._fh.flush()
            os.fsync(self._fh.fileno())
        except OSError as e:
            raise PersistenceError(f"cannot append to {self.path}: {e}") from e
        self.seen.add(record.tx_hash)

    def close(self):
        if self._fh is not None:
            fh, self._fh = self._fh, None
            try:
                fh.close()
            except OSError as e:
                raise PersistenceError(f"cannot close {self.path}: {e}") from e

    def __enter__(self):
        self.load()
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()


def append(path, record: OutputRecord):
    """One-shot append for callers without a long-lived store."""
    s = CheckpointStore(path)
    try:
        s.append(record)
    finally:
        s.close()
