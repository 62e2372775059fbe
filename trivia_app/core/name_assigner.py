"""Generated display names for players who join without sending one."""

from __future__ import annotations

from pathlib import Path
import random
from threading import Lock
from typing import Iterator

DEFAULT_NAMES_FILE = Path(__file__).resolve().parent.parent / "data" / "player_names.txt"
_BUILT_IN_NAMES = (
    "Quick Fox",
    "Clever Owl",
    "Brave Badger",
    "Swift Falcon",
    "Curious Otter",
    "Lucky Panda",
    "Bold Lynx",
    "Sharp Heron",
    "Calm Turtle",
    "Bright Koala",
)


def read_name_list(path: Path) -> list[str]:
    """One name per line; blank lines and ``#`` comments are skipped."""
    lines = path.read_text(encoding="utf-8").splitlines()
    return [line.strip() for line in lines if line.strip() and not line.lstrip().startswith("#")]


class NameAssigner:
    """Hands out shuffled names without ever repeating one.

    Each pass over the list is reshuffled; from the second pass on the names
    carry the pass number ("Quick Fox 2").
    """

    def __init__(self, names: list[str], seed: int | None = None):
        unique = list(dict.fromkeys(name.strip() for name in names if name.strip()))
        if not unique:
            raise ValueError("Name list cannot be empty.")
        self._names = unique
        self._rng = random.Random(seed)
        self._lock = Lock()
        self._stream = self._generate()

    @classmethod
    def from_default_file(cls, path: Path = DEFAULT_NAMES_FILE) -> "NameAssigner":
        try:
            names = read_name_list(path)
        except OSError:
            names = []
        return cls(names or list(_BUILT_IN_NAMES))

    def next_name(self) -> str:
        with self._lock:
            return next(self._stream)

    def _generate(self) -> Iterator[str]:
        round_number = 1
        while True:
            batch = list(self._names)
            self._rng.shuffle(batch)
            for name in batch:
                yield name if round_number == 1 else f"{name} {round_number}"
            round_number += 1
