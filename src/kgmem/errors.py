"""Error kinds raised by the graph store and its collaborators."""

from __future__ import annotations

from pathlib import Path


class KGMemError(Exception):
    """Base class for all kgmem errors."""


class StoreIOError(KGMemError):
    """Backing file could not be read or written (anything but 'file absent')."""

    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Memory file {self.path}: {reason}")


class EntityNotFoundError(KGMemError):
    """An observation was added to an entity that does not exist."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Entity with name {name} not found")


class DecodeError(KGMemError):
    """A persisted line could not be turned back into a record."""


class MalformedRecordError(DecodeError):
    def __init__(self, reason: str, line_no: int | None = None) -> None:
        self.reason = reason
        self.line_no = line_no
        where = f"line {line_no}: " if line_no is not None else ""
        super().__init__(f"Malformed record ({where}{reason})")


class InvalidArgumentsError(KGMemError):
    """Tool-call arguments do not have the expected shape."""
