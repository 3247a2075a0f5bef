"""Read and write the memory file (line-delimited JSON).

GraphFile is the persistence API:
    gf = GraphFile("/path/to/memory.json")
    result = gf.load()          # LoadResult(graph, skipped)
    gf.save(result.graph)       # atomic: tmp file + fsync + os.replace

Lines that fail to decode are skipped and counted (skip_malformed=True, the
default) or abort the load (skip_malformed=False). Duplicate entity names and
relation triples are dropped on load and counted as skipped too; repeated
observations within an entity collapse to their first occurrence.
"""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from kgmem.codec import decode_line, encode_entity, encode_relation
from kgmem.errors import MalformedRecordError, StoreIOError
from kgmem.models import Entity, KnowledgeGraph

logger = logging.getLogger("kgmem.store")


@dataclass
class LoadResult:
    graph: KnowledgeGraph
    skipped: int = 0


class GraphFile:
    """Single-file JSONL backing store for one knowledge graph."""

    def __init__(self, path: Path | str, *, skip_malformed: bool = True) -> None:
        self.path = Path(path)
        self.skip_malformed = skip_malformed

    @property
    def exists(self) -> bool:
        return self.path.exists()

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def load(self) -> LoadResult:
        """Decode the whole file. Missing file means an empty graph."""
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            return LoadResult(KnowledgeGraph())
        except OSError as exc:
            raise StoreIOError(self.path, exc.strerror or str(exc)) from exc

        graph = KnowledgeGraph()
        seen_entities: set[str] = set()
        seen_relations: set[tuple[str, str, str]] = set()
        skipped = 0

        for line_no, raw in enumerate(data.split(b"\n"), start=1):
            raw = raw.strip()
            if not raw:
                continue
            try:
                try:
                    line = raw.decode("utf-8")
                except UnicodeDecodeError as exc:
                    raise MalformedRecordError(f"not valid UTF-8: {exc.reason}", line_no) from exc
                record = decode_line(line, line_no)
            except MalformedRecordError as exc:
                if not self.skip_malformed:
                    raise
                skipped += 1
                logger.warning("skipping %s: %s", self.path, exc)
                continue

            if isinstance(record, Entity):
                if record.name in seen_entities:
                    skipped += 1
                    logger.warning("skipping %s line %d: duplicate entity %r", self.path, line_no, record.name)
                    continue
                seen_entities.add(record.name)
                # observations are set-like; first occurrence wins
                record.observations = list(dict.fromkeys(record.observations))
                graph.entities.append(record)
            else:
                if record.key in seen_relations:
                    skipped += 1
                    logger.warning("skipping %s line %d: duplicate relation %r", self.path, line_no, record.key)
                    continue
                seen_relations.add(record.key)
                graph.relations.append(record)

        if skipped:
            logger.warning("%s: %d malformed or duplicate line(s) skipped", self.path, skipped)
        return LoadResult(graph, skipped)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    @staticmethod
    def serialize(graph: KnowledgeGraph) -> str:
        """Entities first, then relations; one line each."""
        lines = [encode_entity(e) for e in graph.entities]
        lines.extend(encode_relation(r) for r in graph.relations)
        return "\n".join(lines) + "\n" if lines else ""

    def save(self, graph: KnowledgeGraph) -> None:
        """Atomically replace the memory file with the encoded graph."""
        data = self.serialize(graph).encode("utf-8")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
        except OSError as exc:
            raise StoreIOError(self.path, exc.strerror or str(exc)) from exc

        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                # mkstemp creates 0600; keep the existing file's mode
                try:
                    mode = self.path.stat().st_mode & 0o777
                except FileNotFoundError:
                    mode = 0o644
                os.fchmod(f.fileno(), mode)
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self.path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                tmp.unlink()
            raise StoreIOError(self.path, exc.strerror or str(exc)) from exc
        logger.debug("saved %s (%d entities, %d relations)", self.path, len(graph.entities), len(graph.relations))
