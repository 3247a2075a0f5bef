"""GraphStore: the knowledge graph operations.

    store = GraphStore("/path/to/memory.json")
    store.create_entities([Entity("Paris", "City", ["capital of France"])])
    store.search_nodes("france")

Every operation reloads the memory file, works on the fresh graph, and (for
mutations) writes the whole graph back. Mutations hold the path's write lock
for the full load+mutate+save; queries share its read lock.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from kgmem.errors import EntityNotFoundError
from kgmem.locks import lock_for
from kgmem.models import Entity, GraphStats, KnowledgeGraph, ObservationResult, Relation
from kgmem.store import GraphFile

if TYPE_CHECKING:
    from collections.abc import Iterable

    from kgmem.models import ObservationAddition, ObservationDeletion

logger = logging.getLogger("kgmem.graph")


class GraphStore:
    """Knowledge graph backed by a single JSONL memory file."""

    def __init__(self, backing: GraphFile | Path | str, *, skip_malformed: bool = True) -> None:
        self.file = backing if isinstance(backing, GraphFile) else GraphFile(backing, skip_malformed=skip_malformed)
        self._lock = lock_for(self.file.path)

    @property
    def path(self) -> Path:
        return self.file.path

    def _load(self) -> KnowledgeGraph:
        return self.file.load().graph

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_entities(self, entities: Iterable[Entity]) -> list[Entity]:
        """Insert entities whose name is new. Existing names are skipped, not overwritten."""
        with self._lock.write_locked():
            graph = self._load()
            names = graph.entity_names()
            created: list[Entity] = []
            for entity in entities:
                if entity.name in names:
                    continue
                names.add(entity.name)
                # observations are set-like; first occurrence wins
                entity = Entity(entity.name, entity.entity_type, list(dict.fromkeys(entity.observations)))
                graph.entities.append(entity)
                created.append(entity)
            self.file.save(graph)
        logger.debug("create_entities: %d inserted", len(created))
        return created

    def create_relations(self, relations: Iterable[Relation]) -> list[Relation]:
        """Insert relations whose (from, to, relationType) triple is new."""
        with self._lock.write_locked():
            graph = self._load()
            keys = {r.key for r in graph.relations}
            created: list[Relation] = []
            for relation in relations:
                if relation.key in keys:
                    continue
                keys.add(relation.key)
                graph.relations.append(relation)
                created.append(relation)
            self.file.save(graph)
        logger.debug("create_relations: %d inserted", len(created))
        return created

    def add_observations(self, additions: Iterable[ObservationAddition]) -> list[ObservationResult]:
        """Append new observation strings to existing entities.

        All-or-nothing: if any entry names a missing entity, EntityNotFoundError
        is raised and nothing is written, including entries processed before it.
        """
        with self._lock.write_locked():
            graph = self._load()
            by_name = {e.name: e for e in graph.entities}
            results: list[ObservationResult] = []
            for addition in additions:
                entity = by_name.get(addition.entity_name)
                if entity is None:
                    raise EntityNotFoundError(addition.entity_name)
                present = set(entity.observations)
                added: list[str] = []
                for content in addition.contents:
                    if content in present:
                        continue
                    present.add(content)
                    entity.observations.append(content)
                    added.append(content)
                results.append(ObservationResult(addition.entity_name, added))
            self.file.save(graph)
        return results

    def delete_entities(self, names: Iterable[str]) -> None:
        """Remove entities and every relation touching them. Unknown names are ignored."""
        doomed = set(names)
        with self._lock.write_locked():
            graph = self._load()
            graph.entities = [e for e in graph.entities if e.name not in doomed]
            graph.relations = [
                r for r in graph.relations if r.source not in doomed and r.target not in doomed
            ]
            self.file.save(graph)

    def delete_observations(self, deletions: Iterable[ObservationDeletion]) -> None:
        """Remove exact-match observations. Unknown entities are ignored."""
        with self._lock.write_locked():
            graph = self._load()
            by_name = {e.name: e for e in graph.entities}
            for deletion in deletions:
                entity = by_name.get(deletion.entity_name)
                if entity is None:
                    continue
                drop = set(deletion.observations)
                entity.observations = [o for o in entity.observations if o not in drop]
            self.file.save(graph)

    def delete_relations(self, relations: Iterable[Relation]) -> None:
        """Remove relations matching an input triple exactly."""
        doomed = {r.key for r in relations}
        with self._lock.write_locked():
            graph = self._load()
            graph.relations = [r for r in graph.relations if r.key not in doomed]
            self.file.save(graph)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def read_graph(self) -> KnowledgeGraph:
        with self._lock.read_locked():
            return self._load()

    def search_nodes(self, query: str) -> KnowledgeGraph:
        """Entities matching ``query`` (case-insensitive substring) and the relations among them."""
        needle = query.casefold()
        with self._lock.read_locked():
            graph = self._load()
        matched = {e.name for e in graph.entities if e.matches(needle)}
        return graph.subgraph(matched)

    def open_nodes(self, names: Iterable[str]) -> KnowledgeGraph:
        """Entities named in ``names`` and the relations among them."""
        wanted = set(names)
        with self._lock.read_locked():
            graph = self._load()
        return graph.subgraph(wanted)

    def stats(self) -> GraphStats:
        with self._lock.read_locked():
            result = self.file.load()
        graph = result.graph
        return GraphStats(
            entities=len(graph.entities),
            relations=len(graph.relations),
            observations=sum(len(e.observations) for e in graph.entities),
            skipped_lines=result.skipped,
        )
