"""Data models for the knowledge graph.

Wire names are camelCase (``entityType``, ``relationType``, ``from``/``to``);
attributes are snake_case since ``from`` is a reserved word.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from kgmem.errors import InvalidArgumentsError


def _require_str(d: dict[str, Any], key: str) -> str:
    value = d.get(key)
    if not isinstance(value, str):
        msg = f"'{key}' must be a string"
        raise InvalidArgumentsError(msg)
    return value


def _require_str_list(d: dict[str, Any], key: str) -> list[str]:
    value = d.get(key)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        msg = f"'{key}' must be a list of strings"
        raise InvalidArgumentsError(msg)
    return list(value)


@dataclass
class Entity:
    """A named node: type plus an ordered, duplicate-free list of observations."""

    name: str
    entity_type: str
    observations: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.name:
            msg = "'name' must not be empty"
            raise InvalidArgumentsError(msg)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Entity:
        return cls(
            name=_require_str(d, "name"),
            entity_type=_require_str(d, "entityType"),
            observations=_require_str_list(d, "observations"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "entityType": self.entity_type,
            "observations": list(self.observations),
        }

    def matches(self, needle: str) -> bool:
        """Case-insensitive substring match on name, type or any observation.

        ``needle`` must already be casefolded.
        """
        if needle in self.name.casefold() or needle in self.entity_type.casefold():
            return True
        return any(needle in obs.casefold() for obs in self.observations)


@dataclass(frozen=True)
class Relation:
    """A directed, typed edge. Identity is the (from, to, relationType) triple."""

    source: str
    target: str
    relation_type: str

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.source, self.target, self.relation_type)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Relation:
        return cls(
            source=_require_str(d, "from"),
            target=_require_str(d, "to"),
            relation_type=_require_str(d, "relationType"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.source, "to": self.target, "relationType": self.relation_type}


@dataclass
class KnowledgeGraph:
    entities: list[Entity] = field(default_factory=list)
    relations: list[Relation] = field(default_factory=list)

    def entity_names(self) -> set[str]:
        return {e.name for e in self.entities}

    def get(self, name: str) -> Entity | None:
        for e in self.entities:
            if e.name == name:
                return e
        return None

    def subgraph(self, names: set[str]) -> KnowledgeGraph:
        """Entities in ``names`` plus relations with both endpoints in ``names``."""
        entities = [e for e in self.entities if e.name in names]
        kept = {e.name for e in entities}
        relations = [r for r in self.relations if r.source in kept and r.target in kept]
        return KnowledgeGraph(entities=entities, relations=relations)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entities": [e.to_dict() for e in self.entities],
            "relations": [r.to_dict() for r in self.relations],
        }


@dataclass
class ObservationAddition:
    entity_name: str
    contents: list[str]

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ObservationAddition:
        return cls(entity_name=_require_str(d, "entityName"), contents=_require_str_list(d, "contents"))


@dataclass
class ObservationResult:
    entity_name: str
    added_observations: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {"entityName": self.entity_name, "addedObservations": list(self.added_observations)}


@dataclass
class ObservationDeletion:
    entity_name: str
    observations: list[str]

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ObservationDeletion:
        return cls(
            entity_name=_require_str(d, "entityName"),
            observations=_require_str_list(d, "observations"),
        )


@dataclass
class GraphStats:
    """Counts reported by ``GraphStore.stats``."""

    entities: int = 0
    relations: int = 0
    observations: int = 0
    skipped_lines: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "entities": self.entities,
            "relations": self.relations,
            "observations": self.observations,
            "skippedLines": self.skipped_lines,
        }
