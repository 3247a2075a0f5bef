"""One line of the memory file <-> one Entity or Relation.

Line shapes:
    {"type":"entity","name":...,"entityType":...,"observations":[...]}
    {"type":"relation","from":...,"to":...,"relationType":...}

Pure functions, no I/O.
"""

from __future__ import annotations

import json
from typing import Any

from kgmem.errors import InvalidArgumentsError, MalformedRecordError
from kgmem.models import Entity, Relation

ENTITY = "entity"
RELATION = "relation"


def _dumps(obj: dict[str, Any]) -> str:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"))


def encode_entity(entity: Entity) -> str:
    return _dumps({"type": ENTITY, **entity.to_dict()})


def encode_relation(relation: Relation) -> str:
    return _dumps({"type": RELATION, **relation.to_dict()})


def encode_record(record: Entity | Relation) -> str:
    if isinstance(record, Entity):
        return encode_entity(record)
    return encode_relation(record)


def decode_line(line: str, line_no: int | None = None) -> Entity | Relation:
    """Decode a single persisted line. Raises MalformedRecordError on anything unexpected."""
    try:
        obj = json.loads(line)
    except json.JSONDecodeError as exc:
        raise MalformedRecordError(f"invalid JSON: {exc.msg}", line_no) from exc

    if not isinstance(obj, dict):
        raise MalformedRecordError("not a JSON object", line_no)

    kind = obj.get("type")
    try:
        if kind == ENTITY:
            return Entity.from_dict(obj)
        if kind == RELATION:
            return Relation.from_dict(obj)
    except InvalidArgumentsError as exc:
        raise MalformedRecordError(str(exc), line_no) from exc
    raise MalformedRecordError(f"unknown record type {kind!r}", line_no)
