"""Knowledge graph memory: one JSONL file as the source of truth.

Layout:
    memory.json          # one record per line (path from MEMORY_FILE_PATH / kgmem.toml)

memory.json line types:
    {"type":"entity", "name":..., "entityType":..., "observations":[...]}
    {"type":"relation", "from":..., "to":..., "relationType":...}

Writes: the whole file is rewritten via tmp file + os.replace, so readers see
either the old or the new content, never a mix. Mutations on one path are
serialized by an in-process readers/writer lock.
"""

from kgmem.config import MemoryConfig, init_config, load_config
from kgmem.errors import (
    DecodeError,
    EntityNotFoundError,
    InvalidArgumentsError,
    KGMemError,
    MalformedRecordError,
    StoreIOError,
)
from kgmem.graph import GraphStore
from kgmem.models import (
    Entity,
    GraphStats,
    KnowledgeGraph,
    ObservationAddition,
    ObservationDeletion,
    ObservationResult,
    Relation,
)
from kgmem.store import GraphFile, LoadResult

__all__ = [
    "DecodeError",
    "Entity",
    "EntityNotFoundError",
    "GraphFile",
    "GraphStats",
    "GraphStore",
    "InvalidArgumentsError",
    "KGMemError",
    "KnowledgeGraph",
    "LoadResult",
    "MalformedRecordError",
    "MemoryConfig",
    "ObservationAddition",
    "ObservationDeletion",
    "ObservationResult",
    "Relation",
    "StoreIOError",
    "init_config",
    "load_config",
]
