"""Stdio MCP server for kgmem.

Tools (names compatible with the reference memory server):
    create_entities(entities)            → inserted entities (JSON)
    create_relations(relations)          → inserted relations (JSON)
    add_observations(observations)       → [{entityName, addedObservations}] (JSON)
    delete_entities(entityNames)         → confirmation text
    delete_observations(deletions)       → confirmation text
    delete_relations(relations)          → confirmation text
    read_graph()                         → {entities, relations} (JSON)
    search_nodes(query)                  → {entities, relations} (JSON)
    open_nodes(names)                    → {entities, relations} (JSON)

Protocol: JSON-RPC 2.0 over stdin/stdout (MCP spec). Each tools/call runs in a
worker thread so overlapping requests are served concurrently; GraphStore
serializes them per memory file.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import TYPE_CHECKING, Any

from kgmem.errors import InvalidArgumentsError
from kgmem.graph import GraphStore
from kgmem.models import Entity, ObservationAddition, ObservationDeletion, Relation

if TYPE_CHECKING:
    from collections.abc import Callable

    from kgmem.config import MemoryConfig

logger = logging.getLogger("kgmem.mcp")

SERVER_NAME = "memory-mcp-server"
_VERSION = "0.1.1"
_PROTOCOL_VERSION = "2024-11-05"
_MAX_LINE_BYTES = 16 * 1024 * 1024  # asyncio default is 64 KiB per line

_ENTITY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "description": "The name of the entity"},
        "entityType": {"type": "string", "description": "The type of the entity"},
        "observations": {
            "type": "array",
            "items": {"type": "string"},
            "description": "An array of observation contents associated with the entity",
        },
    },
    "required": ["name", "entityType", "observations"],
}

_RELATION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "from": {"type": "string", "description": "The name of the entity where the relation starts"},
        "to": {"type": "string", "description": "The name of the entity where the relation ends"},
        "relationType": {"type": "string", "description": "The type of the relation"},
    },
    "required": ["from", "to", "relationType"],
}


def _array_of(items: dict[str, Any], description: str) -> dict[str, Any]:
    return {"type": "array", "items": items, "description": description}


def _tool_defs() -> list[dict[str, Any]]:
    return [
        {
            "name": "create_entities",
            "description": "Create multiple new entities in the knowledge graph",
            "inputSchema": {
                "type": "object",
                "properties": {"entities": _array_of(_ENTITY_SCHEMA, "An array of entities to create")},
                "required": ["entities"],
            },
        },
        {
            "name": "create_relations",
            "description": (
                "Create multiple new relations between entities in the knowledge graph. "
                "Relations should be in active voice"
            ),
            "inputSchema": {
                "type": "object",
                "properties": {"relations": _array_of(_RELATION_SCHEMA, "An array of relations to create")},
                "required": ["relations"],
            },
        },
        {
            "name": "add_observations",
            "description": "Add new observations to existing entities in the knowledge graph",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "observations": _array_of(
                        {
                            "type": "object",
                            "properties": {
                                "entityName": {
                                    "type": "string",
                                    "description": "The name of the entity to add the observations to",
                                },
                                "contents": {
                                    "type": "array",
                                    "items": {"type": "string"},
                                    "description": "An array of observation contents to add",
                                },
                            },
                            "required": ["entityName", "contents"],
                        },
                        "An array of observations to add to entities",
                    ),
                },
                "required": ["observations"],
            },
        },
        {
            "name": "delete_entities",
            "description": "Delete multiple entities and their associated relations from the knowledge graph",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "entityNames": _array_of({"type": "string"}, "An array of entity names to delete"),
                },
                "required": ["entityNames"],
            },
        },
        {
            "name": "delete_observations",
            "description": "Delete specific observations from entities in the knowledge graph",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "deletions": _array_of(
                        {
                            "type": "object",
                            "properties": {
                                "entityName": {
                                    "type": "string",
                                    "description": "The name of the entity containing the observations",
                                },
                                "observations": {
                                    "type": "array",
                                    "items": {"type": "string"},
                                    "description": "An array of observations to delete",
                                },
                            },
                            "required": ["entityName", "observations"],
                        },
                        "An array of observations to delete from entities",
                    ),
                },
                "required": ["deletions"],
            },
        },
        {
            "name": "delete_relations",
            "description": "Delete multiple relations from the knowledge graph",
            "inputSchema": {
                "type": "object",
                "properties": {"relations": _array_of(_RELATION_SCHEMA, "An array of relations to delete")},
                "required": ["relations"],
            },
        },
        {
            "name": "read_graph",
            "description": "Read the entire knowledge graph",
            "inputSchema": {"type": "object", "properties": {}},
        },
        {
            "name": "search_nodes",
            "description": "Search for nodes in the knowledge graph based on a query",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "The search query to match against entity names, types, and observation content",
                    },
                },
                "required": ["query"],
            },
        },
        {
            "name": "open_nodes",
            "description": "Open specific nodes in the knowledge graph by their names",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "names": _array_of({"type": "string"}, "An array of entity names to retrieve"),
                },
                "required": ["names"],
            },
        },
    ]


def _items(args: dict[str, Any], key: str) -> list[Any]:
    value = args.get(key)
    if not isinstance(value, list):
        msg = f"'{key}' must be an array"
        raise InvalidArgumentsError(msg)
    return value


def _objects(args: dict[str, Any], key: str) -> list[dict[str, Any]]:
    items = _items(args, key)
    if not all(isinstance(i, dict) for i in items):
        msg = f"'{key}' must be an array of objects"
        raise InvalidArgumentsError(msg)
    return items


def _strings(args: dict[str, Any], key: str) -> list[str]:
    items = _items(args, key)
    if not all(isinstance(i, str) for i in items):
        msg = f"'{key}' must be an array of strings"
        raise InvalidArgumentsError(msg)
    return items


def _to_json(obj: Any) -> str:
    return json.dumps(obj, indent=2, ensure_ascii=False)


class MemoryServer:
    def __init__(self, store: GraphStore) -> None:
        self.store = store

    @classmethod
    def from_config(cls, cfg: MemoryConfig) -> MemoryServer:
        return cls(GraphStore(cfg.memory_file, skip_malformed=cfg.skip_malformed))

    def _call_create_entities(self, args: dict[str, Any]) -> str:
        entities = [Entity.from_dict(d) for d in _objects(args, "entities")]
        return _to_json([e.to_dict() for e in self.store.create_entities(entities)])

    def _call_create_relations(self, args: dict[str, Any]) -> str:
        relations = [Relation.from_dict(d) for d in _objects(args, "relations")]
        return _to_json([r.to_dict() for r in self.store.create_relations(relations)])

    def _call_add_observations(self, args: dict[str, Any]) -> str:
        additions = [ObservationAddition.from_dict(d) for d in _objects(args, "observations")]
        return _to_json([r.to_dict() for r in self.store.add_observations(additions)])

    def _call_delete_entities(self, args: dict[str, Any]) -> str:
        self.store.delete_entities(_strings(args, "entityNames"))
        return "Entities deleted successfully"

    def _call_delete_observations(self, args: dict[str, Any]) -> str:
        deletions = [ObservationDeletion.from_dict(d) for d in _objects(args, "deletions")]
        self.store.delete_observations(deletions)
        return "Observations deleted successfully"

    def _call_delete_relations(self, args: dict[str, Any]) -> str:
        relations = [Relation.from_dict(d) for d in _objects(args, "relations")]
        self.store.delete_relations(relations)
        return "Relations deleted successfully"

    def _call_read_graph(self, args: dict[str, Any]) -> str:  # noqa: ARG002
        return _to_json(self.store.read_graph().to_dict())

    def _call_search_nodes(self, args: dict[str, Any]) -> str:
        query = args.get("query")
        if not isinstance(query, str):
            msg = "'query' must be a string"
            raise InvalidArgumentsError(msg)
        return _to_json(self.store.search_nodes(query).to_dict())

    def _call_open_nodes(self, args: dict[str, Any]) -> str:
        return _to_json(self.store.open_nodes(_strings(args, "names")).to_dict())

    def call_tool(self, name: str, arguments: dict[str, Any]) -> str:
        dispatch: dict[str, Callable[[dict[str, Any]], str]] = {
            "create_entities": self._call_create_entities,
            "create_relations": self._call_create_relations,
            "add_observations": self._call_add_observations,
            "delete_entities": self._call_delete_entities,
            "delete_observations": self._call_delete_observations,
            "delete_relations": self._call_delete_relations,
            "read_graph": self._call_read_graph,
            "search_nodes": self._call_search_nodes,
            "open_nodes": self._call_open_nodes,
        }
        if name not in dispatch:
            msg = f"Unknown tool: {name}"
            raise ValueError(msg)
        if not isinstance(arguments, dict):
            msg = "tool arguments must be an object"
            raise InvalidArgumentsError(msg)
        logger.debug("tools/call %s", name)
        return dispatch[name](arguments)

    async def handle_message(self, msg: dict[str, Any]) -> dict[str, Any] | None:
        """Answer one JSON-RPC message. Returns None for notifications."""
        method = msg.get("method", "")
        msg_id = msg.get("id")

        if method == "initialize":
            return {
                "jsonrpc": "2.0",
                "id": msg_id,
                "result": {
                    "protocolVersion": _PROTOCOL_VERSION,
                    "capabilities": {"tools": {}},
                    "serverInfo": {"name": SERVER_NAME, "version": _VERSION},
                },
            }

        if method == "ping":
            return {"jsonrpc": "2.0", "id": msg_id, "result": {}}

        if method == "tools/list":
            return {"jsonrpc": "2.0", "id": msg_id, "result": {"tools": _tool_defs()}}

        if method == "tools/call":
            params = msg.get("params")
            if not isinstance(params, dict):
                params = {}
            tool_name = params.get("name", "")
            arguments = params.get("arguments") or {}
            try:
                result_text = await asyncio.to_thread(self.call_tool, tool_name, arguments)
            except Exception as exc:
                logger.exception("tool %s failed", tool_name)
                return {
                    "jsonrpc": "2.0",
                    "id": msg_id,
                    "result": {
                        "content": [{"type": "text", "text": f"Error: {exc}"}],
                        "isError": True,
                    },
                }
            return {
                "jsonrpc": "2.0",
                "id": msg_id,
                "result": {
                    "content": [{"type": "text", "text": result_text}],
                    "isError": False,
                },
            }

        if msg_id is not None:
            return {
                "jsonrpc": "2.0",
                "id": msg_id,
                "error": {"code": -32601, "message": f"Method not found: {method}"},
            }
        return None  # notifications (e.g. notifications/initialized) get no response


async def _run_server(server: MemoryServer) -> None:
    reader = asyncio.StreamReader(limit=_MAX_LINE_BYTES)
    loop = asyncio.get_running_loop()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)

    writer_transport, _ = await loop.connect_write_pipe(asyncio.BaseProtocol, sys.stdout.buffer)

    def write_json(obj: Any) -> None:
        line = json.dumps(obj, ensure_ascii=False) + "\n"
        logger.debug("-> %s", line.rstrip())
        writer_transport.write(line.encode())

    async def respond(msg: dict[str, Any]) -> None:
        response = await server.handle_message(msg)
        if response is not None:
            write_json(response)

    pending: set[asyncio.Task[None]] = set()
    while True:
        try:
            line = await reader.readline()
        except (asyncio.IncompleteReadError, EOFError):
            break
        if not line:
            break
        logger.debug("<- %s", line.decode(errors="replace").rstrip())
        try:
            msg = json.loads(line)
        except (json.JSONDecodeError, UnicodeDecodeError):
            continue
        if not isinstance(msg, dict):
            continue

        task = asyncio.create_task(respond(msg))
        pending.add(task)
        task.add_done_callback(pending.discard)

    if pending:
        await asyncio.gather(*pending)


def run_server(cfg: MemoryConfig) -> None:
    """Entry point for `kgmem serve`."""
    server = MemoryServer.from_config(cfg)
    logger.info("%s v%s on stdio, memory file %s", SERVER_NAME, _VERSION, cfg.memory_file)
    asyncio.run(_run_server(server))
