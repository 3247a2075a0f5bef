"""
Tests for memory file persistence.
"""

import json
import logging
import os

import pytest

from kgmem.errors import MalformedRecordError, StoreIOError
from kgmem.models import Entity, KnowledgeGraph, Relation
from kgmem.store import GraphFile


def _graph() -> KnowledgeGraph:
    return KnowledgeGraph(
        entities=[
            Entity("Alice", "Person", ["likes tea", "works remotely", "has a cat"]),
            Entity("Bob", "Person", []),
        ],
        relations=[
            Relation("Alice", "Bob", "knows"),
            Relation("Bob", "Carol", "mentors"),   # dangling endpoint is allowed
        ],
    )


class TestLoad:
    def test_missing_file_is_empty_graph(self, memory_path):
        result = GraphFile(memory_path).load()
        assert result.graph == KnowledgeGraph()
        assert result.skipped == 0
        assert not memory_path.exists()

    def test_skips_blank_lines(self, memory_path):
        memory_path.write_text(
            '\n{"type":"entity","name":"A","entityType":"T","observations":[]}\n\n   \n',
            encoding="utf-8",
        )
        result = GraphFile(memory_path).load()
        assert [e.name for e in result.graph.entities] == ["A"]
        assert result.skipped == 0

    def test_malformed_lines_skipped_and_counted(self, memory_path, caplog):
        memory_path.write_text(
            "\n".join([
                '{"type":"entity","name":"A","entityType":"T","observations":["x"]}',
                '{"type":"mystery"}',
                "garbage",
                '{"type":"relation","from":"A","to":"B","relationType":"r"}',
                '{"type":"entity","name":"B","entityType":"T","obs',   # torn write
            ]),
            encoding="utf-8",
        )
        with caplog.at_level(logging.WARNING, logger="kgmem.store"):
            result = GraphFile(memory_path).load()
        assert [e.name for e in result.graph.entities] == ["A"]
        assert result.graph.relations == [Relation("A", "B", "r")]
        assert result.skipped == 3
        assert "line 2" in caplog.text

    def test_strict_mode_raises(self, memory_path):
        memory_path.write_text("garbage\n", encoding="utf-8")
        with pytest.raises(MalformedRecordError) as excinfo:
            GraphFile(memory_path, skip_malformed=False).load()
        assert excinfo.value.line_no == 1

    def test_duplicate_records_dropped(self, memory_path):
        memory_path.write_text(
            "\n".join([
                '{"type":"entity","name":"A","entityType":"first","observations":[]}',
                '{"type":"entity","name":"A","entityType":"second","observations":[]}',
                '{"type":"relation","from":"A","to":"B","relationType":"r"}',
                '{"type":"relation","from":"A","to":"B","relationType":"r"}',
            ]),
            encoding="utf-8",
        )
        result = GraphFile(memory_path).load()
        assert result.graph.entities == [Entity("A", "first", [])]
        assert len(result.graph.relations) == 1
        assert result.skipped == 2

    def test_directory_is_store_io_error(self, tmp_path):
        with pytest.raises(StoreIOError):
            GraphFile(tmp_path).load()

    def test_invalid_utf8_line_skipped(self, memory_path):
        memory_path.write_bytes(
            b'{"type":"entity","name":"A","entityType":"T","observations":[]}\n'
            b"\xff\xfe\xfa\n"
            b'{"type":"entity","name":"B","entityType":"T","observations":["caf\xc3\xa9"]}\n'
        )
        result = GraphFile(memory_path).load()
        assert [e.name for e in result.graph.entities] == ["A", "B"]
        assert result.graph.entities[1].observations == ["café"]
        assert result.skipped == 1

    def test_invalid_utf8_line_strict(self, memory_path):
        memory_path.write_bytes(b"\xff\xfe\xfa\n")
        with pytest.raises(MalformedRecordError, match="UTF-8") as excinfo:
            GraphFile(memory_path, skip_malformed=False).load()
        assert excinfo.value.line_no == 1

    def test_duplicate_observations_collapsed(self, memory_path):
        memory_path.write_text(
            '{"type":"entity","name":"A","entityType":"T","observations":["x","x","y"]}\n',
            encoding="utf-8",
        )
        gf = GraphFile(memory_path)
        result = gf.load()
        assert result.graph.entities[0].observations == ["x", "y"]
        assert result.skipped == 0

        gf.save(result.graph)
        assert json.loads(memory_path.read_text(encoding="utf-8"))["observations"] == ["x", "y"]


class TestSave:
    def test_round_trip(self, memory_path):
        gf = GraphFile(memory_path)
        gf.save(_graph())
        loaded = gf.load()
        assert loaded.graph == _graph()
        assert loaded.skipped == 0
        # observation order survives
        assert loaded.graph.entities[0].observations == ["likes tea", "works remotely", "has a cat"]

    def test_entities_before_relations_one_per_line(self, memory_path):
        GraphFile(memory_path).save(_graph())
        lines = memory_path.read_text(encoding="utf-8").splitlines()
        assert [json.loads(line)["type"] for line in lines] == ["entity", "entity", "relation", "relation"]

    def test_empty_graph_writes_empty_file(self, memory_path):
        GraphFile(memory_path).save(KnowledgeGraph())
        assert memory_path.read_text() == ""
        assert GraphFile(memory_path).load().graph == KnowledgeGraph()

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "memory.json"
        GraphFile(path).save(_graph())
        assert path.exists()

    def test_no_temp_files_left_behind(self, memory_path):
        GraphFile(memory_path).save(_graph())
        assert sorted(p.name for p in memory_path.parent.iterdir()) == ["memory.json"]

    def test_keeps_file_mode(self, memory_path):
        gf = GraphFile(memory_path)
        gf.save(_graph())
        os.chmod(memory_path, 0o640)
        gf.save(KnowledgeGraph())
        assert memory_path.stat().st_mode & 0o777 == 0o640

    def test_failed_replace_leaves_old_content(self, memory_path, monkeypatch):
        gf = GraphFile(memory_path)
        gf.save(_graph())
        before = memory_path.read_bytes()

        def boom(src, dst):
            raise OSError(28, "No space left on device")

        monkeypatch.setattr("kgmem.store.os.replace", boom)
        with pytest.raises(StoreIOError, match="No space left"):
            gf.save(KnowledgeGraph(entities=[Entity("Z", "T", [])]))

        assert memory_path.read_bytes() == before
        assert sorted(p.name for p in memory_path.parent.iterdir()) == ["memory.json"]
