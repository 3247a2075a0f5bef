"""
Tests for configuration resolution.
"""

import pytest

from kgmem.config import init_config, load_config


class TestMemoryFileResolution:
    def test_default_is_memory_json_in_root(self, tmp_path):
        cfg = load_config(tmp_path)
        assert cfg.memory_file == tmp_path / "memory.json"
        assert cfg.skip_malformed is True
        assert cfg.log_level == "INFO"

    def test_toml_relative_to_root(self, tmp_path):
        (tmp_path / "kgmem.toml").write_text('[memory]\nfile = "data/graph.jsonl"\nskip_malformed = false\n')
        cfg = load_config(tmp_path)
        assert cfg.memory_file == tmp_path / "data" / "graph.jsonl"
        assert cfg.skip_malformed is False

    def test_root_found_by_walking_up(self, tmp_path, monkeypatch):
        (tmp_path / "kgmem.toml").write_text('[memory]\nfile = "m.json"\n')
        sub = tmp_path / "a" / "b"
        sub.mkdir(parents=True)
        monkeypatch.chdir(sub)
        cfg = load_config()
        assert cfg.root == tmp_path
        assert cfg.memory_file == tmp_path / "m.json"

    def test_dotenv_beats_toml(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "kgmem.toml").write_text('[memory]\nfile = "toml.json"\n')
        (tmp_path / ".env").write_text('# secrets\nMEMORY_FILE_PATH="env-file.json"\n')
        cfg = load_config(tmp_path)
        assert cfg.memory_file == tmp_path / "env-file.json"

    def test_environment_beats_dotenv(self, tmp_path, monkeypatch):
        (tmp_path / ".env").write_text("MEMORY_FILE_PATH=dotenv.json\n")
        monkeypatch.setenv("MEMORY_FILE_PATH", str(tmp_path / "abs" / "mem.json"))
        cfg = load_config(tmp_path)
        assert cfg.memory_file == tmp_path / "abs" / "mem.json"

    def test_relative_env_path_uses_cwd(self, tmp_path, monkeypatch):
        root = tmp_path / "project"
        root.mkdir()
        work = tmp_path / "work"
        work.mkdir()
        monkeypatch.chdir(work)
        monkeypatch.setenv("MEMORY_FILE_PATH", "rel.json")
        cfg = load_config(root)
        assert cfg.memory_file == work / "rel.json"

    def test_explicit_override_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MEMORY_FILE_PATH", "ignored.json")
        cfg = load_config(tmp_path, memory_file=tmp_path / "explicit.json")
        assert cfg.memory_file == tmp_path / "explicit.json"

    def test_log_level_env(self, tmp_path, monkeypatch):
        (tmp_path / "kgmem.toml").write_text('[logging]\nlevel = "warning"\n')
        assert load_config(tmp_path).log_level == "WARNING"
        monkeypatch.setenv("KGMEM_LOG_LEVEL", "debug")
        assert load_config(tmp_path).log_level == "DEBUG"

    @pytest.mark.parametrize("value", ['"false"', '"no"', "0"])
    def test_skip_malformed_must_be_toml_bool(self, tmp_path, value):
        (tmp_path / "kgmem.toml").write_text(f"[memory]\nskip_malformed = {value}\n")
        with pytest.raises(ValueError, match="skip_malformed"):
            load_config(tmp_path)


class TestInitConfig:
    def test_writes_loadable_config(self, tmp_path):
        path = init_config(tmp_path, memory_file="brain.json")
        assert path == tmp_path / "kgmem.toml"
        assert load_config(tmp_path).memory_file == tmp_path / "brain.json"

    def test_refuses_to_overwrite(self, tmp_path):
        init_config(tmp_path)
        with pytest.raises(FileExistsError):
            init_config(tmp_path)
