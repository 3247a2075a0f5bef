"""MemoryConfig: where the memory file lives and how to treat it.

Resolution order for the memory file:

    1. MEMORY_FILE_PATH in the process environment   (relative to cwd)
    2. MEMORY_FILE_PATH in <root>/.env               (relative to cwd)
    3. [memory].file in <root>/kgmem.toml            (relative to root)
    4. memory.json                                   (relative to root)

kgmem.toml example:

    [memory]
    file = "memory.json"
    skip_malformed = true    # false: a corrupt line aborts the load

    [logging]
    level = "INFO"           # or set KGMEM_LOG_LEVEL
"""

from __future__ import annotations

import logging
import os
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

_CONFIG_FILENAME = "kgmem.toml"
_DEFAULT_MEMORY_FILE = "memory.json"
_ENV_MEMORY_FILE = "MEMORY_FILE_PATH"
_ENV_LOG_LEVEL = "KGMEM_LOG_LEVEL"
_LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"


@dataclass
class MemoryConfig:
    """Resolved configuration for one memory store."""

    root: Path                      # directory that contains kgmem.toml (or cwd)
    memory_file: Path
    skip_malformed: bool = True
    log_level: str = "INFO"

    @property
    def config_path(self) -> Path:
        return self.root / _CONFIG_FILENAME


def _load_env(root: Path) -> dict[str, str]:
    """Parse a simple KEY=VALUE .env file (no external dependency)."""
    env_file = root / ".env"
    if not env_file.exists():
        return {}
    env: dict[str, str] = {}
    for line in env_file.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            k, _, v = line.partition("=")
            env[k.strip()] = v.strip().strip('"').strip("'")
    return env


def _find_root(start: Path) -> Path:
    """Walk upward from start looking for kgmem.toml."""
    for directory in (start, *start.parents):
        if (directory / _CONFIG_FILENAME).exists():
            return directory
    return start


def load_config(root: Path | str | None = None, memory_file: Path | str | None = None) -> MemoryConfig:
    """Load kgmem.toml from root (or search upward from cwd if root is None).

    ``memory_file`` overrides every other source (used by ``kgmem serve --file``).
    """
    root_path = _find_root(Path(root).resolve() if root else Path.cwd())
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    env = _load_env(root_path)
    mem_section = raw.get("memory", {})
    log_section = raw.get("logging", {})

    env_path = os.environ.get(_ENV_MEMORY_FILE) or env.get(_ENV_MEMORY_FILE)
    if memory_file is not None:
        path = Path(memory_file)
        resolved = path if path.is_absolute() else Path.cwd() / path
    elif env_path:
        path = Path(env_path).expanduser()
        resolved = path if path.is_absolute() else Path.cwd() / path
    else:
        path = Path(str(mem_section.get("file", _DEFAULT_MEMORY_FILE))).expanduser()
        resolved = path if path.is_absolute() else root_path / path

    log_level = os.environ.get(_ENV_LOG_LEVEL) or str(log_section.get("level", "INFO"))

    skip_malformed = mem_section.get("skip_malformed", True)
    if not isinstance(skip_malformed, bool):
        msg = f"{config_path}: [memory].skip_malformed must be true or false, got {skip_malformed!r}"
        raise ValueError(msg)

    return MemoryConfig(
        root=root_path,
        memory_file=resolved,
        skip_malformed=skip_malformed,
        log_level=log_level.upper(),
    )


def setup_logging(level: str = "INFO") -> None:
    """Log to stderr; stdout belongs to the MCP protocol."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=_LOG_FORMAT,
        stream=sys.stderr,
    )


def init_config(root: Path, memory_file: str = _DEFAULT_MEMORY_FILE) -> Path:
    """Write a default kgmem.toml at root. Raises if already exists."""
    config_path = root / _CONFIG_FILENAME
    if config_path.exists():
        msg = f"kgmem.toml already exists at {config_path}"
        raise FileExistsError(msg)

    content = f"""\
[memory]
file = "{memory_file}"        # relative to this directory; MEMORY_FILE_PATH overrides
# skip_malformed = true       # false: refuse to load a memory file with corrupt lines

# [logging]
# level = "INFO"              # or set KGMEM_LOG_LEVEL
"""
    config_path.write_text(content)
    return config_path
