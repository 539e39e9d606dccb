"""
Configuration sources for limits.

The loader only needs a key-path -> string view of the configuration.
Paths are dot separated (``players.alice.chest``).
"""

from pathlib import Path
from typing import Any, List, Mapping, Optional, Protocol, Union

import yaml

from shared.errors import ConfigError
from shared.logging import get_logger


class ConfigSource(Protocol):
    """Read-only key-path view of a limits configuration."""

    def get_keys(self, path: str) -> List[str]:
        ...

    def get_string(self, path: str) -> Optional[str]:
        ...

    def is_section(self, path: str) -> bool:
        ...

    def exists(self, path: str) -> bool:
        ...


_MISSING = object()


class MappingConfigSource:
    """Config source over nested mappings, in insertion order."""

    def __init__(self, data: Optional[Mapping[str, Any]] = None):
        self._data = data or {}

    def _node(self, path: str) -> Any:
        node: Any = self._data
        if not path:
            return node
        for part in path.split("."):
            if not isinstance(node, Mapping):
                return _MISSING
            # YAML may produce non-string keys (e.g. numeric ids)
            for key, value in node.items():
                if str(key) == part:
                    node = value
                    break
            else:
                return _MISSING
        return node

    def exists(self, path: str) -> bool:
        # An empty YAML section ("players:") loads as None
        return self._node(path) not in (_MISSING, None)

    def is_section(self, path: str) -> bool:
        return isinstance(self._node(path), Mapping)

    def get_keys(self, path: str) -> List[str]:
        node = self._node(path)
        if not isinstance(node, Mapping):
            return []
        return [str(key) for key in node.keys()]

    def get_string(self, path: str) -> Optional[str]:
        node = self._node(path)
        if node is _MISSING or node is None or isinstance(node, (Mapping, list)):
            return None
        return str(node)


class YamlConfigSource(MappingConfigSource):
    """Config source backed by a YAML file such as ``limits.yml``.

    A missing file is treated as an empty configuration, which leaves
    every player unconstrained.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.logger = get_logger("limits.config")
        super().__init__(self._read())

    def _read(self) -> Mapping[str, Any]:
        if not self.path.exists():
            self.logger.warning("Limits file not found, no limits configured", path=str(self.path))
            return {}

        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle)
        except yaml.YAMLError as e:
            raise ConfigError(
                f"Limits file {self.path} is not valid YAML",
                details={"path": str(self.path), "error": str(e)}
            ) from e
        except (UnicodeDecodeError, OSError) as e:
            raise ConfigError(
                f"Limits file {self.path} could not be read",
                details={"path": str(self.path), "error": str(e)}
            ) from e

        if data is None:
            return {}
        if not isinstance(data, Mapping):
            raise ConfigError(
                f"Limits file {self.path} must contain a mapping",
                details={"path": str(self.path)}
            )
        return data
