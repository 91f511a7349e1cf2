# SPDX-License-Identifier: MIT

import asyncio
import re
from copy import deepcopy
from pathlib import Path
from typing import Any, Optional, Protocol

from yaml import dump, load

try:
    from yaml import CSafeDumper as Dumper
    from yaml import CSafeLoader as Loader
except ImportError:
    from yaml import SafeDumper as Dumper, SafeLoader as Loader  # type: ignore[assignment]


class KeyValueStore(Protocol):
    """
    Raw key-value primitives. Implementations may raise on any fault;
    BoundedStore is responsible for turning faults into results.
    """

    async def get(self, scope: str, key: str) -> Optional[Any]: ...

    async def set(self, scope: str, key: str, value: Any) -> None: ...

    async def remove(self, scope: str, key: str) -> None: ...


class MemoryStore:
    def __init__(self) -> None:
        self.data: dict[tuple[str, str], Any] = {}

    async def get(self, scope: str, key: str) -> Optional[Any]:
        return deepcopy(self.data.get((scope, key)))

    async def set(self, scope: str, key: str, value: Any) -> None:
        self.data[(scope, key)] = deepcopy(value)

    async def remove(self, scope: str, key: str) -> None:
        self.data.pop((scope, key), None)

    def keys(self, scope: str) -> list[str]:
        return sorted(key for data_scope, key in self.data if data_scope == scope)


_UNSAFE_PATH_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class YamlFileStore:
    """One yaml file per key, grouped in a directory per scope."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def __path(self, scope: str, key: str) -> Path:
        scope_dir = _UNSAFE_PATH_CHARS.sub("_", scope)
        file_name = _UNSAFE_PATH_CHARS.sub("_", key)
        return self.root / scope_dir / f"{file_name}.yaml"

    def __read(self, path: Path) -> Optional[Any]:
        if not path.is_file():
            return None
        return load(path.read_text(), Loader=Loader)

    def __write(self, path: Path, value: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".yaml.tmp")
        tmp_path.write_text(dump(value, Dumper=Dumper))
        tmp_path.replace(path)

    def __unlink(self, path: Path) -> None:
        if path.exists():
            path.unlink()

    async def get(self, scope: str, key: str) -> Optional[Any]:
        return await asyncio.to_thread(self.__read, self.__path(scope, key))

    async def set(self, scope: str, key: str, value: Any) -> None:
        await asyncio.to_thread(self.__write, self.__path(scope, key), value)

    async def remove(self, scope: str, key: str) -> None:
        await asyncio.to_thread(self.__unlink, self.__path(scope, key))

    def scopes(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(path.name for path in self.root.iterdir() if path.is_dir())
