"""Save persistence for the progression core.

Each save slot is one TOML document under the path template declared for
its collection in ``config/storage.toml``. The store records the schema
version each collection has reached in ``schema_version.toml`` inside the
collection's version scope; when that lags the configured version, the
scripts in ``migrations/<collection>/`` run in ``FROM_VERSION`` order before
any record is read or written.

:class:`~stridequest.game.GameState` only depends on the
:class:`SaveRepository` protocol. :class:`DataStore` is the on-disk
implementation and :class:`InMemorySaveRepository` keeps snapshots in a dict.
"""

from __future__ import annotations

import importlib.util
import logging
import math
import os
import re
import tempfile
from copy import deepcopy
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol
from urllib.parse import quote, unquote

import tomllib

from .constants import DEFAULT_SAVE_KEY
from .models.players import PlayerProgress
from .snapshot import SnapshotDecodeError, decode_snapshot, dump_snapshot

log = logging.getLogger(__name__)

SAVES_COLLECTION = "saves"
VERSIONS_FILENAME = "schema_version.toml"


def _is_site_packages(path: Path) -> bool:
    return any(part.lower() in ("site-packages", "dist-packages") for part in path.parts)


def resolve_storage_root(package_root: Path, override: Path | None = None) -> Path:
    """Pick the directory that holds mutable save data.

    ``override`` wins, then ``STRIDEQUEST_DATA_ROOT``. A writable checkout
    stores saves next to the sources; an installed or read-only package uses
    the current working directory instead.
    """

    if override is None:
        configured = os.getenv("STRIDEQUEST_DATA_ROOT")
        if configured:
            override = Path(configured)
    if override is not None:
        return override.expanduser().resolve()

    installed = _is_site_packages(package_root)
    if installed or not os.access(package_root, os.W_OK):
        return Path.cwd().resolve()
    return package_root


# ---------------------------------------------------------------------------
# TOML reading and writing
# ---------------------------------------------------------------------------


_BARE_KEY = re.compile(r"^[A-Za-z0-9_-]+$")
_ESCAPES = MappingProxyType(
    {
        "\\": "\\\\",
        '"': '\\"',
        "\b": "\\b",
        "\t": "\\t",
        "\n": "\\n",
        "\f": "\\f",
        "\r": "\\r",
    }
)


def _plain(value: Any) -> Any:
    """Reduce ``value`` to types TOML can hold. ``None`` entries are dropped."""

    if isinstance(value, Mapping):
        return {str(key): _plain(item) for key, item in value.items() if item is not None}
    if isinstance(value, (set, frozenset)):
        return sorted((_plain(item) for item in value if item is not None), key=repr)
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value if item is not None]
    if isinstance(value, Enum):
        return _plain(value.value)
    if isinstance(value, float) and not math.isfinite(value):
        return 0.0
    if isinstance(value, (str, int, float)):
        return value
    return str(value)


def _toml_string(text: str) -> str:
    pieces: List[str] = []
    for char in text:
        if char in _ESCAPES:
            pieces.append(_ESCAPES[char])
        elif " " <= char <= "~":
            pieces.append(char)
        elif ord(char) > 0xFFFF:
            pieces.append(f"\\U{ord(char):08x}")
        else:
            pieces.append(f"\\u{ord(char):04x}")
    return '"' + "".join(pieces) + '"'


def _toml_key(key: str) -> str:
    return key if _BARE_KEY.match(key) else _toml_string(key)


def _toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return _toml_string(value)
    if isinstance(value, Mapping):
        if not value:
            return "{}"
        pairs = (f"{_toml_key(key)} = {_toml_value(item)}" for key, item in value.items())
        return "{ " + ", ".join(pairs) + " }"
    if isinstance(value, list):
        return "[" + ", ".join(_toml_value(item) for item in value) + "]"
    return _toml_string(str(value))


def _is_table_array(value: Any) -> bool:
    return isinstance(value, list) and bool(value) and all(isinstance(item, Mapping) for item in value)


def _emit_table(table: Mapping[str, Any], path: tuple[str, ...], lines: List[str]) -> None:
    nested: List[str] = []
    for key in sorted(table):
        value = table[key]
        if isinstance(value, Mapping) or _is_table_array(value):
            nested.append(key)
        else:
            lines.append(f"{_toml_key(key)} = {_toml_value(value)}")

    # Sub-tables first, then arrays of tables.
    for key in sorted(nested, key=lambda name: (_is_table_array(table[name]), name)):
        value = table[key]
        child = (*path, key)
        header = ".".join(_toml_key(part) for part in child)
        entries = value if isinstance(value, list) else [value]
        for entry in entries:
            if lines and lines[-1]:
                lines.append("")
            lines.append(f"[[{header}]]" if isinstance(value, list) else f"[{header}]")
            _emit_table(entry, child, lines)


def _toml_dumps(data: Mapping[str, Any]) -> str:
    document = _plain(data)
    if not isinstance(document, dict):
        raise TypeError("Top level TOML document must be a mapping")
    lines: List[str] = []
    _emit_table(document, (), lines)
    return "\n".join(lines) + "\n"


def _read_toml(path: Path) -> Any:
    """Parsed contents of ``path``, or ``None`` when missing or unreadable."""

    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as exc:
        log.warning("Unable to read %s: %s", path, exc)
        return None
    try:
        return tomllib.loads(raw.decode("utf8"))
    except (UnicodeDecodeError, tomllib.TOMLDecodeError) as exc:
        log.warning("Unable to parse %s: %s", path, exc)
        return None


def _write_toml(path: Path, payload: Mapping[str, Any]) -> None:
    """Replace ``path`` with ``payload``; readers never see a partial file."""

    text = _toml_dumps(payload)
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        "w",
        encoding="utf8",
        dir=path.parent,
        prefix=f".{path.stem}-",
        suffix=".tmp",
        delete=False,
    )
    staged = Path(handle.name)
    try:
        with handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(staged, path)
    except BaseException:
        staged.unlink(missing_ok=True)
        raise


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class CollectionConfig:
    """One ``[collections.<name>]`` table from ``config/storage.toml``."""

    name: str
    path: str
    version: int
    version_scope: str | None = None
    migration_key: str | None = None

    @property
    def migrations(self) -> str:
        return self.migration_key or self.name

    def resolve_path(self, base: Path, *, key: str) -> Path:
        if "{key}" not in self.path:
            raise ValueError(f"Collection {self.name!r} does not store records per key")
        return base / self.path.format(key=quote(str(key), safe=""))

    def record_directory(self, base: Path) -> Path:
        return self.resolve_path(base, key="_").parent

    def resolve_scope_path(self, base: Path) -> Path:
        scope = self.version_scope
        if scope is None:
            scope = str(Path(self.path).parent)
        return (base / scope).resolve()

    @classmethod
    def from_table(cls, name: str, options: Mapping[str, Any]) -> "CollectionConfig":
        path = str(options.get("path", "")).strip()
        if not path:
            raise RuntimeError(f"Collection {name!r} is missing a path entry")
        scope = options.get("version_scope")
        return cls(
            name=name,
            path=path,
            version=int(options.get("version", 0)),
            version_scope=None if scope is None else str(scope),
            migration_key=str(options.get("migration") or name),
        )


def _load_storage_config(path: Path) -> Dict[str, CollectionConfig]:
    payload = _read_toml(path)
    if payload is None:
        raise RuntimeError(f"Missing or unreadable storage configuration at {path}")
    tables = payload.get("collections")
    if not isinstance(tables, Mapping):
        raise RuntimeError("storage configuration must define a [collections] table")
    return {
        str(name): CollectionConfig.from_table(str(name), options)
        for name, options in tables.items()
        if isinstance(options, Mapping)
    }


# ---------------------------------------------------------------------------
# Migrations
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class MigrationContext:
    """Handed to each migration's ``apply``."""

    collection: CollectionConfig
    base: Path
    scope_path: Path

    def record_paths(self) -> List[Path]:
        directory = self.collection.record_directory(self.base)
        if not directory.is_dir():
            return []
        return sorted(directory.glob("*.toml"))

    def log(self, message: str) -> None:
        print(f"[migration:{self.collection.name}] {message}")


@dataclass(frozen=True, slots=True)
class MigrationModule:
    from_version: int
    to_version: int
    apply: Callable[[MigrationContext], None]
    description: str

    @classmethod
    def load(cls, path: Path, collection: str) -> Optional["MigrationModule"]:
        spec = importlib.util.spec_from_file_location(f"migrations.{collection}.{path.stem}", path)
        if spec is None or spec.loader is None:
            return None
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        start = getattr(module, "FROM_VERSION", None)
        end = getattr(module, "TO_VERSION", None)
        apply = getattr(module, "apply", None)
        if not (isinstance(start, int) and isinstance(end, int) and callable(apply)):
            log.warning("Skipping migration %s: needs FROM_VERSION, TO_VERSION and apply()", path.name)
            return None
        return cls(start, end, apply, str(getattr(module, "DESCRIPTION", path.stem)))


class MissingMigrationError(RuntimeError):
    """The migration scripts cannot reach a collection's configured version."""


class VersionManager:
    """Brings each collection's on-disk schema up to its configured version."""

    def __init__(self, *, base: Path, migrations_base: Path) -> None:
        self._base = base
        self._migrations_base = migrations_base
        self._known: Dict[str, int] = {}
        self._steps: Dict[str, Dict[int, MigrationModule]] = {}

    def ensure(self, collection: CollectionConfig) -> None:
        key = collection.migrations
        if key not in self._known:
            self._known[key] = self._read_version(collection)
        if self._known[key] >= collection.version:
            return

        plan = self._plan(collection, self._known[key])
        scope = collection.resolve_scope_path(self._base)
        scope.mkdir(parents=True, exist_ok=True)
        context = MigrationContext(collection=collection, base=self._base, scope_path=scope)
        for step in plan:
            log.debug(
                "Migrating %s %d -> %d: %s",
                collection.name,
                step.from_version,
                step.to_version,
                step.description,
            )
            step.apply(context)
            self._known[key] = step.to_version
        self._write_version(collection, collection.version)

    def _plan(self, collection: CollectionConfig, current: int) -> List[MigrationModule]:
        steps = self._migrations(collection.migrations)
        plan: List[MigrationModule] = []
        version = current
        while version < collection.version:
            step = steps.get(version)
            if step is None or step.to_version <= version:
                raise MissingMigrationError(
                    f"No {collection.name!r} migration starts at version {version} "
                    f"(target {collection.version})"
                )
            plan.append(step)
            version = step.to_version
        if version != collection.version:
            raise MissingMigrationError(
                f"{collection.name!r} migrations end at {version}, expected {collection.version}"
            )
        return plan

    def _migrations(self, collection: str) -> Dict[int, MigrationModule]:
        if collection not in self._steps:
            directory = self._migrations_base / collection
            steps: Dict[int, MigrationModule] = {}
            for path in sorted(directory.glob("*.py")) if directory.is_dir() else ():
                if path.name.startswith("__"):
                    continue
                module = MigrationModule.load(path, collection)
                if module is not None:
                    steps.setdefault(module.from_version, module)
            self._steps[collection] = steps
        return self._steps[collection]

    def _versions_file(self, collection: CollectionConfig) -> Path:
        return collection.resolve_scope_path(self._base) / VERSIONS_FILENAME

    def _read_version(self, collection: CollectionConfig) -> int:
        payload = _read_toml(self._versions_file(collection))
        recorded = payload.get("collections") if isinstance(payload, Mapping) else None
        if not isinstance(recorded, Mapping):
            return 0
        try:
            return int(recorded.get(collection.migrations, 0))
        except (TypeError, ValueError):
            return 0

    def _write_version(self, collection: CollectionConfig, version: int) -> None:
        path = self._versions_file(collection)
        payload = _read_toml(path)
        document = dict(payload) if isinstance(payload, Mapping) else {}
        recorded = document.get("collections")
        recorded = dict(recorded) if isinstance(recorded, Mapping) else {}
        recorded[collection.migrations] = int(version)
        document["collections"] = recorded
        _write_toml(path, document)
        self._known[collection.migrations] = int(version)


# ---------------------------------------------------------------------------
# Save repositories
# ---------------------------------------------------------------------------


class SaveRepository(Protocol):
    def load(self, key: str = DEFAULT_SAVE_KEY) -> PlayerProgress: ...

    def save(self, key: str, player: PlayerProgress) -> None: ...

    def clear(self, key: str = DEFAULT_SAVE_KEY) -> None: ...


def _decode_or_fresh(payload: Mapping[str, Any] | None, key: str) -> PlayerProgress:
    """Decode ``payload``; a missing or unreadable save yields a fresh player.

    The stored record is left untouched so a newer release can still read it.
    """

    if payload is None:
        return PlayerProgress()
    try:
        return decode_snapshot(payload)
    except SnapshotDecodeError as exc:
        log.warning("Save %r could not be decoded, starting fresh: %s", key, exc)
        return PlayerProgress()


class InMemorySaveRepository:
    """Keeps snapshots in a dict. Used by tests and embedders."""

    def __init__(self, snapshots: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        self.snapshots: Dict[str, Dict[str, Any]] = {
            key: deepcopy(dict(value)) for key, value in (snapshots or {}).items()
        }

    def load(self, key: str = DEFAULT_SAVE_KEY) -> PlayerProgress:
        return _decode_or_fresh(self.snapshots.get(key), key)

    def save(self, key: str, player: PlayerProgress) -> None:
        self.snapshots[key] = dump_snapshot(player)

    def clear(self, key: str = DEFAULT_SAVE_KEY) -> None:
        self.snapshots.pop(key, None)


class DataStore:
    """TOML-backed :class:`SaveRepository` with generic per-collection access."""

    def __init__(
        self,
        *,
        root: Path | None = None,
        package_root: Path | None = None,
        collection: str = SAVES_COLLECTION,
    ) -> None:
        package_root = package_root or Path(__file__).resolve().parent.parent
        self._storage_root = resolve_storage_root(package_root, root)
        self._collections = _load_storage_config(package_root / "config" / "storage.toml")
        self._versions = VersionManager(
            base=self._storage_root, migrations_base=package_root / "migrations"
        )
        self._save_collection = collection

    @property
    def storage_root(self) -> Path:
        return self._storage_root

    def _ready(self, name: str) -> CollectionConfig:
        try:
            config = self._collections[name]
        except KeyError as exc:
            raise KeyError(f"Unknown collection: {name}") from exc
        self._versions.ensure(config)
        return config

    # Generic record access ------------------------------------------------

    def get(self, collection: str) -> Mapping[str, Any]:
        """All records of ``collection`` keyed by their unquoted record key."""

        directory = self._ready(collection).record_directory(self._storage_root)
        records: Dict[str, Any] = {}
        for path in sorted(directory.glob("*.toml")) if directory.is_dir() else ():
            payload = _read_toml(path)
            if isinstance(payload, dict):
                records[unquote(path.stem)] = payload
        return MappingProxyType(records)

    def get_record(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        config = self._ready(collection)
        payload = _read_toml(config.resolve_path(self._storage_root, key=key))
        return payload if isinstance(payload, dict) else None

    def set(self, collection: str, key: str, value: Mapping[str, Any]) -> None:
        config = self._ready(collection)
        _write_toml(config.resolve_path(self._storage_root, key=key), deepcopy(dict(value)))

    def delete(self, collection: str, key: str) -> None:
        config = self._ready(collection)
        config.resolve_path(self._storage_root, key=key).unlink(missing_ok=True)

    # SaveRepository -------------------------------------------------------

    def load(self, key: str = DEFAULT_SAVE_KEY) -> PlayerProgress:
        return _decode_or_fresh(self.get_record(self._save_collection, key), key)

    def save(self, key: str, player: PlayerProgress) -> None:
        self.set(self._save_collection, key, dump_snapshot(player))

    def clear(self, key: str = DEFAULT_SAVE_KEY) -> None:
        self.delete(self._save_collection, key)


__all__ = [
    "CollectionConfig",
    "DataStore",
    "InMemorySaveRepository",
    "MigrationContext",
    "MigrationModule",
    "MissingMigrationError",
    "SaveRepository",
    "VersionManager",
    "resolve_storage_root",
]
