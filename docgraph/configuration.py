"""
Configuration primitives for docgraph storage and observability.

The `DocGraphConfig` dataclass is the single entry point that downstream
components use to determine where the object graph database lives, how
deeply documents and patterns may nest, and how events are logged.

Example usage::

    from pathlib import Path
    from docgraph.configuration import DocGraphConfig

    config = DocGraphConfig.with_root(Path.cwd() / "docgraph_storage")
    print(config.database_url)

The configuration loader can execute a user supplied `config.py` file::

    from docgraph.configuration import load_config_from_file

    config = load_config_from_file("/path/to/config.py")

The file must define a variable named ``DOCGRAPH_CONFIG`` that is an instance
of :class:`DocGraphConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, MutableMapping


DEFAULT_STORAGE_ROOT_NAME = "docgraph_storage"
CONFIG_SYMBOL_NAME = "DOCGRAPH_CONFIG"
DEFAULT_MAX_DEPTH = 32


class ConfigurationError(RuntimeError):
    """Raised when loading a configuration file fails."""


def _ensure_path(path: Path | str) -> Path:
    result = Path(path).expanduser()
    if not result.is_absolute():
        result = result.resolve()
    return result


@dataclass(slots=True)
class StoragePaths:
    """Filesystem locations used by docgraph."""

    root: Path
    database_path: Path
    log_dir: Path

    def ensure_directories(self) -> None:
        """Create directories represented by this configuration."""
        for directory in {self.root, self.database_path.parent, self.log_dir}:
            directory.mkdir(parents=True, exist_ok=True)

    @property
    def database_url(self) -> str:
        """Return the SQLAlchemy URL for the object graph database."""
        return f"sqlite:///{self.database_path}"


@dataclass(slots=True)
class ObservabilitySettings:
    """Logging and event configuration."""

    log_level: str = "INFO"
    enable_events: bool = True


@dataclass(slots=True)
class ObjectStoreSettings:
    """Settings for the relational object store."""

    database_url: str | None = None
    max_depth: int = DEFAULT_MAX_DEPTH
    echo_sql: bool = False

    def __post_init__(self) -> None:
        if self.max_depth < 1:
            raise ConfigurationError(
                f"max_depth must be a positive integer, got {self.max_depth!r}"
            )


@dataclass(slots=True)
class DocGraphConfig:
    """
    Root configuration structure for docgraph.

    Attributes:
        storage: Filesystem paths for the database and logs.
        observability: Logging and event configuration.
        object_store: Relational store settings and nesting limits.
        extras: User-defined metadata dictionary.
    """

    storage: StoragePaths
    observability: ObservabilitySettings = field(default_factory=ObservabilitySettings)
    object_store: ObjectStoreSettings = field(default_factory=ObjectStoreSettings)
    extras: Mapping[str, Any] = field(default_factory=dict)

    @property
    def database_url(self) -> str:
        """Return the database URL, preferring an explicit override."""
        return self.object_store.database_url or self.storage.database_url

    @classmethod
    def with_root(
        cls,
        root: Path | str,
        *,
        observability: ObservabilitySettings | None = None,
        object_store: ObjectStoreSettings | None = None,
        extras: Mapping[str, Any] | None = None,
    ) -> "DocGraphConfig":
        """
        Create a DocGraphConfig with storage paths derived from a root directory.

        Args:
            root: Root directory for the database and logs.
            observability: Optional observability settings.
            object_store: Optional object store settings.
            extras: Optional user-defined metadata.

        Returns:
            Configured DocGraphConfig instance.
        """
        root_path = _ensure_path(root)
        storage = StoragePaths(
            root=root_path,
            database_path=root_path / "db" / "objects.db",
            log_dir=root_path / "logs",
        )
        return cls(
            storage=storage,
            observability=observability or ObservabilitySettings(),
            object_store=object_store or ObjectStoreSettings(),
            extras=MappingProxyType(dict(extras or {})),
        )


def default_config(root: Path | None = None) -> DocGraphConfig:
    """Return a default configuration rooted at the provided directory."""
    if root is None:
        root = Path.cwd() / DEFAULT_STORAGE_ROOT_NAME
    return DocGraphConfig.with_root(root)


def load_config_from_file(path: Path | str) -> DocGraphConfig:
    """
    Execute a user provided config module and return ``DocGraphConfig``.

    The target file must define a global named ``DOCGRAPH_CONFIG`` that is an
    instance of :class:`DocGraphConfig`.
    """
    path = Path(path).expanduser()
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    namespace: MutableMapping[str, Any] = {}
    code = path.read_text()
    compiled = compile(code, str(path), "exec")
    exec(compiled, namespace, namespace)  # noqa: S102 (exec used for config loading)

    if CONFIG_SYMBOL_NAME not in namespace:
        raise ConfigurationError(
            f"Configuration file {path} must define `{CONFIG_SYMBOL_NAME}`"
        )

    config_obj = namespace[CONFIG_SYMBOL_NAME]
    if not isinstance(config_obj, DocGraphConfig):
        raise ConfigurationError(
            f"{CONFIG_SYMBOL_NAME} in {path} must be a DocGraphConfig, "
            f"got {type(config_obj)!r}"
        )

    return config_obj


__all__ = [
    "CONFIG_SYMBOL_NAME",
    "ConfigurationError",
    "DEFAULT_MAX_DEPTH",
    "DEFAULT_STORAGE_ROOT_NAME",
    "DocGraphConfig",
    "ObjectStoreSettings",
    "ObservabilitySettings",
    "StoragePaths",
    "default_config",
    "load_config_from_file",
]
