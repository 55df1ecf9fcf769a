"""
ConfigManager - YAML-backed dynamic configuration (First/Last 2025)

Purpose
-------
Provide read access to balance and presentation configuration that lives in
version-controlled YAML files rather than in the environment: the point
table, flair tiers with their role ids, and spreadsheet grey dates.

Responsibilities
----------------
- Recursively load every `*.yaml` / `*.yml` file from the config directory.
- Deep-merge them into one defaults tree (later files override earlier).
- Resolve dot-notation keys (e.g. `"scoring.points.last_message"`).
- Track lightweight read metrics for health snapshots.

Non-Responsibilities
--------------------
- Environment/static settings (handled by `Config`).
- Building typed scoring tables (see `src.modules.scoring.point_table` and
  `src.modules.flair.tiers`).

Design Notes
------------
- Class-level state; `initialize()` is idempotent and guarded by a lock.
- Values are read-only after load. `reload()` re-reads YAML from disk.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional

import yaml

from src.core.config.config import Config
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


class ConfigManagerError(RuntimeError):
    """Base error type for ConfigManager-related failures."""


__all__ = ["ConfigManager", "ConfigManagerError"]


@dataclass(slots=True)
class _ConfigReadMetrics:
    gets: int = 0
    hits: int = 0
    misses: int = 0
    files_loaded: int = 0


class ConfigManager:
    """
    Read-only configuration tree loaded from YAML.

    Examples
    --------
    >>> await ConfigManager.initialize()
    >>> ConfigManager.get("scoring.points.last_message", 20)
    20
    """

    _cache: Dict[str, Any] = {}
    _initialized: bool = False
    _init_lock: asyncio.Lock = asyncio.Lock()
    _config_dir: Optional[Path] = None
    _metrics: _ConfigReadMetrics = _ConfigReadMetrics()

    # =========================================================================
    # YAML LOADING
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: MutableMapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)  # type: ignore[index]
            else:
                target[key] = value

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> Dict[str, Any]:
        """
        Load and deep-merge every YAML file under `config_dir`.

        A missing directory yields an empty tree; callers then fall back to
        their own defaults. Malformed files raise, since a half-loaded point
        table would silently mis-score a whole day.
        """
        merged: Dict[str, Any] = {}

        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return merged

        yaml_files = sorted(
            list(config_dir.rglob("*.yaml")) + list(config_dir.rglob("*.yml"))
        )
        loaded = 0

        for yaml_file in yaml_files:
            with yaml_file.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle)

            if isinstance(data, dict):
                cls._deep_merge_dict(merged, data)
                loaded += 1
                logger.debug(
                    "Loaded YAML config",
                    extra={"file": str(yaml_file.relative_to(config_dir))},
                )
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "root_type": type(data).__name__,
                    },
                )

        cls._metrics.files_loaded = loaded
        logger.info(
            "YAML configs loaded",
            extra={"yaml_file_count": loaded, "top_level_keys": len(merged)},
        )
        return merged

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @classmethod
    async def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """Load YAML configuration once. Safe to call repeatedly."""
        async with cls._init_lock:
            if cls._initialized:
                return
            cls._config_dir = config_dir or Config.CONFIG_DIR
            cls._cache = cls._load_yaml_configs(cls._config_dir)
            cls._initialized = True

    @classmethod
    def load_from_dict(cls, data: Dict[str, Any]) -> None:
        """Replace the configuration tree directly (tests, scripts)."""
        cls._cache = dict(data)
        cls._initialized = True

    @classmethod
    def reload(cls) -> None:
        """Re-read YAML files from the configured directory."""
        config_dir = cls._config_dir or Config.CONFIG_DIR
        cls._cache = cls._load_yaml_configs(config_dir)
        cls._initialized = True
        logger.info("ConfigManager reloaded", extra={"config_dir": str(config_dir)})

    @classmethod
    def reset(cls) -> None:
        cls._cache = {}
        cls._initialized = False
        cls._metrics = _ConfigReadMetrics()

    # =========================================================================
    # READ API
    # =========================================================================

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Accessing before `initialize()` lazily loads from the default
        config directory.
        """
        cls._metrics.gets += 1

        if not cls._initialized:
            logger.warning(
                "ConfigManager accessed before explicit initialization; "
                "loading defaults lazily"
            )
            cls._config_dir = Config.CONFIG_DIR
            cls._cache = cls._load_yaml_configs(cls._config_dir)
            cls._initialized = True

        value: Any = cls._cache
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                cls._metrics.misses += 1
                return default
            value = value[part]

        cls._metrics.hits += 1
        return default if value is None else value

    @classmethod
    def get_all_keys(cls) -> List[str]:
        """Return all top-level configuration keys."""
        return list(cls._cache.keys())

    @classmethod
    def health_snapshot(cls) -> Dict[str, Any]:
        return {
            "initialized": cls._initialized,
            "config_dir": str(cls._config_dir) if cls._config_dir else None,
            "files_loaded": cls._metrics.files_loaded,
            "gets": cls._metrics.gets,
            "hits": cls._metrics.hits,
            "misses": cls._metrics.misses,
        }
