"""
Dynamic Feature Cog Loader

Purpose
-------
Discover and load every feature cog under src/modules/ with timing, error
handling and a loading summary.

Responsibilities
----------------
- Discover all ``src/modules/<feature>/cog.py`` modules
- Validate cog modules before loading (check for setup() function)
- Load cogs with timeout protection
- Track load timing per cog and log a summary

Non-Responsibilities
--------------------
- Cog implementation (handled by feature cogs)
- Error handling within cogs (handled by BaseCog)
"""

from __future__ import annotations

import asyncio
import importlib
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.core.config.manager import ConfigManager
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


@dataclass
class LoadResult:
    """Result of loading a single cog."""

    name: str
    success: bool
    duration_ms: float
    error: Optional[Exception] = None
    error_type: Optional[str] = None


class FeatureLoader:
    """
    Feature cog loader.

    Discovers ``cog.py`` in each package under src/modules/ and loads them
    as discord.py extensions.
    """

    BASE_PATH: Path = Path(__file__).parent.parent / "modules"
    BASE_PACKAGE: str = "src.modules"
    COG_MODULE: str = "cog"

    def __init__(self, bot, config_manager: Optional[ConfigManager] = None) -> None:
        self.bot = bot
        self._config_manager = config_manager or ConfigManager
        self.load_results: List[LoadResult] = []
        self.load_timeout_seconds: float = float(
            self._config_manager.get("bot.feature_load_timeout_seconds", 30.0)
        )

    async def load_all_features(self) -> Dict[str, Any]:
        """
        Discover and load all feature cogs.

        Returns:
            Dictionary with load statistics and results.
        """
        start_time = time.perf_counter()

        cog_names = self.discover_cogs()
        if not cog_names:
            logger.warning(
                "No cog files discovered",
                extra={"base_path": str(self.BASE_PATH), "pattern": f"*/{self.COG_MODULE}.py"},
            )
            return self._build_stats(start_time)

        logger.info(
            "Discovered feature cogs",
            extra={"count": len(cog_names), "cogs": cog_names},
        )

        # Sequential: add_cog order decides listener order
        self.load_results = [await self._load_cog_with_timeout(name) for name in cog_names]

        stats = self._build_stats(start_time)
        self._log_summary(stats)
        return stats

    def discover_cogs(self) -> List[str]:
        """Fully qualified module names of every feature cog, sorted."""
        return sorted(
            f"{self.BASE_PACKAGE}.{path.parent.name}.{self.COG_MODULE}"
            for path in self.BASE_PATH.glob(f"*/{self.COG_MODULE}.py")
            if not path.parent.name.startswith("_")
        )

    async def _load_cog_with_timeout(self, extension_name: str) -> LoadResult:
        start_time = time.perf_counter()

        try:
            validation_error = self._validate_cog(extension_name)
            if validation_error:
                logger.error(
                    "Cog validation failed",
                    extra={
                        "cog_name": extension_name,
                        "error": str(validation_error),
                        "error_type": type(validation_error).__name__,
                    },
                )
                return LoadResult(
                    name=extension_name,
                    success=False,
                    duration_ms=0.0,
                    error=validation_error,
                    error_type="ValidationError",
                )

            await asyncio.wait_for(
                self.bot.load_extension(extension_name),
                timeout=self.load_timeout_seconds,
            )

            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                "Cog loaded successfully",
                extra={"cog_name": extension_name, "duration_ms": round(duration_ms, 2)},
            )
            return LoadResult(name=extension_name, success=True, duration_ms=duration_ms)

        except asyncio.TimeoutError:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "Cog load timeout",
                extra={
                    "cog_name": extension_name,
                    "timeout_seconds": self.load_timeout_seconds,
                    "duration_ms": round(duration_ms, 2),
                },
            )
            return LoadResult(
                name=extension_name,
                success=False,
                duration_ms=duration_ms,
                error=TimeoutError(f"Cog loading exceeded {self.load_timeout_seconds}s timeout"),
                error_type="TimeoutError",
            )

        except Exception as exc:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "Failed to load cog",
                extra={
                    "cog_name": extension_name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                    "duration_ms": round(duration_ms, 2),
                },
                exc_info=True,
            )
            return LoadResult(
                name=extension_name,
                success=False,
                duration_ms=duration_ms,
                error=exc,
                error_type=type(exc).__name__,
            )

    def _validate_cog(self, extension_name: str) -> Optional[Exception]:
        """Return an exception if the module cannot be imported or has no setup()."""
        try:
            module = importlib.import_module(extension_name)
        except ImportError as exc:
            return ImportError(f"Cannot import module: {exc}")

        setup_fn = getattr(module, "setup", None)
        if setup_fn is None:
            return ValueError(
                "Missing required setup() function. "
                "Expected: async def setup(bot): await bot.add_cog(YourCog(bot))"
            )
        if not callable(setup_fn):
            return ValueError("setup must be a callable function")
        return None

    def _build_stats(self, start_time: float) -> Dict[str, Any]:
        total_time_ms = (time.perf_counter() - start_time) * 1000

        successful = [r for r in self.load_results if r.success]
        failed = [r for r in self.load_results if not r.success]

        stats: Dict[str, Any] = {
            "total_time_ms": total_time_ms,
            "discovered": len(self.load_results),
            "loaded": len(successful),
            "failed": len(failed),
            "success_rate": (
                len(successful) / len(self.load_results) * 100 if self.load_results else 0.0
            ),
            "results": self.load_results,
        }

        if failed:
            error_types: Dict[str, int] = {}
            for result in failed:
                etype = result.error_type or "Unknown"
                error_types[etype] = error_types.get(etype, 0) + 1
            stats["error_breakdown"] = error_types

        return stats

    def _log_summary(self, stats: Dict[str, Any]) -> None:
        logger.info("=" * 60)
        logger.info("FEATURE COG LOADING SUMMARY")
        logger.info("=" * 60)
        logger.info("Total Time:     %.0fms", stats["total_time_ms"])
        logger.info("Discovered:     %d cogs", stats["discovered"])
        logger.info("Loaded:         %d cogs", stats["loaded"])
        logger.info("Failed:         %d cogs", stats["failed"])

        if "error_breakdown" in stats:
            logger.warning("Error Breakdown:")
            for error_type, count in stats["error_breakdown"].items():
                logger.warning("  • %s: %d", error_type, count)

        logger.info("=" * 60)


async def load_all_features(bot) -> Dict[str, Any]:
    """Discover and load all feature cogs for `bot`."""
    return await FeatureLoader(bot, getattr(bot, "config_manager", None)).load_all_features()
