"""
Current rate catalog, swappable between requests.

Rate tables are immutable values. ``snapshot()`` hands out the table in
force at call time; a later ``reload()`` replaces the catalog reference
and never touches a table some in-flight computation already holds.
"""

from __future__ import annotations

import logging
from pathlib import Path
import threading
from typing import Optional

from pydantic import ValidationError

from ..constants.rate_defaults import DEFAULT_RATE_CATALOG
from ..core.config import Settings
from ..core.enums import ServiceType
from ..core.exceptions import ValidationException
from ..schemas.pricing import RateCatalog, RateTable

logger = logging.getLogger(__name__)


class RateTableProvider:
    def __init__(self, catalog: Optional[RateCatalog] = None) -> None:
        self._catalog = catalog or DEFAULT_RATE_CATALOG
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, config: Settings) -> "RateTableProvider":
        provider = cls()
        if config.rate_table_path is not None:
            provider.load_from_file(config.rate_table_path)
        return provider

    @property
    def catalog(self) -> RateCatalog:
        return self._catalog

    def snapshot(self, service_type: ServiceType = ServiceType.TOUR) -> RateTable:
        return self._catalog.table_for(service_type)

    def reload(self, catalog: RateCatalog) -> RateCatalog:
        """Swap in a new catalog and return the one it replaced."""
        with self._lock:
            previous, self._catalog = self._catalog, catalog
        logger.info(
            "rate_catalog_reloaded",
            extra={
                "previous_version": previous.default.version,
                "version": catalog.default.version,
            },
        )
        return previous

    def load_from_file(self, path: Path) -> RateCatalog:
        try:
            catalog = RateCatalog.model_validate_json(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            logger.error("rate_catalog_load_failed", extra={"path": str(path)}, exc_info=True)
            raise ValidationException(
                f"Could not load rate catalog from {path}",
                code="INVALID_RATE_CATALOG",
                details={"path": str(path), "error": str(exc)},
            ) from exc
        self.reload(catalog)
        return catalog


__all__ = ["RateTableProvider"]
