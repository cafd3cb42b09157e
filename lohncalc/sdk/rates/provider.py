"""Year-keyed rate table provider.

Rate tables are plain data: one ``<year>.yaml`` per statutory year in the
packaged ``rate_tables/`` directory, optionally extended or overridden by the
configured rates directory (see ``config.get_rates_dir``). Supporting a new
year means dropping in a new file.

The provider holds an immutable mapping of year -> RateTable. Readers grab the
current mapping reference without locking; ``publish`` builds a new mapping and
swaps the reference, so an in-flight calculation keeps the table it started
with and never observes a half-updated set.
"""

import logging
import threading
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from ..config import get_rates_dir
from ..errors import InvalidInput, RateTableError, UnknownRateYear
from .schemas import RateTable

logger = logging.getLogger(__name__)


def get_packaged_rates_dir() -> Path:
    """Get the rate_tables directory shipped with the package."""
    package_root = Path(__file__).parent.parent.parent  # rates -> sdk -> lohncalc
    return package_root / "rate_tables"


def _year_files(directory: Path) -> list[Path]:
    """Rate table files in a directory, sorted by year."""
    files = [p for p in directory.glob("*.yaml") if p.stem.isdigit()]
    return sorted(files, key=lambda p: int(p.stem))


def load_rate_table(path: Union[str, Path]) -> RateTable:
    """Load and validate a single rate table file.

    Raises:
        RateTableError: If the file is missing, not YAML, fails validation,
            or its ``year`` does not match the file name.
    """
    path = Path(path)
    if not path.exists():
        raise RateTableError(f"Rate table file not found: {path}")

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise RateTableError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise RateTableError(f"Rate table {path} must be a mapping")

    try:
        table = RateTable.model_validate(data)
    except ValidationError as e:
        raise RateTableError(f"Invalid rate table {path}: {e}") from e

    if path.stem.isdigit() and int(path.stem) != table.year:
        raise RateTableError(f"{path.name} declares year {table.year}")

    return table


def _coerce_year(year: Union[int, str]) -> int:
    try:
        return int(year)
    except (TypeError, ValueError):
        raise InvalidInput(f"Invalid year '{year}'. Must be 4 digits.") from None


class RateTableProvider:
    """Shared, read-only access to rate tables by year."""

    def __init__(self, tables: Optional[Iterable[RateTable]] = None):
        self._tables: Mapping[int, RateTable] = MappingProxyType(
            {t.year: t for t in (tables or [])}
        )
        self._write_lock = threading.Lock()

    @classmethod
    def from_directories(cls, *directories: Optional[Path]) -> "RateTableProvider":
        """Load every ``<year>.yaml`` from the given directories.

        Later directories override years already loaded from earlier ones.
        Directories that are None or do not exist are skipped.
        """
        tables: dict[int, RateTable] = {}
        for directory in directories:
            if directory is None:
                continue
            directory = Path(directory)
            if not directory.is_dir():
                logger.warning(f"Rates directory not found, skipping: {directory}")
                continue
            for path in _year_files(directory):
                table = load_rate_table(path)
                if table.year in tables:
                    logger.debug(f"{path} overrides rate table {table.year}")
                tables[table.year] = table
        logger.debug(f"loaded rate tables for years {sorted(tables)}")
        return cls(tables.values())

    def rates(self, year: Union[int, str]) -> RateTable:
        """Get the rate table for a year.

        Raises:
            UnknownRateYear: If no table is registered for ``year``
        """
        target = _coerce_year(year)
        tables = self._tables
        try:
            return tables[target]
        except KeyError:
            raise UnknownRateYear(target, list(tables)) from None

    def available_years(self) -> list[int]:
        """Registered years, ascending."""
        return sorted(self._tables)

    def publish(self, table: RateTable) -> None:
        """Register or replace one year's table by swapping the mapping."""
        with self._write_lock:
            updated = dict(self._tables)
            replaced = table.year in updated
            updated[table.year] = table
            self._tables = MappingProxyType(updated)
        logger.info(f"{'replaced' if replaced else 'published'} rate table {table.year}")


_provider: Optional[RateTableProvider] = None
_provider_lock = threading.Lock()


def get_provider() -> RateTableProvider:
    """Get the process-wide provider, loading the tables on first use."""
    global _provider
    provider = _provider
    if provider is None:
        with _provider_lock:
            if _provider is None:
                _provider = RateTableProvider.from_directories(
                    get_packaged_rates_dir(), get_rates_dir()
                )
            provider = _provider
    return provider


def reset_provider() -> None:
    """Drop the process-wide provider so the next access reloads from disk."""
    global _provider
    with _provider_lock:
        _provider = None


def rates(year: Union[int, str]) -> RateTable:
    """Get the rate table for a year from the process-wide provider."""
    return get_provider().rates(year)


def available_years() -> list[int]:
    """Years registered with the process-wide provider."""
    return get_provider().available_years()


def publish(table: RateTable) -> None:
    """Hot-load a table into the process-wide provider."""
    get_provider().publish(table)
