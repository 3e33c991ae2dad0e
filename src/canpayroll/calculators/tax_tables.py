"""Tax table provider backed by versioned JSON data files.

Each published year is one JSON document with structure:
{
    "year": 2024,
    "federal": {"brackets": [{"min": "0", "max": "55867", "rate": "0.15"}, ...]},
    "provinces": {
        "ON": {"name": "Ontario", "brackets": [...]}
    },
    "cpp": {"rate": "0.0595", "max_pensionable_earnings": "66600", "basic_exemption": "3500"},
    "ei": {"rate": "0.0163", "max_insurable_earnings": "63200", "employer_multiplier": "1.4"}
}

The last bracket of every list has ``"max": null``. Adding a year or a
province means adding data, never touching the calculators.
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

from canpayroll.calculators.types import (
    ZERO,
    CppRates,
    EiRates,
    ProvincialTable,
    TaxBracket,
    TaxYearTable,
)
from canpayroll.config import Settings, get_settings
from canpayroll.exceptions import (
    TaxTableError,
    UnsupportedProvinceError,
    UnsupportedYearError,
)

logger = logging.getLogger(__name__)

PACKAGED_TABLES = "tax_tables"


def _decimal(value: Any, where: str) -> Decimal:
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise TaxTableError(f"{where}: {value!r} is not a number") from e
    if not result.is_finite():
        raise TaxTableError(f"{where}: {value!r} is not a finite number")
    return result


def parse_brackets(raw: list[dict[str, Any]], where: str) -> tuple[TaxBracket, ...]:
    """Parse and validate a bracket list.

    Brackets must start at 0, be contiguous and strictly increasing, and
    only the last one may be unbounded.
    """
    if not raw:
        raise TaxTableError(f"{where}: bracket list is empty")

    brackets = []
    for i, b in enumerate(raw):
        brackets.append(
            TaxBracket(
                min_amount=_decimal(b["min"], f"{where}[{i}].min"),
                max_amount=(
                    _decimal(b["max"], f"{where}[{i}].max")
                    if b.get("max") is not None
                    else None
                ),
                rate=_decimal(b["rate"], f"{where}[{i}].rate"),
            )
        )

    if brackets[0].min_amount != ZERO:
        raise TaxTableError(f"{where}: first bracket must start at 0")

    for i, bracket in enumerate(brackets):
        is_last = i == len(brackets) - 1
        if bracket.rate < 0:
            raise TaxTableError(f"{where}[{i}]: negative rate")
        if bracket.max_amount is None:
            if not is_last:
                raise TaxTableError(f"{where}[{i}]: only the last bracket may be unbounded")
            continue
        if is_last:
            raise TaxTableError(f"{where}: last bracket must be unbounded")
        if bracket.max_amount <= bracket.min_amount:
            raise TaxTableError(f"{where}[{i}]: max must exceed min")
        if brackets[i + 1].min_amount != bracket.max_amount:
            raise TaxTableError(f"{where}[{i}]: brackets are not contiguous")

    return tuple(brackets)


def parse_table(payload: dict[str, Any]) -> TaxYearTable:
    """Build a TaxYearTable from its JSON payload."""
    try:
        year = int(payload["year"])
        cpp = payload["cpp"]
        ei = payload["ei"]
        federal = payload["federal"]["brackets"]
        provinces_raw = payload.get("provinces", {})
    except (KeyError, TypeError, ValueError) as e:
        raise TaxTableError(f"Malformed tax table payload: {e}") from e

    provinces = {}
    for code, prov in provinces_raw.items():
        code = code.upper()
        provinces[code] = ProvincialTable(
            code=code,
            name=prov.get("name", code),
            brackets=parse_brackets(prov["brackets"], f"{year}.provinces.{code}"),
        )

    return TaxYearTable(
        year=year,
        federal=parse_brackets(federal, f"{year}.federal"),
        provinces=provinces,
        cpp=CppRates(
            rate=_decimal(cpp["rate"], f"{year}.cpp.rate"),
            max_pensionable_earnings=_decimal(
                cpp["max_pensionable_earnings"], f"{year}.cpp.max_pensionable_earnings"
            ),
            basic_exemption=_decimal(cpp["basic_exemption"], f"{year}.cpp.basic_exemption"),
        ),
        ei=EiRates(
            rate=_decimal(ei["rate"], f"{year}.ei.rate"),
            max_insurable_earnings=_decimal(
                ei["max_insurable_earnings"], f"{year}.ei.max_insurable_earnings"
            ),
            employer_multiplier=_decimal(
                ei.get("employer_multiplier", "1.4"), f"{year}.ei.employer_multiplier"
            ),
        ),
    )


class TaxTableProvider:
    """Supplies published tax tables by year.

    Tables come from the JSON files packaged with the engine, plus an
    optional extra directory. Files in the extra directory take precedence
    over packaged files for the same year.

    ``provincial_fallback`` names a province whose brackets are used when a
    table has none for the requested province. It is None by default, in
    which case a missing province raises UnsupportedProvinceError.
    """

    def __init__(
        self,
        table_dir: str | Path | None = None,
        provincial_fallback: str | None = None,
    ):
        self.table_dir = Path(table_dir) if table_dir else None
        self.provincial_fallback = provincial_fallback.upper() if provincial_fallback else None
        self._cache: dict[int, TaxYearTable] = {}

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> TaxTableProvider:
        settings = settings or get_settings()
        return cls(
            table_dir=settings.tax_table_dir,
            provincial_fallback=settings.provincial_tax_fallback,
        )

    def publish(self, payload: dict[str, Any]) -> TaxYearTable:
        """Register a table from a payload, replacing any cached one."""
        table = parse_table(payload)
        self._cache[table.year] = table
        return table

    def get_table(self, year: int) -> TaxYearTable:
        """Get the table for a year, raising UnsupportedYearError if none."""
        if year in self._cache:
            return self._cache[year]

        payload = self._load_payload(year)
        if payload is None:
            raise UnsupportedYearError(year)

        table = parse_table(payload)
        if table.year != year:
            raise TaxTableError(f"Table file for {year} declares year {table.year}")

        self._cache[year] = table
        return table

    def provincial_table(self, table: TaxYearTable, province: str) -> ProvincialTable:
        """Get a province's table, applying the configured fallback if any."""
        code = (province or "").strip().upper()
        if code in table.provinces:
            return table.provinces[code]

        fallback = self.provincial_fallback
        if fallback and fallback in table.provinces:
            logger.warning(
                "No %s tax table for province %r; using configured fallback %s",
                table.year,
                code,
                fallback,
            )
            return table.provinces[fallback]

        raise UnsupportedProvinceError(code, table.year)

    def available_years(self) -> list[int]:
        """List years with a published table."""
        years = set(self._cache)
        for name in self._packaged_names():
            years.add(int(name.removesuffix(".json")))
        if self.table_dir is not None and self.table_dir.is_dir():
            for path in self.table_dir.glob("*.json"):
                if path.stem.isdigit():
                    years.add(int(path.stem))
        return sorted(years)

    def _load_payload(self, year: int) -> dict[str, Any] | None:
        filename = f"{year}.json"

        if self.table_dir is not None:
            path = self.table_dir / filename
            if path.is_file():
                return json.loads(path.read_text(encoding="utf-8"))

        if filename in self._packaged_names():
            resource = resources.files("canpayroll").joinpath(PACKAGED_TABLES).joinpath(filename)
            return json.loads(resource.read_text(encoding="utf-8"))

        return None

    @staticmethod
    def _packaged_names() -> list[str]:
        folder = resources.files("canpayroll").joinpath(PACKAGED_TABLES)
        return [
            entry.name
            for entry in folder.iterdir()
            if entry.name.endswith(".json") and entry.name.removesuffix(".json").isdigit()
        ]


@lru_cache(maxsize=1)
def get_tax_table_provider() -> TaxTableProvider:
    """Get the provider configured from settings."""
    return TaxTableProvider.from_settings()
