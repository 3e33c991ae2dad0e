"""Command line interface for the payroll engine.

Provides offline tools for:
- Deduction previews from a gross amount
- Listing published tax tables

Usage:
    python -m canpayroll preview --gross 2561.54 --frequency biweekly --province ON --year 2024
    python -m canpayroll tables
    python -m canpayroll tables --year 2024
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from decimal import Decimal, InvalidOperation
from typing import Callable

from canpayroll.calculators.deductions import PayrollDeductionCalculator
from canpayroll.calculators.tax_tables import TaxTableProvider
from canpayroll.calculators.types import PayFrequency
from canpayroll.config import get_settings
from canpayroll.exceptions import PayrollError


def parse_decimal(s: str) -> Decimal:
    """Parse a non-negative decimal amount."""
    try:
        value = Decimal(s)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a number: {s!r}") from None
    if not value.is_finite() or value < 0:
        raise argparse.ArgumentTypeError(f"must be a non-negative amount: {s!r}")
    return value


class PayrollCli:
    """Payroll engine command line interface."""

    def __init__(self, tables: TaxTableProvider | None = None) -> None:
        self.tables = tables
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="python -m canpayroll",
            description="Canadian payroll deduction tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        preview = subparsers.add_parser(
            "preview",
            help="Calculate deductions for one pay period",
        )
        preview.add_argument("--gross", type=parse_decimal, required=True, help="Gross pay")
        preview.add_argument(
            "--frequency",
            choices=[f.value for f in PayFrequency],
            default="biweekly",
            help="Pay frequency",
        )
        preview.add_argument("--province", default="ON", help="Province of employment")
        preview.add_argument("--year", type=int, required=True, help="Tax year")
        preview.add_argument(
            "--federal-bpa",
            type=parse_decimal,
            default=Decimal("15000"),
            help="Federal basic personal amount",
        )
        preview.add_argument(
            "--provincial-bpa",
            type=parse_decimal,
            default=Decimal("11141"),
            help="Provincial basic personal amount",
        )
        preview.add_argument(
            "--ytd",
            type=parse_decimal,
            default=Decimal("0"),
            help="Year-to-date gross earnings before this period",
        )
        preview.add_argument(
            "--other-deductions",
            type=parse_decimal,
            default=Decimal("0"),
            help="Fixed per-period deductions",
        )

        tables = subparsers.add_parser(
            "tables",
            help="List published tax tables",
        )
        tables.add_argument("--year", type=int, help="Show one year's provinces and rates")

        return parser

    def run(self, args: list[str] | None = None) -> int:
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        commands: dict[str, Callable[[argparse.Namespace], int]] = {
            "preview": self._cmd_preview,
            "tables": self._cmd_tables,
        }

        try:
            return commands[parsed.command](parsed)
        except PayrollError as e:
            print(json.dumps(e.to_dict()), file=sys.stderr)
            return 2

    def _provider(self) -> TaxTableProvider:
        if self.tables is None:
            self.tables = TaxTableProvider.from_settings()
        return self.tables

    def _cmd_preview(self, args: argparse.Namespace) -> int:
        calculator = PayrollDeductionCalculator(self._provider())
        result = calculator.calculate(
            tax_year=args.year,
            gross_pay=args.gross,
            frequency=args.frequency,
            province=args.province,
            federal_bpa=args.federal_bpa,
            provincial_bpa=args.provincial_bpa,
            ytd_earnings=args.ytd,
            other_deductions=args.other_deductions,
        )
        print(json.dumps(result.to_dict(), indent=2))
        return 0

    def _cmd_tables(self, args: argparse.Namespace) -> int:
        provider = self._provider()

        if args.year is None:
            for year in provider.available_years():
                table = provider.get_table(year)
                print(f"{year}: {', '.join(table.province_codes)}")
            return 0

        table = provider.get_table(args.year)
        print(f"Tax year {table.year}")
        print(f"  CPP: {table.cpp.rate} up to {table.cpp.max_pensionable_earnings} "
              f"(exemption {table.cpp.basic_exemption})")
        print(f"  EI:  {table.ei.rate} up to {table.ei.max_insurable_earnings}")
        print(f"  Federal brackets: {len(table.federal)}")
        for code in table.province_codes:
            provincial = table.provinces[code]
            print(f"  {code} ({provincial.name}): {len(provincial.brackets)} brackets")
        return 0


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return PayrollCli().run(argv)


if __name__ == "__main__":
    sys.exit(main())
