#!/usr/bin/env python3
"""
Club Match Fee Report CLI

Prints the effective fee breakdown for a stored match, optionally
recalculating stored fees first, and moves matches in and out of the
spreadsheet format used by the club treasurer.

Usage:
    python fee_report.py --match-id 2024-05-12-rovers
    python fee_report.py --match-id 2024-05-12-rovers --recalculate
    python fee_report.py --match-id 2024-05-12-rovers --export out/rovers.xlsx
    python fee_report.py --import-excel sheets/rovers.xlsx --match-id 2024-05-12-rovers
"""

import argparse
import logging
import sys
from pathlib import Path

from clubfees import (
    FeeCalculationService,
    FeeError,
    FeeOverrideService,
    MatchStore,
    export_match_to_excel,
    import_match_from_excel,
)
from clubfees.coefficient import CoefficientMode, format_coefficient
from clubfees.config import get_data_dir
from clubfees.logging_config import setup_logging
from clubfees.validators import validate_match_fees


def print_breakdown(breakdown, match) -> None:
    """Print one line per player and the match totals."""
    print("\n" + "=" * 72)
    print(f"MATCH {breakdown.match_id}  coefficient {format_coefficient(breakdown.fee_coefficient)}")
    print("=" * 72)
    print(f"  {'Player':<16}{'Time':>6}{'Field':>9}{'Video':>7}{'Late':>7}{'Total':>9}  Flags")

    for p in breakdown.players:
        fees = p.final_fees
        flags = []
        if p.has_override:
            flags.append("override")
        if p.is_anomaly:
            flags.append("ANOMALY")
        print(
            f"  {(p.player_name or p.player_id)[:15]:<16}{p.total_time:>6.1f}"
            f"{fees.field_fee:>9.2f}{fees.video_fee:>7.2f}{fees.late_fee:>7.2f}"
            f"{fees.total_fee:>9.2f}  {' '.join(flags)}"
        )

    print("-" * 72)
    print(f"  Participants:     {breakdown.total_participants}")
    print(f"  Calculated total: {breakdown.total_calculated_fees:.2f}")
    print(f"  Final total:      {breakdown.total_final_fees:.2f}")
    print(f"  Difference:       {breakdown.fee_difference:+.2f}")
    print(f"  Cost (field+water): {match.field_fee_total + match.water_fee_total:.2f}")


def main():
    parser = argparse.ArgumentParser(description="Club match fee report")
    parser.add_argument(
        "--match-id", "-m",
        default=None,
        help="Match to report on (or id to use for --import-excel)",
    )
    parser.add_argument(
        "--data-dir", "-d",
        default=None,
        help="Path to data directory (defaults to data_dir in data/club_config.json)",
    )
    parser.add_argument(
        "--recalculate",
        action="store_true",
        help="Recalculate stored fees from attendance before reporting",
    )
    parser.add_argument(
        "--export", "-o",
        default=None,
        help="Write the fee sheet to this .xlsx path",
    )
    parser.add_argument(
        "--import-excel", "-i",
        default=None,
        help="Create a match from a fee sheet (.xlsx)",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress detailed output",
    )

    args = parser.parse_args()

    setup_logging(level=logging.WARNING if args.quiet else logging.INFO, log_to_file=False)

    data_dir = Path(args.data_dir) if args.data_dir else get_data_dir()
    store = MatchStore(data_dir)
    fee_service = FeeCalculationService(store)

    try:
        match_id = args.match_id
        if args.import_excel:
            match = import_match_from_excel(store, args.import_excel, match_id)
            match_id = match.match_id
            print(f"Imported {args.import_excel} as match {match_id}")

        if not match_id:
            parser.error("--match-id is required unless --import-excel is given")

        if args.recalculate:
            breakdown = fee_service.recalculate_all_fees(match_id)
        else:
            breakdown = fee_service.get_fee_breakdown(match_id)
        match = store.load_match(match_id)

        if not args.quiet:
            print_breakdown(breakdown, match)
            stats = FeeOverrideService(fee_service).get_override_statistics(match_id)
            print(
                f"  Overrides:        {stats.players_with_overrides}/{stats.total_players}"
                f" ({stats.override_percentage:.0%})"
            )

        if match.coefficient_mode == CoefficientMode.DYNAMIC:
            for warning in validate_match_fees(breakdown, match.field_fee_total, match.water_fee_total):
                print(f"⚠️  {warning}")

        if args.export:
            path = export_match_to_excel(store, match_id, args.export)
            print(f"Fee sheet saved to {path}")

    except (FeeError, FileExistsError, ValueError) as e:
        print(f"❌ {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
