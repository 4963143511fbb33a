#!/usr/bin/env python3
"""
Run a duplicate order scan from the command line.

Usage:
    python scripts/run_scan.py --dry-run            # report only, no changes
    python scripts/run_scan.py --days 7             # scan and remediate last 7 days
    python scripts/run_scan.py --mock --output r.json
"""
import argparse
import json
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / 'src'))


def main():
    """Scan entry point"""
    parser = argparse.ArgumentParser(
        description='Find orders placed with the same phone number and remediate them'
    )
    parser.add_argument(
        '--days',
        type=int,
        help='Lookback window in days (default: DUPLICATE_GUARD_SEARCH_DAYS)'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Detect and report only, do not tag, note or cancel'
    )
    parser.add_argument(
        '--mock',
        action='store_true',
        help='Scan the built-in sample orders instead of the live store (implies --dry-run)'
    )
    parser.add_argument(
        '--no-cancel',
        action='store_true',
        help='Tag and note duplicates but do not cancel them'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=None,
        help='Logging level (default: LOG_LEVEL)'
    )
    parser.add_argument(
        '--output',
        help='Save the scan report to a JSON file'
    )
    args = parser.parse_args()

    import config
    from api.main import build_order_store
    from duplicate_guard.exceptions import SourceUnavailable
    from duplicate_guard.models import Settings
    from duplicate_guard.scan_orchestrator import ScanOrchestrator
    from utils.logger import get_logger

    logger = get_logger(log_level=args.log_level or config.LOG_LEVEL, log_dir=config.LOG_DIR)

    store = build_order_store('mock' if args.mock else None)
    settings = Settings()
    if args.days is not None:
        settings = settings.updated(search_days=args.days)
    if args.no_cancel:
        settings = settings.updated(auto_cancel=False)

    logger.debug(
        f"Order source: {type(store).__name__}, settings: {settings.to_dict()}",
        component="Scan"
    )

    orchestrator = ScanOrchestrator(store, store)
    try:
        result = orchestrator.run_batch_scan(settings, dry_run=args.dry_run or args.mock)
    except SourceUnavailable as e:
        logger.error(f"Scan aborted: {e}", component="Scan")
        sys.exit(2)

    logger.log_scan_summary(result)
    for decision in result.decisions:
        print(
            f"  {decision.phone}: {decision.canonical_order.name} "
            f"-> duplicates {', '.join(decision.sibling_names)}"
        )

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            json.dump(result.to_dict(), f, indent=2, ensure_ascii=False)
        print(f"\nReport saved to {args.output}")

    sys.exit(1 if result.failed_orders else 0)


if __name__ == "__main__":
    main()
