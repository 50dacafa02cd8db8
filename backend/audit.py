#!/usr/bin/env python3
"""
Standalone audit runner (same checks as `flask audit ...`).

Run from the backend directory:
    python audit.py                      # every read-only report
    python audit.py --fix                # also repair party balances from ledgers
    python audit.py --stock-check "Rice" "Sugar"
"""

from __future__ import annotations

import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(__file__))

from sarupaa import create_app
from sarupaa.services import audit_service


def _print(title: str):
    print("\n" + "=" * 80)
    print(title)
    print("=" * 80)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--fix", action="store_true", help="Rewrite supplier/customer balances from their ledgers")
    parser.add_argument("--stock-check", nargs="+", default=[], metavar="NAME", help="Products to cross-check")
    args = parser.parse_args(argv)

    app = create_app()
    failures = 0

    with app.app_context():
        _print("NEGATIVE STOCK")
        report = audit_service.negative_stock_report()
        for row in report:
            print(f"FAIL {row['name']}: {row['stock']} {row['breakdown']}")
        if not report:
            print("PASS none")
        failures += len(report)

        if args.stock_check:
            _print("STOCK CROSS-CHECK")
            for check in audit_service.stock_cross_check(args.stock_check):
                if check.found:
                    print(f"{check.name}: stock={check.stock} legacy={check.legacy_stock}")
                else:
                    print(f"WARN '{check.query}' not found")

        _print("SUPPLIER TOTALS")
        totals = audit_service.supplier_balance_totals()
        print(f"purchase dues={totals['purchase_due_cents']} balances={totals['supplier_balance_cents']}")
        print("PASS match" if totals["match"] else f"FAIL difference={totals['difference_cents']}")

        for label, reconcile in (
            ("SUPPLIER LEDGERS", audit_service.reconcile_all_suppliers),
            ("CUSTOMER LEDGERS", audit_service.reconcile_all_customers),
        ):
            _print(label)
            mismatches = reconcile(apply=args.fix)
            for r in mismatches:
                print(f"{'FIXED' if args.fix else 'FAIL'} {r.name}: stored={r.stored_cents} ledger={r.ledger_cents}")
            if not mismatches:
                print("PASS all balances match")
            if not args.fix:
                failures += len(mismatches)

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
