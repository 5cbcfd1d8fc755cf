"""
Command-line entry point for the reconciliation sweep.

Meant for cron or any external scheduler, e.g. hourly:

    0 * * * * warranty-reconcile
"""

from __future__ import annotations

# isort: off
import warranty_activation.models  # noqa: F401
# isort: on

import sys

from warranty_activation.modules.reconciliation.service import run_reconciliation


def main() -> int:
    run_reconciliation()
    # A completed run exits 0 even when it logged a fatal sweep error.
    return 0


if __name__ == "__main__":
    sys.exit(main())
