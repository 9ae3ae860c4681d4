"""
WMS Kernel - inventory-ledger reconciliation core

Keeps physical lot quantities consistent with billable value-added-service
events, with:
- Non-negative lots (rounding-noise tolerant weight)
- One-way voids and first-amendment original capture
- Atomic amend/void pipelines
- Append-only adjustment and amendment audit trail
"""

__version__ = "0.1.0"
