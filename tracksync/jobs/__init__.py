"""
Tracksync scheduled jobs.

- Tracking reconciliation with Correios
"""

from tracksync.jobs.reconciliation import ReconciliationJob

__all__ = ["ReconciliationJob"]
