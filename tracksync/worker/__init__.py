"""
Tracksync Worker Service

Background worker for scheduled tasks:
- Tracking reconciliation with Correios (baseline and peak windows)
"""

__all__ = []
