"""
ReceiptWise - Source Package

A digital receipt wallet for household spending: receipts are extracted
by an LLM, kept in a per-session collection, and turned into smart alerts,
budget progress and spending analytics.

DESIGN PRINCIPLES:
1. AI extracts → Human confirms → Rules derive
2. Alert and budget logic is pure and deterministic
3. AI output is advisory, never a hard failure
4. Every step must be auditable
5. No ambient singletons - state is owned by the caller
"""

__version__ = "1.0.0"
__author__ = "ReceiptWise Team"
