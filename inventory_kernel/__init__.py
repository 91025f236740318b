"""
Inventory Kernel

The stock ledger for a multi-location retail platform:
- One central-stock row per product, one inventory row per (unit, product)
- Row-locked adjust/transfer primitives with audit snapshots
- Quantities held in items only; sets are converted at the edge
- Immutable daily reports and append-only audit events
"""

__version__ = "0.1.0"
