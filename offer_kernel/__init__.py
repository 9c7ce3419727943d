"""
Offer Kernel - quote configuration and pricing core.

A single-writer offer configurator with:
- Catalog-driven option eligibility
- Quantity-linked options kept in sync with their counters
- Pure, Decimal-only pricing with one final rounding step
- Draft snapshots that restore against the live catalog
- Debounced, failure-tolerant autosave
"""

__version__ = "0.1.0"
