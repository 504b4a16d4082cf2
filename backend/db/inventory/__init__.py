"""
Inventory ledger and variance tables.

Models:
- InventoryItem (Tier 2 unified item, keyed by its POS/CSV source)
- InventoryPeriod (date range with a draft/active/closed/locked lifecycle)
- PeriodInventorySnapshot (beginning/ending physical count per item per period)
- InventoryTransaction (append-only signed quantity ledger)
- TheoreticalUsageAnalysis (computed variance per item per period)
"""
