"""
Tier 1 raw POS tables, one family per provider.

Each row keeps the full provider payload plus the denormalized columns the
transformers read. Money is stored in integer minor units. Sync jobs append
and update these rows; transformers only read them.
"""
