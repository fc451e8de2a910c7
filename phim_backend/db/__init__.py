"""
Database access: connection resolution, pooled transactions and the catalog store.
"""
