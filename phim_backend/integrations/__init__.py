"""
Integrations with external catalogs.
"""
