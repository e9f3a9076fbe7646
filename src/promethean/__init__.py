"""
Promethean - sales-operations analytics.

Subpackages:
    promethean.attribution: Session linking, attribution and metrics engine,
        plus an async client for the attribution server.
    promethean.attribution_server: FastAPI reference server backed by PostgreSQL.
"""
