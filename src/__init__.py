"""
Package marker for source code under `src`.
It groups the shared `common` helpers and the `ingestion` trip loader under a stable import path.
"""
