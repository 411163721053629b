"""Ingestion: provider adapters, validation, batched upsert and fetch orchestration.

Each configured provider is fetched independently; records flow through
dedup, validation and category resolution before a batched upsert.
"""
