"""Persistence layer: SQLModel tables, migrations and the news repository."""
