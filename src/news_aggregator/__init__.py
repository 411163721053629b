"""Multi-provider news aggregation: ingestion, storage and cached queries."""

__version__ = "0.1.0"
