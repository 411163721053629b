"""Batched upsert of validated records."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from news_aggregator.ingestion.models import BatchError, CanonicalRecord, StoreResult
from news_aggregator.storage.common import utc_now
from news_aggregator.storage.repository import NewsRepository

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


class BatchUpsertStore:
    """Writes records in fixed-size batches, each in its own transaction.

    A failed batch is rolled back and counted as failed; later batches still run.
    """

    def __init__(self, *, repository: NewsRepository, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be a positive integer")
        self.repository = repository
        self.batch_size = batch_size

    def store_many(self, records: Sequence[CanonicalRecord]) -> StoreResult:
        result = StoreResult()
        fetched_at = utc_now()
        for batch_index, start in enumerate(range(0, len(records), self.batch_size)):
            batch = records[start : start + self.batch_size]
            rows = [record.to_row(fetched_at=fetched_at) for record in batch]
            try:
                existing = self.repository.upsert_article_batch(rows)
            except Exception as exc:  # noqa: BLE001
                logger.error("Batch %s (%s records) failed: %s", batch_index, len(batch), exc)
                result.failed += len(batch)
                result.errors.append(BatchError(batch_index=batch_index, message=str(exc)))
                continue
            result.updated += len(existing)
            result.inserted += len(batch) - len(existing)
        return result
