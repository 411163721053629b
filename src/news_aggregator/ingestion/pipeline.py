"""Per-source ingestion pipeline: dedup, validate, categorize, store."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace

from news_aggregator.ingestion.categories import CategoryResolver
from news_aggregator.ingestion.models import CanonicalRecord, PipelineResult
from news_aggregator.ingestion.services.dedup_service import Deduplicator
from news_aggregator.ingestion.services.store_service import BatchUpsertStore
from news_aggregator.ingestion.services.validation_service import RecordValidator

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Coordinates independent ingestion stage services."""

    def __init__(
        self,
        *,
        store: BatchUpsertStore,
        categories: CategoryResolver,
        deduplicator: Deduplicator | None = None,
        validator: RecordValidator | None = None,
    ) -> None:
        self.store = store
        self.categories = categories
        self.deduplicator = deduplicator or Deduplicator()
        self.validator = validator or RecordValidator()

    def process(self, records: Sequence[CanonicalRecord]) -> PipelineResult:
        if not records:
            return PipelineResult()

        created_before = self.categories.created_count
        unique, removed = self.deduplicator.deduplicate(records)
        valid, invalid = self.validator.validate_many(unique)
        categorized = [
            replace(record, category_id=self.categories.resolve(record.category_label))
            for record in valid
        ]
        stored = self.store.store_many(categorized)

        result = PipelineResult(
            inserted=stored.inserted,
            updated=stored.updated,
            failed=stored.failed,
            skipped=removed + len(invalid),
            errors=stored.errors,
            categories_created=self.categories.created_count - created_before,
        )
        logger.debug(
            "Pipeline processed %s records: inserted=%s updated=%s failed=%s skipped=%s",
            len(records),
            result.inserted,
            result.updated,
            result.failed,
            result.skipped,
        )
        return result
