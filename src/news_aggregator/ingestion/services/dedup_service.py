"""In-batch deduplication by provider identity."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from news_aggregator.ingestion.models import CanonicalRecord

logger = logging.getLogger(__name__)


class Deduplicator:
    """Collapses records sharing a merchant_id, keeping the last one seen.

    Survivors keep the position of the first occurrence of their id, so batch
    boundaries downstream never split one identity across two batches.
    Records without a merchant_id are dropped.
    """

    def deduplicate(self, records: Sequence[CanonicalRecord]) -> tuple[list[CanonicalRecord], int]:
        by_id: dict[str, CanonicalRecord] = {}
        for record in records:
            if not record.merchant_id:
                continue
            by_id[record.merchant_id] = record
        removed = len(records) - len(by_id)
        if removed:
            logger.info("Dedup removed %s of %s records", removed, len(records))
        return list(by_id.values()), removed
