"""Required-field and format checks applied before storage."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from news_aggregator.ingestion.cleaning import is_valid_url
from news_aggregator.ingestion.models import CanonicalRecord

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 255
REQUIRED_FIELDS = ("merchant_id", "title", "slug", "url", "source_id")


@dataclass(slots=True)
class DataQualityError(Exception):
    """Record rejected by validation; counted as skipped, never as failed."""

    merchant_id: str | None
    reasons: list[str]

    def __str__(self) -> str:
        return f"record {self.merchant_id or '<no id>'}: {'; '.join(self.reasons)}"


class RecordValidator:
    def validate(self, record: CanonicalRecord) -> None:
        """Raise DataQualityError listing every problem found in ``record``."""

        reasons = [
            f"missing {name}"
            for name in REQUIRED_FIELDS
            if getattr(record, name) is None or getattr(record, name) == ""
        ]
        if record.title and len(record.title) > MAX_TITLE_LENGTH:
            reasons.append(f"title longer than {MAX_TITLE_LENGTH} characters")
        if record.url and not is_valid_url(record.url):
            reasons.append("url is not an absolute URL")
        if reasons:
            raise DataQualityError(merchant_id=record.merchant_id, reasons=reasons)

    def validate_many(
        self,
        records: Sequence[CanonicalRecord],
    ) -> tuple[list[CanonicalRecord], list[DataQualityError]]:
        valid: list[CanonicalRecord] = []
        invalid: list[DataQualityError] = []
        for record in records:
            try:
                self.validate(record)
            except DataQualityError as error:
                logger.warning("Skipping invalid record: %s", error)
                invalid.append(error)
            else:
                valid.append(record)
        return valid, invalid
