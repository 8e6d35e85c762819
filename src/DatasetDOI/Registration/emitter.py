"""Build registration records from validated metadata and archive facts."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from .identity import IdentityDeriver
from .models import (
    DEFAULT_RESOURCE_TYPE,
    FundingReference,
    RegistrationInfo,
    RegistrationRecord,
)
from .validation import check_missing_values

__all__ = ["RegistrationMetadataEmitter"]


class RegistrationMetadataEmitter:
    """Pure transform from source metadata to a :class:`RegistrationRecord`.

    Author, keyword, reference and funding order is carried over unchanged:
    author order decides credit and reference order decides citation order.
    """

    def __init__(self, identity: Optional[IdentityDeriver] = None) -> None:
        self.identity = identity or IdentityDeriver()

    def emit(
        self,
        source: RegistrationInfo,
        identifier: str,
        archive_size: int,
        issued_at: datetime,
    ) -> RegistrationRecord:
        return RegistrationRecord(
            identifier=identifier,
            doi=self.identity.doi(identifier),
            title=source.title,
            authors=tuple(source.authors),
            description=source.description,
            keywords=tuple(source.keywords),
            license=source.license,
            references=tuple(source.references),
            funding=tuple(FundingReference.from_string(entry) for entry in source.funding),
            resource_type=source.resource_type or DEFAULT_RESOURCE_TYPE,
            issued_at=issued_at,
            archive_size=archive_size,
            missing=tuple(check_missing_values(source)),
        )
