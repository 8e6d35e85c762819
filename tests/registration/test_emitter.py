"""Tests for RegistrationMetadataEmitter and the record model.

Tests cover:
- Author, keyword and reference order preserved
- Identifier, DOI, archive size and issuance timestamp attached
- Funding strings split into funder and award number
- Resource type default
- Publishability and missing reasons
- Citation, ORCID and reference URL helpers
- Record immutability
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from DatasetDOI.Registration.emitter import RegistrationMetadataEmitter
from DatasetDOI.Registration.identity import IdentityDeriver
from DatasetDOI.Registration.models import FundingReference, Reference, RegistrationInfo
from DatasetDOI.Registration.validation import MSG_NO_LICENSE, parse_registration_info

ISSUED = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _info(**overrides) -> RegistrationInfo:
    data = {
        "title": "Ordered authors",
        "authors": [
            {"firstname": "Bea", "lastname": "B"},
            {"firstname": "Ann", "lastname": "A"},
            {"firstname": "Cid", "lastname": "C"},
        ],
        "description": "d" * 90,
        "keywords": ["zeta", "alpha", "mu"],
        "license": {"name": "CC0", "url": "https://creativecommons.org/publicdomain/zero/1.0/"},
        "references": [
            {"reftype": "IsCitedBy", "citation": "Second", "id": "arxiv:1234.5678"},
            {"reftype": "IsCitedBy", "citation": "First", "id": "doi:10.1/abc"},
        ],
        "funding": ["EU, 12345", "Private donor"],
    }
    data.update(overrides)
    return RegistrationInfo.model_validate(data)


def test_author_order_is_preserved() -> None:
    record = RegistrationMetadataEmitter().emit(_info(), "a" * 32, 10, ISSUED)
    assert [a.last_name for a in record.authors] == ["B", "A", "C"]


def test_keyword_and_reference_order_preserved() -> None:
    record = RegistrationMetadataEmitter().emit(_info(), "a" * 32, 10, ISSUED)

    assert record.keywords == ("zeta", "alpha", "mu")
    assert [r.citation for r in record.references] == ["Second", "First"]


def test_identifier_size_and_timestamp_attached() -> None:
    identity = IdentityDeriver(doi_prefix="10.5072/x.")
    record = RegistrationMetadataEmitter(identity).emit(_info(), "abcdef0123", 4096, ISSUED)

    assert record.identifier == "abcdef0123"
    assert record.doi == "10.5072/x.abcdef"
    assert record.archive_size == 4096
    assert record.issued_at == ISSUED
    assert record.year == 2024
    assert record.resolution_url == "https://doi.org/10.5072/x.abcdef"


def test_zero_size_archive_is_valid() -> None:
    record = RegistrationMetadataEmitter().emit(_info(), "a" * 32, 0, ISSUED)
    assert record.archive_size == 0


def test_funding_is_split() -> None:
    record = RegistrationMetadataEmitter().emit(_info(), "a" * 32, 1, ISSUED)

    assert record.funding == (
        FundingReference(funder="EU", award_number="12345"),
        FundingReference(funder="Private donor"),
    )


def test_resource_type_defaults_to_dataset() -> None:
    record = RegistrationMetadataEmitter().emit(_info(), "a" * 32, 1, ISSUED)
    assert record.resource_type == "Dataset"

    record = RegistrationMetadataEmitter().emit(_info(resourcetype="Software"), "a" * 32, 1, ISSUED)
    assert record.resource_type == "Software"


def test_complete_source_is_publishable(complete_datacite: bytes) -> None:
    info = parse_registration_info(complete_datacite)
    record = RegistrationMetadataEmitter().emit(info, "a" * 32, 1, ISSUED)

    assert record.publishable
    assert record.missing == ()


def test_incomplete_source_carries_missing_reasons() -> None:
    record = RegistrationMetadataEmitter().emit(_info(license=None), "a" * 32, 1, ISSUED)

    assert not record.publishable
    assert record.missing == (MSG_NO_LICENSE,)


def test_citation_lists_authors_with_initials() -> None:
    record = RegistrationMetadataEmitter().emit(_info(), "abcdef", 1, ISSUED)

    assert record.citation() == (
        "B B, A A, C C (2024) Ordered authors. G-Node. https://doi.org/10.12751/g-node.abcdef"
    )


def test_reference_urls() -> None:
    assert Reference(id="doi:10.1/abc").url == "https://doi.org/10.1/abc"
    assert Reference(id="arxiv:1234.5678").url == "https://arxiv.org/abs/1234.5678"
    assert Reference(id="PMID:42").url == "https://www.ncbi.nlm.nih.gov/pubmed/42"
    assert Reference(id="isbn:123").url == ""


def test_orcid_extracted_from_free_text_id(complete_datacite: bytes) -> None:
    info = parse_registration_info(complete_datacite)

    assert info.authors[0].orcid_url == "https://orcid.org/0000-0002-1825-0097"
    assert info.authors[1].orcid is None


def test_record_is_immutable() -> None:
    record = RegistrationMetadataEmitter().emit(_info(), "a" * 32, 1, ISSUED)
    with pytest.raises(ValidationError):
        record.title = "changed"  # type: ignore[misc]


def test_emit_does_not_modify_source() -> None:
    info = _info()
    before = info.model_dump()
    RegistrationMetadataEmitter().emit(info, "a" * 32, 1, ISSUED)
    assert info.model_dump() == before
