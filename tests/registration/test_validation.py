"""Tests for registration metadata parsing and completeness checks.

Tests cover:
- Parsing lower-case and capitalised datacite.yml keys
- Parse errors (bad YAML, non-mapping, bad encoding, wrong shapes)
- check_missing_values: every deficiency accumulated, no false positives
- collect_warnings: award numbers, legacy reference names, short abstracts
"""

from __future__ import annotations

import pytest

from DatasetDOI.Registration.errors import AdmissionError, MetadataParseError
from DatasetDOI.Registration.models import Author, License, Reference, RegistrationInfo
from DatasetDOI.Registration.validation import (
    MSG_INVALID_AUTHORS,
    MSG_INVALID_REFERENCE,
    MSG_NO_AUTHORS,
    MSG_NO_DESCRIPTION,
    MSG_NO_LICENSE,
    MSG_NO_TITLE,
    check_missing_values,
    collect_warnings,
    parse_registration_info,
)

LONG_DESCRIPTION = "A" * 100


def _complete_info(**overrides) -> RegistrationInfo:
    data = {
        "title": "A dataset",
        "authors": [{"firstname": "Ada", "lastname": "Lovelace"}],
        "description": LONG_DESCRIPTION,
        "license": {"name": "CC-BY", "url": "https://creativecommons.org/licenses/by/4.0/"},
    }
    data.update(overrides)
    return RegistrationInfo.model_validate(data)


# ============================================================================
# Parsing
# ============================================================================


def test_parse_complete_file(complete_datacite: bytes) -> None:
    info = parse_registration_info(complete_datacite)

    assert info.title.startswith("Multi-electrode recordings")
    assert [a.last_name for a in info.authors] == ["Brochier", "Riehle", "Zehl"]
    assert info.authors[0].orcid == "0000-0002-1825-0097"
    assert info.license == License(name="Creative Commons CC-BY 4.0", url="https://creativecommons.org/licenses/by/4.0/")
    assert info.references[0].ref_type == "IsDescribedBy"
    assert info.funding == ["DFG, SPP 1665"]
    assert info.resource_type == "Dataset"


def test_parse_accepts_capitalised_keys() -> None:
    raw = b"""
Title: Capitalised
Authors:
  - FirstName: Grace
    LastName: Hopper
    Affiliation: Navy
Description: words
License:
  Name: MIT
  Url: https://opensource.org/licenses/MIT
References:
  - RefType: IsCitedBy
    Name: Old style reference
ResourceType: Software
"""
    info = parse_registration_info(raw)

    assert info.title == "Capitalised"
    assert info.authors == [Author(first_name="Grace", last_name="Hopper", affiliation="Navy")]
    assert info.license is not None and info.license.is_valid
    assert info.references[0].name == "Old style reference"
    assert info.references[0].ref_type == "IsCitedBy"
    assert info.resource_type == "Software"


def test_parse_empty_file_gives_empty_info() -> None:
    info = parse_registration_info(b"")
    assert info == RegistrationInfo()


def test_parse_invalid_yaml_raises() -> None:
    with pytest.raises(MetadataParseError) as excinfo:
        parse_registration_info(b"title: [unclosed")
    assert excinfo.value.reasons[0].startswith("error while reading DOI info")


def test_parse_non_mapping_raises() -> None:
    with pytest.raises(MetadataParseError):
        parse_registration_info(b"- just\n- a list\n")


def test_parse_bad_encoding_raises() -> None:
    with pytest.raises(MetadataParseError) as excinfo:
        parse_registration_info(b"title: \xff\xfe broken")
    assert "encoding" in str(excinfo.value)


def test_parse_wrong_shape_raises() -> None:
    with pytest.raises(MetadataParseError):
        parse_registration_info(b"authors: 5\n")


def test_parse_error_is_admission_error() -> None:
    with pytest.raises(AdmissionError):
        parse_registration_info(b"title: [unclosed")


def test_parse_coerces_scalar_keywords() -> None:
    info = parse_registration_info(b"keywords:\n  - 2018\n  - neuro\nfunding: DFG, 123\n")
    assert info.keywords == ["2018", "neuro"]
    assert info.funding == ["DFG, 123"]


# ============================================================================
# check_missing_values
# ============================================================================


def test_complete_record_has_no_deficiencies(complete_datacite: bytes) -> None:
    assert check_missing_values(parse_registration_info(complete_datacite)) == []


def test_missing_title_authors_license_reports_exactly_those() -> None:
    info = RegistrationInfo(description=LONG_DESCRIPTION)

    assert check_missing_values(info) == [MSG_NO_TITLE, MSG_NO_AUTHORS, MSG_NO_LICENSE]


def test_all_checks_run_and_accumulate() -> None:
    info = RegistrationInfo()

    assert check_missing_values(info) == [
        MSG_NO_TITLE,
        MSG_NO_AUTHORS,
        MSG_NO_DESCRIPTION,
        MSG_NO_LICENSE,
    ]


def test_invalid_author_reported_once_per_author() -> None:
    info = _complete_info(
        authors=[
            {"firstname": "Ada", "lastname": "Lovelace"},
            {"lastname": "NoFirstName"},
            {"firstname": "NoLastName"},
        ]
    )

    assert check_missing_values(info) == [MSG_INVALID_AUTHORS, MSG_INVALID_AUTHORS]


def test_license_without_url_is_deficient() -> None:
    info = _complete_info(license={"name": "CC-BY"})
    assert check_missing_values(info) == [MSG_NO_LICENSE]


def test_invalid_references_reported_per_reference() -> None:
    info = _complete_info(
        references=[
            {"reftype": "IsCitedBy", "citation": "fine"},
            {"citation": "no type"},
            {"reftype": "IsCitedBy"},
        ]
    )

    assert check_missing_values(info) == [MSG_INVALID_REFERENCE, MSG_INVALID_REFERENCE]


def test_reference_with_legacy_name_is_valid() -> None:
    info = _complete_info(references=[{"reftype": "IsCitedBy", "name": "legacy"}])
    assert check_missing_values(info) == []


def test_check_is_pure() -> None:
    info = RegistrationInfo()
    assert check_missing_values(info) == check_missing_values(info)
    assert info == RegistrationInfo()


# ============================================================================
# collect_warnings
# ============================================================================


def test_no_warnings_for_clean_metadata(complete_datacite: bytes) -> None:
    assert collect_warnings(parse_registration_info(complete_datacite)) == []


def test_warns_about_funding_without_award() -> None:
    info = _complete_info(funding=["DFG"])
    assert collect_warnings(info) == ["Couldn't find award number for funder 'DFG'"]


def test_warns_about_legacy_reference_name() -> None:
    info = _complete_info(references=[Reference(ref_type="IsCitedBy", name="legacy")])
    assert collect_warnings(info) == ["Reference 0 uses old 'Name' field instead of 'Citation'"]


def test_warns_about_short_abstract() -> None:
    info = _complete_info(description="Too short.")
    assert collect_warnings(info) == ["Abstract may be too short: 10 characters"]
