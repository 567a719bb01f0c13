"""Tests for the source-to-target identity mapper."""

import pytest

from db_importer.client.exceptions import (
    IdentifierNotFoundError,
    MappingConflictError,
    MappingNotFoundError,
)
from db_importer.migration.identity import IdentityMapper


def test_record_and_resolve(users):
    identity = IdentityMapper()
    identity.record(users, 1, 101)

    assert identity.resolve(users, 1) == 101


def test_recording_the_same_mapping_twice_is_a_no_op(users):
    identity = IdentityMapper()
    identity.record(users, 1, 101)
    identity.record(users, 1, 101)

    assert len(identity) == 1


def test_remapping_to_a_different_target_is_refused(users):
    identity = IdentityMapper()
    identity.record(users, 1, 101)

    with pytest.raises(MappingConflictError) as exc_info:
        identity.record(users, 1, 102)

    assert exc_info.value.source_id == 1
    assert identity.resolve(users, 1) == 101


def test_resolve_unknown_entity_type(users, companies):
    identity = IdentityMapper()
    identity.record(users, 1, 101)

    with pytest.raises(MappingNotFoundError) as exc_info:
        identity.resolve(companies, 1)

    assert exc_info.value.entity_type == "companies"


def test_resolve_unknown_identifier(users):
    identity = IdentityMapper()
    identity.record(users, 1, 101)

    with pytest.raises(IdentifierNotFoundError):
        identity.resolve(users, 2)


def test_entity_type_is_known_after_first_record(users, companies):
    identity = IdentityMapper()
    identity.record(users, 1, 101)

    assert identity.has_entity_type(users)
    assert not identity.has_entity_type(companies)


def test_entity_types_are_kept_apart(users, companies):
    identity = IdentityMapper()
    identity.record(users, 1, 101)
    identity.record(companies, 1, 501)

    assert identity.resolve(users, 1) == 101
    assert identity.resolve(companies, 1) == 501
    assert identity.count(users) == 1
    assert identity.count() == 2


def test_entries_in_recording_order(users, companies):
    identity = IdentityMapper()
    identity.record(companies, 2, 502)
    identity.record(users, 1, 101)
    identity.record(companies, 1, 501)

    assert list(identity.entries()) == [
        (companies, 2, 502),
        (users, 1, 101),
        (companies, 1, 501),
    ]
    assert identity.as_dict() == {
        "companies": {"2": 502, "1": 501},
        "users": {"1": 101},
    }
