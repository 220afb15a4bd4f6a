# Overview: Pytest coverage for document numbering helpers.

import pytest

from salesdesk.models import DocumentSequence
from salesdesk.services.document_service import (
    DocumentSequenceError,
    format_document_number,
    next_document_number,
    parse_document_number,
)


@pytest.mark.parametrize("number,pad,expected", [
    (1, 3, "ORD-001"),
    (42, 3, "ORD-042"),
    (999, 3, "ORD-999"),
    (1000, 3, "ORD-1000"),
    (7, 5, "ORD-00007"),
])
def test_format_document_number(number, pad, expected):
    assert format_document_number("ORD", number, pad) == expected


@pytest.mark.parametrize("value,expected", [
    ("ORD-001", 1),
    ("ORD-1000", 1000),
    ("ORD-abc", 0),
    ("", 0),
    (None, 0),
])
def test_parse_document_number(value, expected):
    assert parse_document_number(value) == expected


class TestNextDocumentNumber:

    def test_first_number_creates_sequence(self, db_session):
        number = next_document_number(document_type="ORDER", prefix="ORD")
        db_session.commit()

        assert number == "ORD-001"
        seq = db_session.query(DocumentSequence).filter_by(document_type="ORDER").one()
        assert seq.next_number == 2

    def test_increments_existing_sequence(self, db_session):
        next_document_number(document_type="ORDER", prefix="ORD")
        db_session.commit()

        assert next_document_number(document_type="ORDER", prefix="ORD") == "ORD-002"
        assert next_document_number(document_type="ORDER", prefix="ORD") == "ORD-003"
        db_session.commit()

    def test_seed_used_only_for_new_sequence(self, db_session):
        assert next_document_number(document_type="ORDER", prefix="ORD", seed=lambda: 17) == "ORD-017"
        assert next_document_number(document_type="ORDER", prefix="ORD", seed=lambda: 500) == "ORD-018"
        db_session.commit()

    def test_sequences_are_per_type(self, db_session):
        next_document_number(document_type="ORDER", prefix="ORD")
        assert next_document_number(document_type="QUOTE", prefix="QT") == "QT-001"
        db_session.commit()

    def test_rollback_releases_number(self, db_session):
        next_document_number(document_type="ORDER", prefix="ORD")
        db_session.rollback()

        assert next_document_number(document_type="ORDER", prefix="ORD") == "ORD-001"
        db_session.commit()

    def test_requires_type_and_prefix(self, db_session):
        with pytest.raises(DocumentSequenceError):
            next_document_number(document_type="", prefix="ORD")
        with pytest.raises(DocumentSequenceError):
            next_document_number(document_type="ORDER", prefix="")
