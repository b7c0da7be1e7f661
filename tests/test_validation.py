"""Tests for structural validation of backup documents."""

import pytest

from lapublica_backup.exceptions import InvalidBackupError
from lapublica_backup.services.validation import validate_backup_payload


@pytest.mark.parametrize(
    "payload",
    [
        None,
        "backup",
        [],
        {},
        {"data": None},
        {"data": []},
        {"data": "users"},
        {"data": {"users": {"email": "a@b.cat"}}},
        {"data": {"users": [], "categories": "Tecnologia"}},
    ],
)
def test_invalid_payloads(payload) -> None:
    """Test that structurally invalid documents are rejected."""
    with pytest.raises(InvalidBackupError, match="Dades de backup invàlides"):
        validate_backup_payload(payload)


def test_valid_payload_returns_data() -> None:
    data = {"users": [{"email": "a@b.cat"}], "posts": []}

    assert validate_backup_payload({"version": "2.0.0", "data": data}) == data


def test_unknown_and_null_entries_are_tolerated() -> None:
    """Test that only known kinds are checked, and null counts as absent."""
    data = {"widgets": "not a list", "blogs": None}

    assert validate_backup_payload({"data": data}) == data
