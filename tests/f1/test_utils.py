"""Tests for validators and time helpers (F1)."""

from datetime import datetime, timezone

import pytest

from cptracker.utils.time_utils import from_epoch, parse_iso, to_iso
from cptracker.utils.validators import validate_email, validate_handle


class TestValidators:
    """Tests for contact validators."""

    @pytest.mark.parametrize("email", ["ana@example.com", "a.b+c@uni.edu.es"])
    def test_valid_emails(self, email):
        """Common addresses pass."""
        assert validate_email(email)

    @pytest.mark.parametrize("email", ["", "ana", "ana@", "@example.com", "ana@example"])
    def test_invalid_emails(self, email):
        """Malformed addresses fail."""
        assert not validate_email(email)

    @pytest.mark.parametrize("handle", ["tourist", "Um_nik", "a.b-c"])
    def test_valid_handles(self, handle):
        """Judge handles use letters, digits, _ . and -."""
        assert validate_handle(handle)

    @pytest.mark.parametrize("handle", ["", "ab", "has space", "x" * 25])
    def test_invalid_handles(self, handle):
        """Too short, too long or odd characters fail."""
        assert not validate_handle(handle)


class TestTimeUtils:
    """Tests for UTC conversions."""

    def test_from_epoch_is_utc(self):
        """Epoch seconds become aware UTC datetimes."""
        assert from_epoch(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_naive_treated_as_utc(self):
        """Naive datetimes are stored as UTC."""
        assert to_iso(datetime(2024, 1, 1, 12, 0)) == "2024-01-01T12:00:00+00:00"

    def test_parse_roundtrip(self):
        """Stored strings parse back to the same instant."""
        moment = datetime(2024, 1, 1, 12, 0, 30, tzinfo=timezone.utc)
        assert parse_iso(to_iso(moment)) == moment

    def test_none_passthrough(self):
        """None and empty values stay None."""
        assert to_iso(None) is None
        assert parse_iso(None) is None
        assert parse_iso("") is None
