"""Tests for validators.py.

Covers:
- validate_entity_id rules
- validate_text, validate_iso_date, validate_url
- derive_person_id folding, truncation and initials
"""

import pytest

from govdir.validators import (
    PERSON_ID_LENGTH,
    derive_person_id,
    format_validation_error,
    validate_entity_id,
    validate_iso_date,
    validate_text,
    validate_url,
)


class TestFormatValidationError:
    def test_joins_field_and_reason(self):
        assert format_validation_error("Name", "cannot be empty") == (
            "Name cannot be empty"
        )


class TestValidateEntityId:
    """Tests for validate_entity_id()."""

    def test_valid(self):
        assert validate_entity_id("narendramodi") == (True, "")

    @pytest.mark.parametrize("value", ["", "   ", "a/b", " pm", "pm "])
    def test_invalid(self, value):
        ok, reason = validate_entity_id(value)
        assert not ok
        assert reason.startswith("Entity id")

    def test_max_length(self):
        assert validate_entity_id("abcdefgh", max_length=8)[0]
        ok, reason = validate_entity_id("abcdefghi", max_length=8)
        assert not ok
        assert "exceeds 8" in reason


class TestValidateText:
    def test_valid(self):
        assert validate_text("Modi", "Name") == (True, "")

    def test_not_a_string(self):
        ok, reason = validate_text(5, "Name")
        assert not ok
        assert "must be a string, got int" in reason

    def test_too_long(self):
        ok, reason = validate_text("abc", "Name", max_length=2)
        assert not ok
        assert "exceeds 2" in reason


class TestValidateIsoDate:
    @pytest.mark.parametrize("value", ["2014-05-26", "2000-02-29"])
    def test_valid(self, value):
        assert validate_iso_date(value, "Start")[0]

    @pytest.mark.parametrize(
        "value", ["2014-5-26", "26-05-2014", "2001-02-29", "2014-05-26T00:00"]
    )
    def test_invalid(self, value):
        assert not validate_iso_date(value, "Start")[0]


class TestValidateUrl:
    def test_valid(self):
        assert validate_url("https://pmindia.gov.in/photo.jpg")[0]

    def test_scheme_required(self):
        ok, reason = validate_url("pmindia.gov.in/photo.jpg")
        assert not ok
        assert "http://" in reason

    def test_host_required(self):
        assert not validate_url("http://")[0]


class TestDerivePersonId:
    """Tests for derive_person_id()."""

    def test_first_name_plus_initials(self):
        assert derive_person_id("Narendra Damodardas Modi") == "narenddm"

    def test_single_word(self):
        assert derive_person_id("Modi") == "modi"

    def test_long_single_word_truncated(self):
        assert derive_person_id("Venkataraman") == "venkatar"

    def test_accents_folded(self):
        assert derive_person_id("José Álvarez") == "josea"

    @pytest.mark.parametrize(
        "name",
        [
            "A B C D E F G H I J",
            "Pranab Kumar Mukherjee",
            "Sri Sri Ravi Shankar Maharaj",
        ],
    )
    def test_never_longer_than_limit(self, name):
        assert 0 < len(derive_person_id(name)) <= PERSON_ID_LENGTH

    def test_no_letters(self):
        with pytest.raises(ValueError):
            derive_person_id("---")
