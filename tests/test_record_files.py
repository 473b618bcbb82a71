"""Tests for TOML entity files.

Covers:
- Field records to file model and back
- Deterministic serialisation
- Parsing with schema validation and unknown-key rejection
"""

import pytest

from govdir.errors import ValidationError
from govdir.record.files import (
    dumps_entity_file,
    file_to_fields,
    loads_entity_file,
    records_to_file,
)
from govdir.record.models import OfficeFile, PersonFile
from govdir.record.paths import parse_path

PERSON_TOML = """\
name = "Narendra Modi"

[photo]
url = "https://example.org/modi.jpg"
attribution = "PIB"

[contacts]
email = "pm@example.org"
x = "narendramodi"

[[tenures]]
office_id = "pm"
start = "2014-05-26"

[[tenures]]
office_id = "cm-gujarat"
start = "2001-10-07"
end = "2014-05-22"
"""

OFFICE_TOML = """\
name = "Prime Minister's Office"

[supervisors]
head = "pm"
responsible_to = "cabinet"
"""


def _records(pairs):
    return [(parse_path(p), v) for p, v in sorted(pairs)]


class TestLoads:
    """Tests for loads_entity_file()."""

    def test_person(self):
        model = loads_entity_file("person", PERSON_TOML)
        assert isinstance(model, PersonFile)
        assert model.name == "Narendra Modi"
        assert model.photo.attribution == "PIB"
        assert model.tenures[1].end == "2014-05-22"

    def test_office(self):
        model = loads_entity_file("office", OFFICE_TOML)
        assert isinstance(model, OfficeFile)
        assert len(model.supervisors) == 2

    def test_bare_toml_dates_accepted(self):
        text = '[[tenures]]\noffice_id = "pm"\nstart = 2014-05-26\n'
        model = loads_entity_file("person", text)
        assert model.tenures[0].start == "2014-05-26"

    @pytest.mark.parametrize(
        "text, fragment",
        [
            ('name = "x"\nage = 3\n', "age"),
            ('[contacts]\nfax = "1"\n', "contacts"),
            ('[supervisors]\nhead = "pm"\n', "supervisors"),
            ("name = ", "invalid TOML"),
        ],
    )
    def test_rejected(self, text, fragment):
        with pytest.raises(ValidationError) as exc_info:
            loads_entity_file("person", text, source="person/x.toml")
        assert fragment in str(exc_info.value)
        assert exc_info.value.path == "person/x.toml"


class TestConversion:
    """Between field records and file models."""

    def test_file_to_fields(self):
        fields = dict(file_to_fields(loads_entity_file("person", PERSON_TOML)))
        assert fields == {
            "name": "Narendra Modi",
            "photo": {"url": "https://example.org/modi.jpg", "attribution": "PIB"},
            "contact/email": "pm@example.org",
            "contact/x": "narendramodi",
            "tenure/pm/2014-05-26": None,
            "tenure/cm-gujarat/2001-10-07": "2014-05-22",
        }

    def test_unknown_start_field(self):
        model = loads_entity_file("person", '[[tenures]]\noffice_id = "pm"\n')
        assert file_to_fields(model) == [("tenure/pm/", None)]

    def test_records_to_file_office(self):
        model = records_to_file(
            "office",
            _records(
                [
                    ("office/pmo/name", "PMO"),
                    ("office/pmo/supervisor/head", "pm"),
                    ("office/pmo/contact/website", "https://pmindia.gov.in"),
                ]
            ),
        )
        assert model.name == "PMO"
        assert {k.value: v for k, v in model.supervisors.items()} == {"head": "pm"}


class TestDumps:
    """Tests for dumps_entity_file()."""

    def test_layout(self):
        text = dumps_entity_file(loads_entity_file("person", PERSON_TOML))
        assert text.startswith('name = "Narendra Modi"\n')
        assert "[photo]" in text
        assert "[[tenures]]" in text
        assert text.index("[contacts]") < text.index("[[tenures]]")

    def test_enumeration_order_not_insertion_order(self):
        a = records_to_file(
            "person",
            _records([("person/x/contact/x", "h"), ("person/x/contact/address", "a")]),
        )
        text = dumps_entity_file(a)
        assert text.index("address") < text.index("x = ")

    def test_round_trip_is_stable(self):
        model = loads_entity_file("person", PERSON_TOML)
        text = dumps_entity_file(model)
        again = dumps_entity_file(loads_entity_file("person", text))
        assert text == again
        assert loads_entity_file("person", text) == model

    def test_empty_entity(self):
        assert dumps_entity_file(PersonFile()) == ""
