"""Tests for the struct_tags module."""

import logging

from specgen.config import StructTagsConfig, StructTagTemplate
from specgen.struct_tags import StructTagGenerator, format_tags


def _generator(*tags: tuple[str, str]) -> StructTagGenerator:
    return StructTagGenerator(StructTagsConfig([StructTagTemplate(n, t) for n, t in tags]))


class TestDefaults:
    def test_required(self):
        """The default json tag uses the document name."""
        assert StructTagGenerator().generate_tags("petId", False) == 'json:"petId"'

    def test_optional(self):
        """Optional fields get omitempty."""
        assert StructTagGenerator().generate_tags("petId", True) == 'json:"petId,omitempty"'


class TestConfigured:
    def test_order_is_kept(self):
        """Tags render in configured order."""
        gen = _generator(("yaml", "{{ field_name }}"), ("json", "{{ field_name }}"))
        assert list(gen.generate_tags_map("name", False)) == ["yaml", "json"]

    def test_filters(self):
        """Jinja2 filters work inside tag templates."""
        gen = _generator(("db", "{{ field_name | lower }}"))
        assert gen.generate_tags_map("PetID", False) == {"db": "petid"}

    def test_empty_value_dropped(self):
        """Tags that render empty are left out."""
        gen = _generator(("json", "{{ field_name }}"), ("xml", "{% if is_optional %}{{ field_name }}{% endif %}"))
        assert gen.generate_tags("id", False) == 'json:"id"'
        assert gen.generate_tags("id", True) == 'json:"id" xml:"id"'

    def test_bad_syntax_skipped(self, caplog):
        """Templates that fail to parse are skipped with a debug log."""
        with caplog.at_level(logging.DEBUG, logger="specgen.struct_tags"):
            gen = _generator(("bad", "{{ field_name "), ("json", "{{ field_name }}"))
        assert gen.generate_tags_map("id", False) == {"json": "id"}
        assert "Skipping struct tag 'bad'" in caplog.text

    def test_undefined_variable_skipped(self):
        """Templates using unknown variables are skipped."""
        gen = _generator(("bad", "{{ nope }}"), ("json", "{{ field_name }}"))
        assert gen.generate_tags_map("id", False) == {"json": "id"}


class TestFormatTags:
    def test_empty(self):
        """No tags render as an empty string."""
        assert format_tags({}) == ""

    def test_several(self):
        """Tags are space separated with quoted values."""
        assert format_tags({"json": "a", "form": "b"}) == 'json:"a" form:"b"'
