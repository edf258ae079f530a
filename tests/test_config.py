"""Tests for the config module."""

import json

import pytest

from specgen.config import Configuration, StructTagsConfig, StructTagTemplate, load_config
from specgen.errors import ConfigError


class TestTypeMapping:
    def test_defaults(self):
        """Each primitive has a default target type."""
        mapping = Configuration().type_mapping
        assert mapping.resolve("integer").type == "int"
        assert mapping.resolve("number", "double").type == "float"
        assert mapping.resolve("boolean").type == "bool"
        assert mapping.resolve("string").type == "str"
        assert mapping.resolve("object").type == "dict[str, Any]"
        assert mapping.resolve(None).type == "Any"

    def test_format_with_import(self):
        """Formats can map to types that need an import."""
        spec = Configuration().type_mapping.resolve("string", "date-time")
        assert spec.type == "datetime.datetime"
        assert spec.import_path == "datetime"

    def test_unknown_format_uses_default(self):
        """An unmapped format falls back to the primitive default."""
        assert Configuration().type_mapping.resolve("string", "email").type == "str"

    def test_override_from_dict(self):
        """Configured formats and defaults replace only what they name."""
        config = Configuration.from_dict({
            "type_mapping": {
                "integer": {"formats": {"int64": {"type": "numpy.int64", "import": "numpy"}}},
                "string": {"default": "bytes"},
            }
        })
        spec = config.type_mapping.resolve("integer", "int64")
        assert (spec.type, spec.import_path) == ("numpy.int64", "numpy")
        assert config.type_mapping.resolve("integer", "int32").type == "int"
        assert config.type_mapping.resolve("string").type == "bytes"

    def test_invalid_primitive(self):
        """Only the JSON Schema primitives can be mapped."""
        with pytest.raises(ConfigError):
            Configuration.from_dict({"type_mapping": {"decimal": "float"}})

    def test_invalid_section_value(self):
        """A primitive's mapping must be a mapping."""
        with pytest.raises(ConfigError):
            Configuration.from_dict({"type_mapping": {"integer": "int"}})


class TestStructTagsMerge:
    def test_override_and_append(self):
        """Tags merge by name: same names replace, new names append."""
        base = StructTagsConfig()
        merged = base.merge(StructTagsConfig([
            StructTagTemplate("yaml", "{{ field_name }}"),
            StructTagTemplate("json", "{{ field_name }}"),
        ]))
        assert [t.name for t in merged.tags] == ["json", "yaml"]
        assert merged.tags[0].template == "{{ field_name }}"

    def test_empty_keeps_defaults(self):
        """Merging nothing keeps the defaults."""
        base = StructTagsConfig()
        assert base.merge(StructTagsConfig([])) is base


class TestFromDict:
    def test_unknown_key(self):
        """Unknown top-level keys are rejected by name."""
        with pytest.raises(ConfigError, match="bogus"):
            Configuration.from_dict({"bogus": 1})

    def test_unknown_section_key(self):
        """Unknown keys inside a section are rejected."""
        with pytest.raises(ConfigError):
            Configuration.from_dict({"name_mangling": {"shout": True}})

    def test_sections(self):
        """Each section is read; unset values keep defaults."""
        config = Configuration.from_dict({
            "name_mangling": {"reserved_suffix": "Type"},
            "name_substitutions": {"type_names": {"Pet": "Animal"}},
            "name_templates": {"request_body": "{{ operation_id }}Body"},
            "strict_empty_unions": True,
        })
        assert config.name_mangling.reserved_suffix == "Type"
        assert config.name_substitutions.type_names == {"Pet": "Animal"}
        assert config.name_templates.request_body == "{{ operation_id }}Body"
        assert config.name_templates.response.endswith("Response{{ status }}")
        assert config.strict_empty_unions is True

    def test_struct_tags_merge(self):
        """Configured struct tags merge over the json default."""
        config = Configuration.from_dict({
            "struct_tags": {"tags": [{"name": "yaml", "template": "{{ field_name }}"}]}
        })
        assert [t.name for t in config.struct_tags.tags] == ["json", "yaml"]

    def test_not_a_mapping(self):
        """The configuration root must be a mapping."""
        with pytest.raises(ConfigError):
            Configuration.from_dict(["a"])


class TestLoadConfig:
    def test_defaults(self):
        """Without a path the defaults are returned."""
        assert load_config() == Configuration()

    def test_yaml(self, tmp_path):
        """YAML configuration files are read."""
        path = tmp_path / "specgen.yaml"
        path.write_text("strict_empty_unions: true\nname_mangling:\n  digit_prefix: Num\n")
        config = load_config(path)
        assert config.strict_empty_unions is True
        assert config.name_mangling.digit_prefix == "Num"

    def test_json(self, tmp_path):
        """JSON configuration files are read."""
        path = tmp_path / "specgen.json"
        path.write_text(json.dumps({"extensions": {"omit_empty": "x-omit"}}))
        assert load_config(path).extensions.omit_empty == "x-omit"

    def test_empty_file(self, tmp_path):
        """An empty file means the defaults."""
        path = tmp_path / "specgen.yaml"
        path.write_text("")
        assert load_config(path) == Configuration()

    def test_missing(self, tmp_path):
        """A missing file is a ConfigError."""
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yaml")

    def test_malformed(self, tmp_path):
        """Unparseable YAML is a ConfigError."""
        path = tmp_path / "specgen.yaml"
        path.write_text("a: [1, 2\n")
        with pytest.raises(ConfigError, match="Invalid"):
            load_config(path)
