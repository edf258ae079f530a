"""Configuration consumed by the resolver.

Holds the type-mapping table, the name-mangling policy, name substitutions
and templates, struct tag templates, content-type patterns and extension
keys. Everything here is an opaque input to resolution decisions; defaults
target Python model declarations.

Files are YAML or JSON and are merged on top of the defaults.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class TypeSpec:
    """A target type expression and the module it needs imported."""

    type: str
    import_path: str | None = None


@dataclass
class FormatMapping:
    """Default target for a primitive type plus per-format overrides."""

    default: TypeSpec
    formats: dict[str, TypeSpec] = field(default_factory=dict)

    def resolve(self, fmt: str | None) -> TypeSpec:
        if fmt and fmt in self.formats:
            return self.formats[fmt]
        return self.default


def _default_string_formats() -> dict[str, TypeSpec]:
    return {
        "date-time": TypeSpec("datetime.datetime", "datetime"),
        "date": TypeSpec("datetime.date", "datetime"),
        "time": TypeSpec("datetime.time", "datetime"),
        "uuid": TypeSpec("uuid.UUID", "uuid"),
        "binary": TypeSpec("bytes"),
    }


@dataclass
class TypeMapping:
    """Primitive type + format -> target representation."""

    integer: FormatMapping = field(
        default_factory=lambda: FormatMapping(
            TypeSpec("int"), {"int32": TypeSpec("int"), "int64": TypeSpec("int")}
        )
    )
    number: FormatMapping = field(
        default_factory=lambda: FormatMapping(
            TypeSpec("float"),
            {
                "float": TypeSpec("float"),
                "double": TypeSpec("float"),
                "decimal": TypeSpec("decimal.Decimal", "decimal"),
            },
        )
    )
    boolean: FormatMapping = field(default_factory=lambda: FormatMapping(TypeSpec("bool")))
    string: FormatMapping = field(
        default_factory=lambda: FormatMapping(TypeSpec("str"), _default_string_formats())
    )
    object: TypeSpec = field(default_factory=lambda: TypeSpec("dict[str, Any]"))
    any: TypeSpec = field(default_factory=lambda: TypeSpec("Any"))

    def resolve(self, type_name: str | None, fmt: str | None = None) -> TypeSpec:
        """Map an OpenAPI primitive type and format to a target type."""
        if type_name in ("integer", "number", "boolean", "string"):
            return getattr(self, type_name).resolve(fmt)
        if type_name == "object":
            return self.object
        return self.any


@dataclass
class NameMangling:
    """How document names become target identifiers."""

    initialisms: list[str] = field(
        default_factory=lambda: [
            "API", "HTTP", "ID", "JSON", "URL", "URI", "UUID", "XML", "SQL", "UI",
        ]
    )
    reserved_words: list[str] = field(default_factory=list)
    reserved_suffix: str = "_"
    digit_prefix: str = "N"


@dataclass
class NameSubstitutions:
    """Direct replacements for generated names."""

    type_names: dict[str, str] = field(default_factory=dict)
    property_names: dict[str, str] = field(default_factory=dict)


@dataclass
class NameTemplates:
    """Jinja2 templates for names of operation-anchored schemas."""

    request_body: str = "{{ operation_id }}{{ content }}Request"
    response: str = "{{ operation_id }}{{ content }}Response{{ status }}"
    parameter: str = "{{ operation_id }}{{ name }}Parameter"
    item_schema: str = "{{ envelope }}Item"


@dataclass
class StructTagTemplate:
    """One annotation rendered for each struct field."""

    name: str
    template: str


@dataclass
class StructTagsConfig:
    tags: list[StructTagTemplate] = field(
        default_factory=lambda: [
            StructTagTemplate(
                "json", "{{ field_name }}{% if is_optional %},omitempty{% endif %}"
            ),
        ]
    )

    def merge(self, other: StructTagsConfig) -> StructTagsConfig:
        """Overlay ``other`` by tag name; new tags are appended in order."""
        if not other.tags:
            return self
        merged: dict[str, StructTagTemplate] = {t.name: t for t in self.tags}
        order = [t.name for t in self.tags]
        for tag in other.tags:
            if tag.name not in merged:
                order.append(tag.name)
            merged[tag.name] = tag
        return StructTagsConfig([merged[name] for name in order])


@dataclass
class ContentTypesConfig:
    """Regex patterns for content types that get typed descriptors."""

    typed: list[str] = field(
        default_factory=lambda: [
            r"^application/json$",
            r"^application/[^/]+\+json$",
            r"^application/x-www-form-urlencoded$",
            r"^multipart/form-data$",
        ]
    )
    sequential: list[str] = field(
        default_factory=lambda: [
            r"^text/event-stream$",
            r"^application/jsonl$",
            r"^application/x-ndjson$",
            r"^application/json-seq$",
            r"^multipart/mixed$",
        ]
    )


@dataclass
class ExtensionKeys:
    """Schema extensions that carry operator overrides."""

    type_name_override: str = "x-oapi-codegen-type-name-override"
    type_override: str = "x-oapi-codegen-type-override"
    skip_optional_pointer: str = "x-go-type-skip-optional-pointer"
    omit_empty: str = "x-omitempty"


@dataclass
class Configuration:
    """Top-level configuration for one generation run."""

    type_mapping: TypeMapping = field(default_factory=TypeMapping)
    name_mangling: NameMangling = field(default_factory=NameMangling)
    name_substitutions: NameSubstitutions = field(default_factory=NameSubstitutions)
    name_templates: NameTemplates = field(default_factory=NameTemplates)
    struct_tags: StructTagsConfig = field(default_factory=StructTagsConfig)
    content_types: ContentTypesConfig = field(default_factory=ContentTypesConfig)
    extensions: ExtensionKeys = field(default_factory=ExtensionKeys)
    strict_empty_unions: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Configuration:
        """Build a configuration by merging ``data`` over the defaults."""
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a mapping")
        config = cls()
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        if "type_mapping" in data:
            config.type_mapping = _type_mapping_from_dict(data["type_mapping"])
        if "struct_tags" in data:
            tags = [
                StructTagTemplate(t["name"], t["template"])
                for t in _section(data, "struct_tags").get("tags", [])
            ]
            config.struct_tags = config.struct_tags.merge(StructTagsConfig(tags))
        for name, section_cls in (
            ("name_mangling", NameMangling),
            ("name_substitutions", NameSubstitutions),
            ("name_templates", NameTemplates),
            ("content_types", ContentTypesConfig),
            ("extensions", ExtensionKeys),
        ):
            if name in data:
                setattr(config, name, _simple_section(section_cls, _section(data, name), name))
        if "strict_empty_unions" in data:
            config.strict_empty_unions = bool(data["strict_empty_unions"])
        return config


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data[name]
    if not isinstance(value, dict):
        raise ConfigError(f"Configuration section {name!r} must be a mapping")
    return value


def _simple_section(section_cls: type, values: dict[str, Any], name: str) -> Any:
    known = {f.name for f in fields(section_cls)}
    unknown = set(values) - known
    if unknown:
        raise ConfigError(f"Unknown keys in {name!r}: {', '.join(sorted(unknown))}")
    return section_cls(**values)


def _type_spec(value: Any) -> TypeSpec:
    if isinstance(value, str):
        return TypeSpec(value)
    if isinstance(value, dict) and "type" in value:
        return TypeSpec(value["type"], value.get("import"))
    raise ConfigError(f"Invalid type spec: {value!r}")


def _type_mapping_from_dict(values: Any) -> TypeMapping:
    if not isinstance(values, dict):
        raise ConfigError("Configuration section 'type_mapping' must be a mapping")
    mapping = TypeMapping()
    for key, value in values.items():
        if key in ("object", "any"):
            setattr(mapping, key, _type_spec(value))
        elif key in ("integer", "number", "boolean", "string"):
            if not isinstance(value, dict):
                raise ConfigError(f"type_mapping.{key} must be a mapping")
            current: FormatMapping = getattr(mapping, key)
            if "default" in value:
                current.default = _type_spec(value["default"])
            for fmt, spec in (value.get("formats") or {}).items():
                current.formats[fmt] = _type_spec(spec)
        else:
            raise ConfigError(f"Unknown primitive type in type_mapping: {key!r}")
    return mapping


def load_config(path: str | Path | None = None) -> Configuration:
    """Load configuration from a YAML or JSON file, or return the defaults."""
    if path is None:
        return Configuration()
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")
    try:
        text = config_path.read_text(encoding="utf-8")
        if config_path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Invalid configuration file {config_path}: {e}") from e
    logger.debug("Loaded configuration from %s", config_path)
    return Configuration.from_dict(data or {})
