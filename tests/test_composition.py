"""Tests for the composition module."""

import logging

import pytest

from specgen.composition import resolve_shapes
from specgen.config import Configuration
from specgen.descriptors import (
    Alias,
    Array,
    NullableWrapper,
    SchemaPath,
    Struct,
    UnionWrapper,
)
from specgen.errors import UnclassifiableSchemaError
from specgen.schema_graph import build_graph

_REF = "#/components/schemas/"


def _c(name: str) -> SchemaPath:
    return SchemaPath.of("components", "schemas", name)


def _resolve(schemas: dict, config: Configuration | None = None):
    graph = build_graph({"components": {"schemas": schemas}}, config)
    resolve_shapes(graph, config)
    return graph


def _fields(shape: Struct) -> dict:
    return {f.name: f for f in shape.fields}


_PET = {"type": "object", "properties": {"name": {"type": "string"}}}
_OWNER = {"type": "object", "properties": {"email": {"type": "string"}}}


class TestNullable:
    def test_ref_or_null_collapses(self):
        """oneOf of a ref and null becomes a nullable wrapper."""
        graph = _resolve({
            "Pet": _PET,
            "MaybePet": {"oneOf": [{"$ref": _REF + "Pet"}, {"type": "null"}]},
        })
        assert graph.get(_c("MaybePet")).shape == NullableWrapper(_c("Pet"))
        assert "Nullable" in graph.features.required_custom_types()

    def test_null_first_anyof(self):
        """Member order does not matter for the null branch."""
        graph = _resolve({
            "Pet": _PET,
            "MaybePet": {"anyOf": [{"type": "null"}, {"$ref": _REF + "Pet"}]},
        })
        assert graph.get(_c("MaybePet")).shape == NullableWrapper(_c("Pet"))

    def test_inline_object_or_null(self):
        """An inline object beside null is wrapped in place."""
        graph = _resolve({
            "Maybe": {"oneOf": [_PET, {"type": "null"}]},
        })
        assert graph.get(_c("Maybe")).shape == NullableWrapper(_c("Maybe").child("oneOf", 0))

    def test_nullable_is_flattened(self):
        """A nullable of a nullable collapses to one wrapper."""
        graph = _resolve({
            "Pet": _PET,
            "Inner": {"oneOf": [{"$ref": _REF + "Pet"}, {"type": "null"}]},
            "Outer": {"anyOf": [{"$ref": _REF + "Inner"}, {"type": "null"}]},
        })
        shape = graph.get(_c("Outer")).shape
        assert shape == NullableWrapper(_c("Pet"))

    def test_nullable_scalar(self):
        """nullable: true and type lists with null both wrap scalars."""
        graph = _resolve({
            "A": {"type": "string", "nullable": True},
            "B": {"type": ["integer", "null"]},
        })
        assert graph.get(_c("A")).shape == NullableWrapper("str")
        assert graph.get(_c("B")).shape == NullableWrapper("int")

    def test_self_reference_is_fatal(self):
        """A nullable wrapping only itself cannot be classified."""
        with pytest.raises(UnclassifiableSchemaError) as exc:
            _resolve({"Loop": {"oneOf": [{"$ref": _REF + "Loop"}, {"type": "null"}]}})
        assert exc.value.path == _c("Loop")


class TestUnion:
    def test_members_in_order(self):
        """Union members keep declaration order."""
        graph = _resolve({
            "Pet": _PET,
            "Owner": _OWNER,
            "Either": {"oneOf": [{"$ref": _REF + "Owner"}, {"$ref": _REF + "Pet"}]},
        })
        shape = graph.get(_c("Either")).shape
        assert shape == UnionWrapper((_c("Owner"), _c("Pet")), "oneOf")
        assert "union" in graph.features.required_helpers()

    def test_duplicate_members_collapse(self):
        """Repeated members keep their first occurrence."""
        graph = _resolve({
            "Pet": _PET,
            "Owner": _OWNER,
            "Twice": {
                "oneOf": [
                    {"$ref": _REF + "Pet"},
                    {"$ref": _REF + "Owner"},
                    {"$ref": _REF + "Pet"},
                ],
            },
        })
        assert graph.get(_c("Twice")).shape.members == (_c("Pet"), _c("Owner"))

    def test_alias_chain_collapses(self):
        """Members reaching the same target through aliases are merged."""
        graph = _resolve({
            "Pet": _PET,
            "PetAlias": {"$ref": _REF + "Pet"},
            "Owner": _OWNER,
            "Either": {
                "anyOf": [
                    {"$ref": _REF + "Pet"},
                    {"$ref": _REF + "PetAlias"},
                    {"$ref": _REF + "Owner"},
                ],
            },
        })
        shape = graph.get(_c("Either")).shape
        assert shape.kind == "anyOf"
        assert shape.members == (_c("Pet"), _c("Owner"))

    def test_nullable_union(self):
        """A null branch marks the union nullable instead of adding a member."""
        graph = _resolve({
            "Pet": _PET,
            "Owner": _OWNER,
            "Either": {
                "oneOf": [{"$ref": _REF + "Pet"}, {"$ref": _REF + "Owner"}, {"type": "null"}],
            },
        })
        shape = graph.get(_c("Either")).shape
        assert isinstance(shape, UnionWrapper)
        assert shape.nullable
        assert len(shape.members) == 2

    def test_discriminator(self):
        """The discriminator property name is kept on the union."""
        graph = _resolve({
            "Pet": _PET,
            "Owner": _OWNER,
            "Either": {
                "oneOf": [{"$ref": _REF + "Pet"}, {"$ref": _REF + "Owner"}],
                "discriminator": {"propertyName": "kind"},
            },
        })
        assert graph.get(_c("Either")).shape.discriminator == "kind"

    def test_empty_oneof_is_empty_union(self, caplog):
        """An empty oneOf warns and yields an empty union."""
        with caplog.at_level(logging.WARNING, logger="specgen.composition"):
            graph = _resolve({"Nothing": {"oneOf": []}})
        assert graph.get(_c("Nothing")).shape == UnionWrapper((), "oneOf")
        assert "Empty oneOf" in caplog.text

    def test_empty_oneof_strict(self):
        """With strict empty unions an empty oneOf is fatal."""
        config = Configuration(strict_empty_unions=True)
        with pytest.raises(UnclassifiableSchemaError, match="Empty oneOf"):
            _resolve({"Nothing": {"oneOf": []}}, config)


class TestAllOf:
    _SCHEMAS = {
        "Base": {
            "type": "object",
            "required": ["id"],
            "properties": {
                "id": {"type": "integer"},
                "name": {"type": "string"},
            },
        },
        "Extended": {
            "allOf": [
                {"$ref": _REF + "Base"},
                {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string", "x-go-type-skip-optional-pointer": True},
                        "extra": {"type": "boolean", "x-omitempty": False},
                        "note": {"type": "string"},
                    },
                },
            ],
        },
    }

    def test_fields_are_merged(self):
        """allOf members merge into one struct in member order."""
        graph = _resolve(self._SCHEMAS)
        shape = graph.get(_c("Extended")).shape
        assert isinstance(shape, Struct)
        assert [f.name for f in shape.fields] == ["id", "name", "extra", "note"]
        assert _fields(shape)["id"].required

    def test_skip_pointer_propagates(self):
        """The skip-optional-pointer directive survives the merge."""
        graph = _resolve(self._SCHEMAS)
        fields = _fields(graph.get(_c("Extended")).shape)
        assert not fields["name"].required
        assert fields["name"].pointer is False
        assert fields["note"].pointer is True

    def test_omit_empty_override(self):
        """x-omitempty overrides the optional default."""
        graph = _resolve(self._SCHEMAS)
        fields = _fields(graph.get(_c("Extended")).shape)
        assert fields["extra"].omit_empty is False
        assert fields["note"].omit_empty is True
        assert fields["id"].omit_empty is False

    def test_required_from_any_member(self):
        """A property required by any member is required."""
        schemas = dict(self._SCHEMAS)
        schemas["Strict"] = {"allOf": [{"$ref": _REF + "Base"}, {"required": ["name"]}]}
        graph = _resolve(schemas)
        assert _fields(graph.get(_c("Strict")).shape)["name"].required

    def test_single_member_is_alias(self):
        """A lone allOf member becomes an alias of it."""
        graph = _resolve({
            "Base": self._SCHEMAS["Base"],
            "Same": {"allOf": [{"$ref": _REF + "Base"}]},
        })
        assert graph.get(_c("Same")).shape == Alias(_c("Base"))

    def test_mixed_with_oneof_is_fatal(self):
        """allOf next to oneOf cannot be classified."""
        with pytest.raises(UnclassifiableSchemaError):
            _resolve({
                "Pet": _PET,
                "Bad": {"allOf": [{"$ref": _REF + "Pet"}], "oneOf": [{"$ref": _REF + "Pet"}]},
            })


class TestOverrides:
    def test_type_override_wins(self):
        """A type override replaces the shape and registers its import."""
        graph = _resolve({
            "Money": {
                "type": "object",
                "x-oapi-codegen-type-override": {"type": "money.Money", "import": "money"},
                "properties": {"amount": {"type": "number"}},
            },
        })
        assert graph.get(_c("Money")).shape == Alias("money.Money")
        assert "money" in graph.features.imports()
        # members are still resolved
        assert graph.get(_c("Money").child("properties", "amount")).shape == Alias("float")

    def test_component_skip_pointer(self):
        """A component's skip-pointer directive applies to fields referencing it."""
        graph = _resolve({
            "Money": {
                "type": "object",
                "x-go-type-skip-optional-pointer": True,
                "properties": {"amount": {"type": "number"}},
            },
            "Order": {"type": "object", "properties": {"total": {"$ref": _REF + "Money"}}},
        })
        assert _fields(graph.get(_c("Order")).shape)["total"].pointer is False


class TestBasicShapes:
    def test_array(self):
        """Arrays reference their element; missing items means Any."""
        graph = _resolve({
            "Pet": _PET,
            "Pets": {"type": "array", "items": {"$ref": _REF + "Pet"}},
            "Anything": {"type": "array"},
        })
        assert graph.get(_c("Pets")).shape == Array(_c("Pet"))
        assert graph.get(_c("Anything")).shape == Array("Any")

    def test_scalars(self):
        """Scalars map through the type mapping, enums keep their values."""
        graph = _resolve({
            "When": {"type": "string", "format": "date-time"},
            "Count": {"type": "integer", "format": "int64"},
            "Status": {"type": "string", "enum": ["active", "inactive"]},
        })
        assert graph.get(_c("When")).shape == Alias("datetime.datetime")
        assert "datetime" in graph.features.imports()
        assert graph.get(_c("Count")).shape == Alias("int")
        assert graph.get(_c("Status")).shape == Alias("str", ("active", "inactive"))

    def test_shapeless(self):
        """Empty schemas and bare objects become loose aliases."""
        graph = _resolve({"Free": {}, "Bag": {"type": "object"}})
        assert graph.get(_c("Free")).shape == Alias("Any")
        assert graph.get(_c("Bag")).shape == Alias("dict[str, Any]")

    def test_map(self):
        """additionalProperties alone gives a struct with no fields."""
        graph = _resolve({
            "Counts": {"type": "object", "additionalProperties": {"type": "integer"}},
        })
        assert graph.get(_c("Counts")).shape == Struct((), _c("Counts").child("additionalProperties"))

    def test_unknown_type_is_fatal(self):
        """Types outside the mapping are reported by name."""
        with pytest.raises(UnclassifiableSchemaError, match="file"):
            _resolve({"Upload": {"type": "file"}})

    def test_oneof_and_anyof_is_fatal(self):
        """oneOf together with anyOf cannot be classified."""
        with pytest.raises(UnclassifiableSchemaError):
            _resolve({"Bad": {"oneOf": [{"type": "string"}], "anyOf": [{"type": "integer"}]}})


class TestPointers:
    def test_reference_like_fields_are_not_pointers(self):
        """Arrays, maps and nullables are never pointers."""
        graph = _resolve({
            "Pet": _PET,
            "Holder": {
                "type": "object",
                "properties": {
                    "list": {"type": "array", "items": {"type": "string"}},
                    "maybe": {"type": "string", "nullable": True},
                    "counts": {"type": "object", "additionalProperties": {"type": "integer"}},
                    "pet": {"$ref": _REF + "Pet"},
                    "label": {"type": "string"},
                },
            },
        })
        fields = _fields(graph.get(_c("Holder")).shape)
        assert not fields["list"].pointer
        assert not fields["maybe"].pointer
        assert not fields["counts"].pointer
        assert fields["pet"].pointer
        assert fields["label"].pointer

    def test_recursive_struct(self):
        """A struct may reference itself directly and through arrays."""
        graph = _resolve({
            "Node": {
                "type": "object",
                "properties": {
                    "children": {"type": "array", "items": {"$ref": _REF + "Node"}},
                    "parent": {"$ref": _REF + "Node"},
                },
            },
        })
        fields = _fields(graph.get(_c("Node")).shape)
        assert graph.get(fields["children"].target).shape == Array(_c("Node"))
        assert fields["parent"].pointer


class TestShapeIsFinal:
    def test_set_twice(self):
        """A resolved shape cannot be replaced."""
        graph = _resolve({"Pet": _PET})
        with pytest.raises(ValueError):
            graph.get(_c("Pet")).shape = Alias("int")
