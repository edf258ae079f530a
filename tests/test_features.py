"""Tests for the features module."""

from specgen.features import CodegenContext, param_style_key
from specgen.pipeline import resolve_document


class TestParamStyleKey:
    def test_explode(self):
        """Exploded styles get an _explode suffix."""
        assert param_style_key("style_", "form", True) == "style_form_explode"

    def test_no_explode(self):
        """Non-exploded styles use the bare key."""
        assert param_style_key("bind_", "simple", False) == "bind_simple"


class TestCodegenContext:
    def test_empty(self):
        """A fresh registry needs nothing."""
        ctx = CodegenContext()
        assert ctx.imports() == {}
        assert ctx.required_helpers() == []
        assert not ctx.has_any_params()

    def test_registration_is_idempotent(self):
        """Registering twice records once."""
        ctx = CodegenContext()
        ctx.need_helper("union")
        ctx.need_helper("union")
        ctx.need_custom_type("Nullable")
        ctx.need_custom_type("Nullable")
        assert ctx.required_helpers() == ["union"]
        assert ctx.required_custom_types() == ["Nullable"]

    def test_params_register_both_directions(self):
        """A parameter style needs both its style and bind helpers."""
        ctx = CodegenContext()
        ctx.need_param("form", True)
        assert ctx.required_params() == ["bind_form_explode", "style_form_explode"]
        assert ctx.has_any_params()

    def test_imports_sorted_first_alias_wins(self):
        """Imports come back sorted and keep the first alias given."""
        ctx = CodegenContext()
        ctx.add_imports({"uuid": "", "datetime": ""})
        ctx.add_import("decimal", "dec")
        ctx.add_import("decimal", "other")
        ctx.add_import(None)
        assert ctx.imports() == {"datetime": "", "decimal": "dec", "uuid": ""}

    def test_blank_names_ignored(self):
        """Empty helper and type names are not recorded."""
        ctx = CodegenContext()
        ctx.need_helper("")
        ctx.need_custom_type("")
        assert ctx.required_helpers() == []
        assert ctx.required_custom_types() == []


class TestOnlyWhatIsReferenced:
    def test_plain_document_needs_nothing(self):
        """Plain strings and objects register no features."""
        graph = resolve_document({
            "components": {
                "schemas": {"Pet": {"type": "object", "properties": {"name": {"type": "string"}}}},
            },
        })
        assert graph.features.imports() == {}
        assert graph.features.required_helpers() == []
        assert graph.features.required_custom_types() == []
        assert not graph.features.has_any_params()

    def test_features_follow_schemas(self):
        """Formats, nullables and parameters register what they use."""
        graph = resolve_document({
            "paths": {
                "/pets": {
                    "get": {
                        "parameters": [{"name": "since", "in": "query", "schema": {"type": "string"}}],
                        "responses": {},
                    },
                },
            },
            "components": {
                "schemas": {
                    "Pet": {
                        "type": "object",
                        "properties": {
                            "id": {"type": "string", "format": "uuid"},
                            "born": {"type": "string", "format": "date"},
                            "nickname": {"type": ["string", "null"]},
                        },
                    },
                },
            },
        })
        assert list(graph.features.imports()) == ["datetime", "uuid"]
        assert graph.features.required_custom_types() == ["Nullable"]
        assert graph.features.required_params() == ["bind_form_explode", "style_form_explode"]

    def test_runs_do_not_share_state(self):
        """Each resolution gets its own registry."""
        nullable = {"components": {"schemas": {"N": {"type": "string", "nullable": True}}}}
        first = resolve_document(nullable)
        second = resolve_document({"components": {"schemas": {"S": {"type": "string"}}}})
        assert first.features.required_custom_types() == ["Nullable"]
        assert second.features.required_custom_types() == []
