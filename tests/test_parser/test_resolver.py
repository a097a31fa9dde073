"""Tests for codecapi.parser.resolver."""

from __future__ import annotations

import pytest

from codecapi.exceptions import ReferenceNotFound, UnsupportedReference
from codecapi.parser.resolver import ReferenceResolver, is_reference, pointer_segments


class TestPointerSegments:
    def test_splits_internal_ref(self) -> None:
        assert pointer_segments("#/components/schemas/Pet") == ["components", "schemas", "Pet"]

    def test_unescapes_slash_and_tilde(self) -> None:
        assert pointer_segments("#/components/schemas/Foo~1Bar") == ["components", "schemas", "Foo/Bar"]
        assert pointer_segments("#/a/b~0c") == ["a", "b~c"]

    def test_percent_decodes(self) -> None:
        assert pointer_segments("#/paths/~1pets~1%7Bid%7D") == ["paths", "/pets/{id}"]

    def test_external_ref_rejected(self) -> None:
        with pytest.raises(UnsupportedReference, match="External refs"):
            pointer_segments("other.yaml#/components/schemas/Pet")


class TestReferenceResolver:
    def setup_method(self) -> None:
        self.document = {
            "components": {
                "schemas": {
                    "Foo/Bar": {"type": "string"},
                    "Pet": {"type": "object"},
                },
                "parameters": {"Limit": {"name": "limit", "in": "query"}},
            },
            "servers": [{"url": "https://a"}, {"url": "https://b"}],
        }
        self.resolver = ReferenceResolver(self.document)

    def test_resolves_escaped_name(self) -> None:
        assert self.resolver.resolve("#/components/schemas/Foo~1Bar") == {"type": "string"}

    def test_resolves_list_index(self) -> None:
        assert self.resolver.resolve("#/servers/1") == {"url": "https://b"}

    def test_missing_key_raises(self) -> None:
        with pytest.raises(ReferenceNotFound, match="'Cat' not found"):
            self.resolver.resolve("#/components/schemas/Cat")

    def test_bad_index_raises(self) -> None:
        with pytest.raises(ReferenceNotFound, match="invalid array index"):
            self.resolver.resolve("#/servers/7")

    def test_cannot_navigate_into_scalar(self) -> None:
        with pytest.raises(ReferenceNotFound, match="cannot navigate"):
            self.resolver.resolve("#/components/schemas/Pet/type/x")

    def test_resolve_node_passes_plain_objects_through(self) -> None:
        node = {"type": "integer"}
        assert self.resolver.resolve_node(node) is node

    def test_resolve_list(self) -> None:
        params = self.resolver.resolve_list([
            {"$ref": "#/components/parameters/Limit"},
            {"name": "q", "in": "query"},
        ])
        assert [p["name"] for p in params] == ["limit", "q"]
        assert self.resolver.resolve_list(None) == []

    def test_document_is_not_modified(self) -> None:
        self.resolver.resolve("#/components/schemas/Pet")
        assert is_reference({"$ref": "#/x"})
        assert not is_reference({"type": "string"})
        assert "Pet" in self.document["components"]["schemas"]
