"""Tests for codecapi.compiler.naming."""

from __future__ import annotations

import pytest

from codecapi import codec
from codecapi.compiler.naming import (
    NameRegistry,
    argument_names,
    camel_case,
    name_for,
    namespace_name,
    operation_name,
)
from codecapi.exceptions import DuplicateNameDetected


class TestCamelCase:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("get /pets", "getPets"),
            ("X-Request-Id", "xRequestId"),
            ("user.id", "userId"),
            ("HTMLParser", "htmlParser"),
            ("", ""),
        ],
    )
    def test_camel_case(self, text: str, expected: str) -> None:
        assert camel_case(text) == expected


class TestOperationName:
    def test_from_verb_and_path(self) -> None:
        assert operation_name("get", "/pets") == "getPets"

    def test_path_parameters_become_connectors(self) -> None:
        assert operation_name("get", "/pets/{petId}") == "getPetsByPetId"
        assert operation_name("get", "/pets/{petId}/toys/{toyId}") == "getPetsByPetIdToysAndToyId"

    def test_operation_id_preferred(self) -> None:
        assert operation_name("get", "/pets", "listPets") == "listPets"

    def test_operation_id_prefix_is_dropped(self) -> None:
        assert operation_name("get", "/pets", "pets_listAll") == "listAll"
        assert operation_name("get", "/pets", "list_pets_by_owner") == "petsByOwner"

    def test_operation_id_with_punctuation_falls_back(self) -> None:
        assert operation_name("delete", "/pets/{id}", "delete-pet") == "deletePetsById"

    def test_keyword_operation_id_falls_back(self) -> None:
        assert operation_name("post", "/classes", "class") == "postClasses"


class TestModelNames:
    def test_last_pointer_segment(self) -> None:
        assert name_for("#/components/schemas/pet", {}) == "Pet"

    def test_title_wins(self) -> None:
        assert name_for("#/components/schemas/x", {"title": "my model"}) == "MyModel"

    def test_dots_removed(self) -> None:
        assert name_for("#/components/schemas/pet.Category", {}) == "PetCategory"

    def test_escaped_segment(self) -> None:
        assert name_for("#/components/schemas/Foo~1Bar", {}) == "FooBar"


class TestNamespaceName:
    def test_spaces_fold_into_camel_case(self) -> None:
        assert namespace_name("pet store") == "petStore"
        assert namespace_name("pet") == "pet"


class TestArgumentNames:
    def test_namespace_stripped(self) -> None:
        assert argument_names(["user.id"]) == {"user.id": "id"}

    def test_tie_break_keeps_short_name_for_plain_parameter(self) -> None:
        assert argument_names(["user.id", "id"]) == {"id": "id", "user.id": "userId"}

    def test_unresolvable_collision_gets_numeric_suffix(self) -> None:
        assert argument_names(["id", "ID"]) == {"id": "id", "ID": "id2"}
        assert argument_names(["id", "ID", "Id"]) == {"id": "id", "ID": "id2", "Id": "id3"}

    def test_header_names_camel_cased(self) -> None:
        assert argument_names(["X-Request-Id"]) == {"X-Request-Id": "xRequestId"}


class TestNameRegistry:
    def test_claim_and_define(self) -> None:
        registry = NameRegistry()
        alias = registry.claim("Pet", "#/components/schemas/Pet")
        assert registry.lookup("#/components/schemas/Pet") is alias
        assert not registry.is_defined("Pet")

        registry.define(alias, codec.string)
        assert registry.is_defined("Pet")
        assert alias.target is codec.string
        assert registry.models() == {"Pet": codec.string}

    def test_same_name_different_ref_rejected(self) -> None:
        registry = NameRegistry()
        registry.claim("Pet", "#/components/schemas/Pet")
        with pytest.raises(DuplicateNameDetected, match="Pet"):
            registry.claim("Pet", "#/components/schemas/pet")
