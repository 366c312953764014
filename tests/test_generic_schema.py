"""Tests for schema synthesis of generic classes and instances."""

from typing import Dict, List, Optional

import pytest

from reflectserde.exceptions import IllegalArgumentException, UnresolvableTypeVariableException
from reflectserde.reflect.data import most_general_schema
from reflectserde.reflect.generic import GenericReflectData
from reflectserde.reflect.scope import SchemaGenerationScope
from reflectserde.reflect.types import ParameterizedType, TypeVariable
from reflectserde.serialization.datum import GenericRecord
from reflectserde.serialization.schema import CLASS_PROP, Schema, SchemaType
import reflect_models as models


def record(name, **fields):
    return {
        "type": "record",
        "name": name,
        "namespace": "reflect_models",
        "fields": [{"name": k, "type": v} for k, v in fields.items()],
    }


class TestConcreteClasses:
    """Tests for classes without type parameters."""

    def test_value_class(self, reflect_data):
        schema = reflect_data.get_schema(models.ValueClass)
        assert schema.to_dict() == record("ValueClass", x="long", text="string")

    def test_instance_of_value_class(self, reflect_data):
        schema = reflect_data.get_schema(models.ValueClass(42, "test"))
        assert schema == reflect_data.get_schema(models.ValueClass)

    def test_nested_value_class(self, reflect_data):
        schema = reflect_data.get_schema(models.NestedValueClass(1, models.ValueClass(2, "a")))
        assert schema.get_field("value_class").schema.name == "ValueClass"
        assert schema.get_field("y").schema.type == SchemaType.LONG

    def test_list_and_map_fields(self, reflect_data):
        assert reflect_data.get_schema(models.ListClass).to_dict() == record(
            "ListClass", x_values={"type": "array", "items": "long"}
        )
        assert reflect_data.get_schema(models.MapClass).to_dict() == record(
            "MapClass", string_integer_map={"type": "map", "values": "long"}
        )

    def test_non_list_collections_carry_class(self, reflect_data):
        schema = reflect_data.get_schema(models.DequeClass)
        assert schema.get_field("items").schema.get_prop(CLASS_PROP) == "collections:deque"
        assert schema.get_field("pair").schema.get_prop(CLASS_PROP) == "builtins:tuple"

    def test_abstract_collections_carry_no_class(self, reflect_data):
        schema = reflect_data.get_schema(models.AbstractCollectionClass)
        assert schema.to_dict() == record(
            "AbstractCollectionClass",
            numbers={"type": "array", "items": "long"},
            names={"type": "array", "items": "string"},
        )

    def test_enum(self, reflect_data):
        schema = reflect_data.get_schema(models.Palette)
        primary = schema.get_field("primary").schema
        assert primary.type == SchemaType.ENUM
        assert primary.symbols == ["RED", "GREEN"]
        assert schema.get_field("shades").schema.items is primary

    def test_class_vars_are_not_fields(self, reflect_data):
        schema = reflect_data.get_schema(models.CountedClass)
        assert [f.name for f in schema.fields] == ["label"]

    def test_typing_annotations(self, reflect_data):
        assert reflect_data.get_schema(List[int]).to_dict() == {"type": "array", "items": "long"}
        assert reflect_data.get_schema(Optional[str]).to_dict() == ["string", "null"]
        assert reflect_data.get_schema(Dict[int, str]).to_dict() == {
            "type": "map",
            "keys": "long",
            "values": "string",
        }

    def test_unknown_type_is_most_general_union(self, reflect_data):
        assert reflect_data.get_schema(object) == most_general_schema()
        assert reflect_data.get_schema(List).items == most_general_schema()

    def test_function_has_no_schema(self, reflect_data):
        with pytest.raises(IllegalArgumentException):
            reflect_data.get_schema(ParameterizedType(len, ()))

    def test_schema_and_generic_record_pass_through(self, reflect_data):
        schema = Schema.parse(record("ValueClass", x="long", text="string"))
        assert reflect_data.get_schema(schema) is schema
        assert reflect_data.get_schema(GenericRecord(schema)) is schema


class TestGenericInstances:
    """Tests for schemas inferred from generic instances."""

    def test_single_parameter(self, reflect_data):
        schema = reflect_data.get_schema(models.GenericClass("foo"))
        assert schema.to_dict() == record("GenericClass", generic_field="string")

    def test_different_witnesses_give_different_schemas(self, reflect_data):
        text = reflect_data.get_schema(models.GenericClass("foo"))
        number = reflect_data.get_schema(models.GenericClass(1))
        assert text != number
        assert number.get_field("generic_field").schema.type == SchemaType.LONG

    def test_inference_is_idempotent(self, reflect_data):
        first = reflect_data.get_schema(models.TwoGenericClass(1, "a"))
        second = reflect_data.get_schema(models.TwoGenericClass(2, "b"))
        assert first == second
        assert first.to_dict() == record("TwoGenericClass", t="long", s="string")

    def test_fresh_synthesizers_agree(self):
        instance = models.GenericValueMapClass({"foo": 1.5})
        assert GenericReflectData().get_schema(instance) == GenericReflectData().get_schema(instance)

    def test_generic_field_of_generic_field(self, reflect_data):
        instance = models.NestedGenericValueMapClass(models.GenericValueMapClass({"foo": 10}))
        schema = reflect_data.get_schema(instance)
        inner = schema.get_field("nested_generic_map").schema
        assert inner.to_dict() == record(
            "GenericValueMapClass", generic_values_map={"type": "map", "values": "long"}
        )

    def test_generic_witness(self, reflect_data):
        instance = models.NestedGenericMapListValueClass(
            {"outer": {"bla": [models.GenericClass(1.0)]}},
            models.GenericClass(2.0),
            models.GenericClass(3.0),
        )
        schema = reflect_data.get_schema(instance)
        boxed = record("GenericClass", generic_field="double")
        assert schema.get_field("x").schema.to_dict() == boxed
        nested = schema.get_field("generic_value_map").schema
        assert nested.values.values.items.to_dict() == boxed

    def test_list_witness(self, reflect_data):
        instance = models.GenericValueMapClass({"foo": [models.ValueClass(100, "nested")]})
        values = reflect_data.get_schema(instance).get_field("generic_values_map").schema.values
        assert values.type == SchemaType.ARRAY
        assert values.items.name == "ValueClass"
        assert values.get_prop(CLASS_PROP) is None

    def test_empty_sequence_gives_most_general_type(self, reflect_data):
        schema = reflect_data.get_schema(models.GenericListClass([]))
        boxes = schema.get_field("boxes").schema
        assert boxes.items.get_field("generic_field").schema == most_general_schema()

    def test_inherited_generic_fields(self, reflect_data):
        schema = reflect_data.get_schema(models.GenericSubClass("base", "sub"))
        assert schema.to_dict() == record(
            "GenericSubClass", base_variable="string", sub_variable="string"
        )

    def test_concrete_subclass_of_parameterized_base(self, reflect_data):
        schema = reflect_data.get_schema(models.StringGenericSubClass("base", 3))
        assert schema.to_dict() == record(
            "StringGenericSubClass", base_variable="string", count="long"
        )
        assert reflect_data.get_schema(models.StringGenericSubClass) == schema

    def test_subclass_binding_every_parameter(self, reflect_data):
        schema = reflect_data.get_schema(models.PairOfLongs)
        assert schema.to_dict() == record("PairOfLongs", t="long", s="long")

    def test_optional_parameter(self, reflect_data):
        schema = reflect_data.get_schema(models.OptionalGenericClass(3))
        assert schema.get_field("maybe").schema.to_dict() == ["long", "null"]

    def test_dangling_parameter_is_most_general(self, reflect_data):
        schema = reflect_data.get_schema(models.GenericClass(None))
        assert schema.get_field("generic_field").schema == most_general_schema()

    def test_reified_field(self, reflect_data):
        schema = reflect_data.get_schema(models.GenericUserClass(models.GenericClass("a")))
        reified = schema.get_field("reified_field").schema
        assert reified.to_dict() == record("GenericClass", generic_field="string")

    def test_recursive_generic_is_referenced_by_name(self, reflect_data):
        node = models.RecursiveNode("a", models.RecursiveNode("b"))
        schema = reflect_data.get_schema(node)
        assert schema.to_dict() == record(
            "RecursiveNode", value="string", next=["reflect_models.RecursiveNode", "null"]
        )
        assert schema.get_field("next").schema.branches[0] is schema

    def test_nested_class_uses_enclosing_binding(self, reflect_data):
        outer = models.Outer(models.Outer.Inner(value="v", sibling="s"))
        schema = reflect_data.get_schema(outer)
        inner = schema.get_field("inner").schema
        assert inner.name == "Outer.Inner"
        assert inner.get_field("value").schema.type == SchemaType.STRING
        assert inner.get_field("sibling").schema.to_dict() == ["string", "null"]

    def test_top_level_deque_instance(self, reflect_data):
        schema = reflect_data.get_schema(models.make_deque(1, 2))
        assert schema.items.type == SchemaType.LONG
        assert schema.get_prop(CLASS_PROP) == "collections:deque"

    def test_top_level_list_of_records(self, reflect_data):
        schema = reflect_data.get_schema([models.GenericClass("a")])
        assert schema.to_dict() == {
            "type": "array",
            "items": record("GenericClass", generic_field="string"),
        }


class TestParameterizedTypes:
    """Tests for explicitly parameterized types and bare generic classes."""

    def test_alias(self, reflect_data):
        schema = reflect_data.get_schema(models.GenericClass[int])
        assert schema.to_dict() == record("GenericClass", generic_field="long")

    def test_alias_matches_instance(self, reflect_data):
        assert reflect_data.get_schema(models.GenericClass[str]) == reflect_data.get_schema(
            models.GenericClass("x")
        )

    def test_parameterized_type(self, reflect_data):
        expr = ParameterizedType(models.GenericSubClass, (float,))
        schema = reflect_data.get_schema(expr)
        assert schema.get_field("base_variable").schema.type == SchemaType.DOUBLE

    def test_explicit_alias_instance(self, reflect_data):
        schema = reflect_data.get_schema(models.GenericClass[bytes](None))
        assert schema.get_field("generic_field").schema.type == SchemaType.BYTES

    def test_bare_generic_class_is_unresolvable(self, reflect_data):
        with pytest.raises(UnresolvableTypeVariableException) as exc_info:
            reflect_data.get_schema(models.GenericClass)
        assert exc_info.value.type_variable == TypeVariable(models.T, models.GenericClass)

    def test_bare_nested_generic_is_unresolvable(self, reflect_data):
        with pytest.raises(UnresolvableTypeVariableException):
            reflect_data.get_schema(models.NestedGenericValueMapClass)

    def test_scope_is_unwound_after_failure(self, reflect_data):
        scope = SchemaGenerationScope()
        foreign = TypeVariable(models.S, models.TwoGenericClass)
        expr = ParameterizedType(models.GenericListClass, (foreign,))
        with pytest.raises(UnresolvableTypeVariableException):
            reflect_data.create_schema(expr, {}, scope)
        assert scope.depth == 0

    def test_failure_does_not_poison_later_requests(self, reflect_data):
        with pytest.raises(UnresolvableTypeVariableException):
            reflect_data.get_schema(models.GenericClass)
        assert reflect_data.get_schema(models.GenericClass("a")).get_field("generic_field")
