"""Tests for type descriptors: inference, validation, defaults and unions."""
import re

import pytest

from statetree import (
    AmbiguousUnionError,
    ValidationError,
    create_factory,
    get_snapshot,
    get_type,
    types,
)


def make_shapes():
    Box = create_factory("Box", {"width": 0, "height": 0})
    Square = create_factory("Square", {"width": 0})
    return Box, Square


class TestCreateFactory:
    """Property inference from defaults."""

    def test_infers_properties_actions_and_views(self, store_factory):
        assert list(store_factory.properties) == ["todos", "tags"]
        assert set(store_factory.actions) == {"add_todo", "add_and_toggle", "clear_done"}
        assert list(store_factory.views) == ["open_count"]

    def test_primitive_defaults_fill_missing_keys(self, todo_factory):
        todo = todo_factory({"title": "a"})
        assert get_snapshot(todo) == {"title": "a", "done": False}

    def test_name_defaults(self):
        assert create_factory({"a": 1}).name == "unnamed-object-factory"

    def test_rejects_private_names(self):
        with pytest.raises(ValueError, match="Invalid property name '_hidden'"):
            create_factory("Bad", {"_hidden": 1})

    def test_rejects_uninferable_defaults(self):
        with pytest.raises(TypeError, match="Cannot infer a type for property 'items'"):
            create_factory("Bad", {"items": []})

    def test_view_is_computed_and_read_only(self, store):
        assert store.open_count == 1
        with pytest.raises(AttributeError):
            store.open_count = 3
        assert "open_count" not in get_snapshot(store)

    def test_unknown_attribute_write_fails(self, todo_factory):
        todo = todo_factory()
        with pytest.raises(AttributeError):
            todo.priority = 1


class TestSignatures:
    """Rendered shape signatures."""

    def test_object_signature(self):
        Item = create_factory({"name": "", "quantity": 0})
        assert Item.describe() == "{ name: primitive; quantity: primitive }"

    def test_nested_signature(self):
        Inner = create_factory({"c": 0})
        Outer = create_factory({"a": 0, "b": Inner})
        assert Outer.describe() == "{ a: primitive; b: { c: primitive } }"

    def test_container_signatures(self):
        Item = create_factory({"name": ""})
        assert types.array(Item).name == "unnamed-object-factory[]"
        assert types.array(Item).describe() == "{ name: primitive }[]"
        assert types.map(types.primitive).name == "map<primitive>"
        assert types.map(types.primitive).describe() == "{ [key: string]: primitive }"

    def test_empty_object_signature(self):
        assert create_factory({}).describe() == "{}"


class TestValidation:
    """validate(), is_() and isinstance()."""

    def test_invalid_snapshot_raises_with_issues(self, todo_factory):
        with pytest.raises(ValidationError) as error:
            todo_factory({"title": [], "priority": 1})
        message = str(error.value)
        assert message.startswith(
            '[statetree] Snapshot {"title":[],"priority":1} is not assignable to type Todo. '
            'Expected "{ title: primitive; done: primitive }"'
        )
        assert [issue.path for issue in error.value.issues] == ["/priority", "/title"]
        assert error.value.type_name == "Todo"

    def test_missing_required_property(self):
        Row = create_factory("Row", {"name": types.primitive})
        issues = Row.validate({})
        assert len(issues) == 1
        assert issues[0].path == "/name"
        assert "Missing required property 'name'" in issues[0].message

    def test_nested_issue_paths(self, store_factory):
        issues = store_factory.validate({"todos": [{"title": "a"}, {"done": {}}]})
        assert [issue.path for issue in issues] == ["/todos/1/done"]

    def test_is_accepts_snapshots_and_instances(self, todo_factory):
        assert todo_factory.is_({"title": "a"})
        assert todo_factory.is_(todo_factory())
        assert not todo_factory.is_({"title": "a", "extra": 1})
        assert not todo_factory.is_(3)

    def test_isinstance_agrees_with_is(self, todo_factory, store):
        assert isinstance(store.todos[0], todo_factory)
        assert isinstance({"title": "x"}, todo_factory)
        assert not isinstance("x", todo_factory)

    def test_map_keys_must_be_strings(self):
        assert not types.map(types.primitive).is_({1: "a"})

    def test_primitives(self):
        for value in (None, True, 1, 1.5, "s"):
            assert types.primitive.is_(value)
        assert not types.primitive.is_([])
        assert not types.primitive.is_({})


class TestWithDefault:
    """Defaults are validated at definition time and fill missing values."""

    def test_provides_default_when_no_snapshot(self):
        Row = create_factory({"name": "", "quantity": 0})
        Factory = create_factory({"rows": types.with_default(types.array(Row), [{"name": "test"}])})
        doc = Factory()
        assert get_snapshot(doc) == {"rows": [{"name": "test", "quantity": 0}]}

    def test_uses_snapshot_if_provided(self):
        Row = create_factory({"name": "", "quantity": 0})
        Factory = create_factory({"rows": types.with_default(types.array(Row), [{"name": "test"}])})
        doc = Factory({"rows": [{"name": "snapshot", "quantity": 0}]})
        assert get_snapshot(doc) == {"rows": [{"name": "snapshot", "quantity": 0}]}

    def test_invalid_default_fails_at_definition(self):
        Row = create_factory({"name": "", "quantity": 0, "wrong_prop": lambda self: None})
        with pytest.raises(ValidationError) as error:
            create_factory({"rows": types.with_default(types.array(Row), [{"wrongProp": True}])})
        assert str(error.value) == (
            '[statetree] Default value [{"wrongProp":true}] is not assignable to type '
            'unnamed-object-factory[]. Expected "{ name: primitive; quantity: primitive }[]"'
        )

    def test_create_without_snapshot_uses_default(self):
        Tags = types.with_default(types.array(types.primitive), ["a"])
        assert get_snapshot(Tags()) == ["a"]


class TestUnion:
    """Union resolution with and without a dispatcher."""

    def test_ambiguous_snapshot_requires_dispatcher(self):
        Box, Square = make_shapes()
        Plane = types.union(Box, Square)
        with pytest.raises(AmbiguousUnionError) as error:
            Plane({"width": 2})
        assert str(error.value) == (
            '[statetree] Ambiguous snapshot {"width":2} for union Box | Square. '
            'Please provide a dispatch in the union declaration.'
        )
        assert error.value.candidates == [Box, Square]

    def test_ambiguity_is_a_validation_error(self):
        Box, Square = make_shapes()
        with pytest.raises(ValidationError):
            types.union(Box, Square)({"width": 2})

    def test_no_matching_variant_names_all_variants(self):
        Box, Square = make_shapes()
        with pytest.raises(AmbiguousUnionError, match=re.escape("for union Box | Square.")):
            types.union(Box, Square)({"depth": 1})

    def test_discriminates_by_keys(self):
        Box, Square = make_shapes()
        doc = types.union(Box, Square)({"width": 2, "height": 1})
        assert get_type(doc) is Box
        assert Box.is_(doc)
        assert not Square.is_(doc)

    def test_discriminates_by_value_type(self):
        Size = create_factory("Size", {"width": 0, "height": 0})
        Picture = create_factory("Picture", {"url": "", "size": Size})
        Square = create_factory("Square", {"size": 0})
        doc = types.union(Picture, Square)({"size": {"width": 0, "height": 0}})
        assert Picture.is_(doc)
        assert not Square.is_(doc)

    def test_is_accepts_instances_of_any_variant(self):
        Box, Square = make_shapes()
        Plane = types.union(Square, Box)
        assert Plane.is_(Box())
        assert Plane.is_(Square())

    def test_is_on_ambiguous_snapshot_is_false(self):
        Box, Square = make_shapes()
        assert not types.union(Box, Square).is_({"width": 2})

    def test_dispatcher_selects_variant(self):
        Box, Square = make_shapes()
        DispatchPlane = types.union(lambda snapshot: Box if "height" in snapshot else Square, Box, Square)
        assert get_type(DispatchPlane({"width": 2})) is Square
        assert get_type(DispatchPlane({"width": 2, "height": 1})) is Box
        assert DispatchPlane.is_(Box())
        assert DispatchPlane.is_(Square())

    def test_dispatcher_wins_over_key_overlap(self):
        Box, Square = make_shapes()
        AlwaysBox = types.union(lambda snapshot: Box, Box, Square)
        doc = AlwaysBox({"width": 2})
        assert get_type(doc) is Box
        assert get_snapshot(doc) == {"width": 2, "height": 0}

    def test_ambiguity_inside_object_is_reported_as_issue(self):
        Box, Square = make_shapes()
        Drawing = create_factory("Drawing", {"shape": types.union(Box, Square)})
        with pytest.raises(ValidationError, match="Ambiguous snapshot"):
            Drawing({"shape": {"width": 1}})

    def test_union_property_accepts_live_variant(self):
        Box, Square = make_shapes()
        Drawing = create_factory("Drawing", {"shape": types.union(Box, Square)})
        drawing = Drawing({"shape": {"width": 1, "height": 1}})
        square = Square({"width": 4})
        drawing.shape = square
        assert drawing.shape is square
        assert get_snapshot(drawing) == {"shape": {"width": 4}}


class TestMaybe:
    """maybe(T) is T or None, defaulting to None."""

    def test_defaults_to_none(self):
        Friend = create_factory("Friend", {"name": ""})
        Person = create_factory("Person", {"friend": types.maybe(Friend)})
        person = Person()
        assert person.friend is None
        assert get_snapshot(person) == {"friend": None}

    def test_assign_and_clear(self):
        Friend = create_factory("Friend", {"name": ""})
        Person = create_factory("Person", {"friend": types.maybe(Friend)})
        person = Person()
        person.friend = {"name": "x"}
        assert person.friend.name == "x"
        person.friend = None
        assert get_snapshot(person) == {"friend": None}
