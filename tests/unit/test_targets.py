"""Unit tests for patch targets."""

from dataclasses import dataclass

import pytest

from propatch.core.errors import InvalidOwnerError, PropertyNotFoundError
from propatch.core.schema.descriptor import AccessorDescriptor, DataDescriptor
from propatch.core.targets import (
    AttributeTarget,
    ItemTarget,
    PatchTarget,
    PropertyTable,
    resolve_target,
)


class Widget:
    """Plain class used as an attribute owner."""

    size = 3

    @property
    def area(self):
        return self.size * self.size


@dataclass(frozen=True)
class FrozenPoint:
    x: int = 0


class Slotted:
    __slots__ = ("a",)


# ============================================================================
# PropertyTable
# ============================================================================


class TestPropertyTable:
    """Tests for the in-memory PropertyTable."""

    def test_initial_values(self):
        """Test initial values become writable data properties."""
        table = PropertyTable({"x": 1, "y": 2})
        assert table["x"] == 1
        assert table.read_descriptor("y") == DataDescriptor(2)
        assert table.own_keys() == ["x", "y"]
        assert len(table) == 2

    def test_missing_key_raises(self):
        """Test reading a missing key raises PropertyNotFoundError."""
        table = PropertyTable(name="Box")
        with pytest.raises(PropertyNotFoundError):
            table["nope"]
        with pytest.raises(PropertyNotFoundError):
            del table["nope"]

    def test_accessor_properties(self):
        """Test getters and setters receive the table."""
        table = PropertyTable({"_x": 1})

        def set_x(owner, value):
            owner.define_descriptor("_x", DataDescriptor(value * 10))

        table.define_descriptor("x", AccessorDescriptor(get=lambda owner: owner["_x"], set=set_x))
        assert table["x"] == 1
        table["x"] = 2
        assert table["_x"] == 20

    def test_getter_only_cannot_be_set(self):
        """Test assigning a getter-only property raises TypeError."""
        table = PropertyTable()
        table.define_descriptor("x", AccessorDescriptor(get=lambda owner: 1))
        with pytest.raises(TypeError):
            table["x"] = 2

    def test_non_writable_cannot_be_set(self):
        """Test assigning a read-only data property raises TypeError."""
        table = PropertyTable()
        table.define_descriptor("x", DataDescriptor(1, writable=False))
        with pytest.raises(TypeError):
            table["x"] = 2

    def test_enumerable_keys(self):
        """Test keys() only lists enumerable properties."""
        table = PropertyTable({"a": 1})
        table.define_descriptor("hidden", DataDescriptor(2, enumerable=False))
        assert table.keys() == ["a"]
        assert list(table) == ["a"]
        assert "hidden" in table
        assert table.own_keys() == ["a", "hidden"]

    def test_prevent_extensions(self):
        """Test a non-extensible table refuses new keys but accepts updates."""
        table = PropertyTable({"a": 1})
        table.prevent_extensions()
        assert not table.is_extensible()
        with pytest.raises(TypeError):
            table.define_descriptor("b", DataDescriptor(2))
        table["a"] = 5
        assert table["a"] == 5

    def test_freeze(self):
        """Test freezing makes every property read-only and non-configurable."""
        table = PropertyTable({"a": 1})
        table.freeze()
        assert table.is_frozen()
        assert table.read_descriptor("a") == DataDescriptor(1, writable=False, configurable=False)
        with pytest.raises(TypeError):
            table.define_descriptor("a", DataDescriptor(2))
        with pytest.raises(TypeError):
            table.delete_key("a")
        with pytest.raises(TypeError):
            table["b"] = 1

    def test_redefine_identical_non_configurable(self):
        """Test redefining a non-configurable key with the same descriptor is allowed."""
        table = PropertyTable()
        descriptor = DataDescriptor(1, writable=False, configurable=False)
        table.define_descriptor("a", descriptor)
        table.define_descriptor("a", descriptor)
        assert table.read_descriptor("a") == descriptor

    def test_non_configurable_writable_value_change(self):
        """Test a non-configurable writable property may still change value."""
        table = PropertyTable()
        table.define_descriptor("a", DataDescriptor(1, configurable=False))
        table.define_descriptor("a", DataDescriptor(2, configurable=False))
        assert table["a"] == 2

    def test_delete_missing_key_is_silent(self):
        """Test delete_key ignores missing keys."""
        PropertyTable().delete_key("missing")

    def test_satisfies_protocol(self):
        """Test PropertyTable is a PatchTarget."""
        assert isinstance(PropertyTable(), PatchTarget)


# ============================================================================
# AttributeTarget
# ============================================================================


class TestAttributeTarget:
    """Tests for AttributeTarget."""

    def test_reads_own_attributes_only(self):
        """Test inherited attributes are not own descriptors."""
        class Sub(Widget):
            pass

        assert AttributeTarget(Sub).read_descriptor("size") is None
        assert AttributeTarget(Widget).read_descriptor("size") == DataDescriptor(3)

    def test_property_reads_as_accessor(self):
        """Test property objects read back as accessor descriptors."""
        descriptor = AttributeTarget(Widget).read_descriptor("area")
        assert isinstance(descriptor, AccessorDescriptor)
        assert descriptor.get is Widget.__dict__["area"].fget
        assert descriptor.set is None

    def test_underscore_names_not_enumerable(self):
        """Test private names read back as non-enumerable."""
        assert not AttributeTarget(Widget).read_descriptor("__module__").enumerable

    def test_define_and_delete_on_class(self):
        """Test installing and removing attributes on a class."""
        class Box:
            pass

        target = AttributeTarget(Box)
        target.define_descriptor("color", DataDescriptor("red"))
        assert Box.color == "red"
        target.define_descriptor("shout", AccessorDescriptor(get=lambda self: self.color.upper()))
        assert Box().shout == "RED"
        target.delete_key("shout")
        target.delete_key("color")
        assert not hasattr(Box, "color")
        assert not hasattr(Box, "shout")

    def test_accessor_on_instance_rejected(self):
        """Test accessors need a class owner."""
        target = AttributeTarget(Widget())
        with pytest.raises(TypeError):
            target.define_descriptor("x", AccessorDescriptor(get=lambda self: 1))

    def test_non_string_key_rejected(self):
        """Test attribute names must be strings."""
        with pytest.raises(TypeError):
            AttributeTarget(Widget()).define_descriptor(1, DataDescriptor(1))

    def test_frozen_dataclass_refuses(self):
        """Test frozen dataclass instances refuse new attributes."""
        with pytest.raises(AttributeError):
            AttributeTarget(FrozenPoint()).define_descriptor("y", DataDescriptor(1))

    def test_extensibility(self):
        """Test extensibility of classes, builtins and slotted instances."""
        assert AttributeTarget(Widget).is_extensible()
        assert AttributeTarget(Widget()).is_extensible()
        assert not AttributeTarget(str).is_extensible()
        assert not AttributeTarget(Slotted()).is_extensible()

    def test_builtin_type_refuses(self):
        """Test immutable builtin types refuse new attributes."""
        with pytest.raises(TypeError):
            AttributeTarget(str).define_descriptor("shout", DataDescriptor(lambda s: s.upper()))

    def test_own_keys_without_dict(self):
        """Test objects without __dict__ have no own keys."""
        assert AttributeTarget(Slotted()).own_keys() == []


# ============================================================================
# ItemTarget
# ============================================================================


class TestItemTarget:
    """Tests for ItemTarget."""

    def test_read_define_delete(self):
        """Test mapping items behave as data properties."""
        data = {"a": 1}
        target = ItemTarget(data)
        assert target.read_descriptor("a") == DataDescriptor(1)
        assert target.read_descriptor("b") is None
        target.define_descriptor("b", DataDescriptor(2, enumerable=False))
        assert data == {"a": 1, "b": 2}
        target.delete_key("b")
        target.delete_key("missing")
        assert data == {"a": 1}

    def test_accessor_rejected(self):
        """Test mapping items cannot hold accessors."""
        with pytest.raises(TypeError):
            ItemTarget({}).define_descriptor("a", AccessorDescriptor(get=lambda o: 1))


# ============================================================================
# resolve_target
# ============================================================================


class TestResolveTarget:
    """Tests for resolve_target."""

    @pytest.mark.parametrize("owner", [None, 1, 2.5, True, "text", b"bytes", (1,), frozenset(), range(3)])
    def test_invalid_owners(self, owner):
        """Test immutable values are rejected."""
        with pytest.raises(InvalidOwnerError) as exc_info:
            resolve_target(owner)
        assert exc_info.value.owner is owner

    def test_invalid_owner_is_type_error(self):
        """Test InvalidOwnerError can be caught as TypeError."""
        with pytest.raises(TypeError):
            resolve_target(None)

    def test_property_table_passes_through(self):
        """Test targets are returned unchanged."""
        table = PropertyTable()
        assert resolve_target(table) is table

    def test_mapping_becomes_item_target(self):
        """Test mutable mappings are wrapped as ItemTarget."""
        assert isinstance(resolve_target({}), ItemTarget)

    def test_objects_become_attribute_targets(self):
        """Test classes, modules and instances are wrapped as AttributeTarget."""
        import types

        for owner in (Widget, Widget(), types.ModuleType("m"), str):
            target = resolve_target(owner)
            assert isinstance(target, AttributeTarget)
            assert target.subject is owner

    def test_target_classes_are_patched_as_classes(self):
        """Test a class defining the target methods is wrapped, not used as a target."""
        class TableSubclass(PropertyTable):
            pass

        target = resolve_target(TableSubclass)
        assert isinstance(target, AttributeTarget)
        assert target.subject is TableSubclass
        assert target.read_descriptor("extra") is None

    def test_target_subclass_instances_pass_through(self):
        """Test instances of a target subclass are still used directly."""
        class TableSubclass(PropertyTable):
            pass

        table = TableSubclass()
        assert resolve_target(table) is table


# ============================================================================
# AttributeTarget: slots and exact properties
# ============================================================================


class Point:
    __slots__ = ("x", "y")

    def __init__(self, x):
        self.x = x


class LabeledPoint(Point):
    """Slotted base with a __dict__-carrying subclass."""


class Proxy:
    """Stores attributes outside both __dict__ and its own slots."""

    __slots__ = ("_store",)

    def __init__(self):
        object.__setattr__(self, "_store", {})

    def __getattr__(self, name):
        try:
            return self._store[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name, value):
        self._store[name] = value


def _get_level(self):
    return 1


def _del_level(self):
    pass


class Gauge:
    level = property(_get_level, None, _del_level, "Current level.")


class TestAttributeTargetSlots:
    """Tests for instances storing attributes in __slots__."""

    def test_set_slot_reads_as_data(self):
        """Test a filled slot is an own data property."""
        target = AttributeTarget(Point(1))
        assert target.read_descriptor("x") == DataDescriptor(1)
        assert target.own_keys() == ["x"]

    def test_empty_slot_is_absent(self):
        """Test an unset slot reads as missing."""
        assert AttributeTarget(Point(1)).read_descriptor("y") is None

    def test_delete_slot(self):
        """Test deleting a filled slot empties it, and an empty one is ignored."""
        point = Point(1)
        target = AttributeTarget(point)
        target.delete_key("x")
        assert not hasattr(point, "x")
        target.delete_key("y")

    def test_mixed_dict_and_slots(self):
        """Test own keys combine __dict__ entries and filled slots."""
        point = LabeledPoint(1)
        point.label = "origin"
        target = AttributeTarget(point)
        assert target.own_keys() == ["label", "x"]
        assert target.read_descriptor("x") == DataDescriptor(1)

    def test_delete_unreachable_attribute_raises(self):
        """Test attributes kept outside __dict__ and slots cannot be silently skipped."""
        proxy = Proxy()
        proxy.mode = "on"
        with pytest.raises(AttributeError, match="'mode'"):
            AttributeTarget(proxy).delete_key("mode")

    def test_property_keeps_source_object(self):
        """Test reading a property keeps the original object and reinstalls it."""
        original = Gauge.__dict__["level"]
        descriptor = AttributeTarget(Gauge).read_descriptor("level")
        assert descriptor.source is original

        target = AttributeTarget(Gauge)
        target.define_descriptor("level", DataDescriptor(5))
        target.define_descriptor("level", descriptor)
        assert Gauge.__dict__["level"] is original
