"""Patch targets: the objects whose property tables the engine mutates.

The engine never touches an owner directly. It goes through a small
capability contract (PatchTarget) so the same Patch logic works against a
real Python object, a mutable mapping, or an in-memory PropertyTable used in
tests and sandboxes.

- PropertyTable: in-memory object with full descriptor semantics
- AttributeTarget: attributes of any Python object (classes, modules, instances)
- ItemTarget: items of a MutableMapping (os.environ, sys.modules, plain dicts)
"""

import dataclasses
import types
from collections.abc import MutableMapping
from typing import Any, Dict, Hashable, Iterator, List, Mapping, Optional, Protocol, runtime_checkable

from propatch.core.errors import InvalidOwnerError, PropertyNotFoundError, describe_owner
from propatch.core.schema.descriptor import (
    AccessorDescriptor,
    DataDescriptor,
    DescriptorPayload,
    evaluate_descriptor,
)

# Py_TPFLAGS_HEAPTYPE / Py_TPFLAGS_IMMUTABLETYPE
_HEAPTYPE = 1 << 9
_IMMUTABLETYPE = 1 << 8

_UNSET = object()

_VALUE_TYPES = (bool, int, float, complex, str, bytes, tuple, frozenset, range)


@runtime_checkable
class PatchTarget(Protocol):
    """Capability contract the engine needs from a patchable object.

    Any object providing these methods is treated as a target as-is, which
    lets callers plug in their own property stores.
    """

    def read_descriptor(self, key: Hashable) -> Optional[DescriptorPayload]:
        """Return the own descriptor for ``key``, or None when absent."""
        ...

    def define_descriptor(self, key: Hashable, descriptor: DescriptorPayload) -> None:
        """Install ``descriptor`` under ``key``; raise TypeError when refused."""
        ...

    def delete_key(self, key: Hashable) -> None:
        """Remove ``key``; missing keys are ignored, keys that cannot be removed raise."""
        ...

    def is_extensible(self) -> bool:
        """Whether new keys may be added."""
        ...

    def own_keys(self) -> List[Hashable]:
        """All own keys, enumerable or not."""
        ...


class PropertyTable:
    """In-memory object with full descriptor semantics.

    Mirrors how a dynamic-language object stores its properties: each key
    maps to a data or accessor descriptor, the table can be made
    non-extensible or frozen, and non-configurable keys refuse redefinition.

    Example:
        >>> table = PropertyTable({"x": 1}, name="Point")
        >>> table["x"]
        1
        >>> table.freeze()
        >>> table["y"] = 2
        Traceback (most recent call last):
        ...
        TypeError: Cannot add property 'y', Point is not extensible
    """

    def __init__(self, initial: Optional[Mapping[Hashable, Any]] = None, name: str = "PropertyTable"):
        self.name = name
        self._slots: Dict[Hashable, DescriptorPayload] = {}
        self._extensible = True
        for key, value in (initial or {}).items():
            self._slots[key] = DataDescriptor(value)

    # ------------------------------------------------------------------
    # PatchTarget
    # ------------------------------------------------------------------

    def read_descriptor(self, key: Hashable) -> Optional[DescriptorPayload]:
        return self._slots.get(key)

    def define_descriptor(self, key: Hashable, descriptor: DescriptorPayload) -> None:
        current = self._slots.get(key)
        if current is None:
            if not self._extensible:
                raise TypeError(f"Cannot define property {key!r}, {self.name} is not extensible")
        elif not current.configurable and not self._allows_redefinition(current, descriptor):
            raise TypeError(f"Cannot redefine property: {key!r}")
        self._slots[key] = descriptor

    def delete_key(self, key: Hashable) -> None:
        current = self._slots.get(key)
        if current is None:
            return
        if not current.configurable:
            raise TypeError(f"Cannot delete property {key!r} of {self.name}")
        del self._slots[key]

    def is_extensible(self) -> bool:
        return self._extensible

    def own_keys(self) -> List[Hashable]:
        return list(self._slots)

    # ------------------------------------------------------------------
    # Object integrity levels
    # ------------------------------------------------------------------

    def prevent_extensions(self) -> None:
        self._extensible = False

    def freeze(self) -> None:
        """Make the table non-extensible and every property read-only."""
        self._extensible = False
        for key, descriptor in self._slots.items():
            if isinstance(descriptor, DataDescriptor):
                self._slots[key] = dataclasses.replace(descriptor, writable=False, configurable=False)
            else:
                self._slots[key] = dataclasses.replace(descriptor, configurable=False)

    def is_frozen(self) -> bool:
        if self._extensible:
            return False
        return all(d.is_read_only and not d.configurable for d in self._slots.values())

    # ------------------------------------------------------------------
    # Property access
    # ------------------------------------------------------------------

    def get(self, key: Hashable) -> Any:
        """Read a property, calling its getter for accessor descriptors.

        Raises:
            PropertyNotFoundError: If the key is not defined
        """
        descriptor = self._slots.get(key)
        if descriptor is None:
            raise PropertyNotFoundError(self, key)
        return evaluate_descriptor(descriptor, self)

    def set(self, key: Hashable, value: Any) -> None:
        """Assign a property, honoring writability and setters."""
        descriptor = self._slots.get(key)
        if descriptor is None:
            if not self._extensible:
                raise TypeError(f"Cannot add property {key!r}, {self.name} is not extensible")
            self._slots[key] = DataDescriptor(value)
        elif isinstance(descriptor, AccessorDescriptor):
            if descriptor.set is None:
                raise TypeError(f"Cannot set property {key!r} of {self.name} which has only a getter")
            descriptor.set(self, value)
        else:
            if not descriptor.writable:
                raise TypeError(f"Cannot assign to read only property {key!r} of {self.name}")
            self._slots[key] = dataclasses.replace(descriptor, value=value)

    def keys(self) -> List[Hashable]:
        """Enumerable own keys, in definition order."""
        return [key for key, descriptor in self._slots.items() if descriptor.enumerable]

    def __getitem__(self, key: Hashable) -> Any:
        return self.get(key)

    def __setitem__(self, key: Hashable, value: Any) -> None:
        self.set(key, value)

    def __delitem__(self, key: Hashable) -> None:
        if key not in self._slots:
            raise PropertyNotFoundError(self, key)
        self.delete_key(key)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._slots

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self._slots)

    def __repr__(self) -> str:
        return f"<{self.name} keys={self.own_keys()!r}>"

    @staticmethod
    def _allows_redefinition(current: DescriptorPayload, new: DescriptorPayload) -> bool:
        if current == new:
            return True
        # A non-configurable but writable data property may still change its
        # value or drop writability.
        return (
            isinstance(current, DataDescriptor)
            and isinstance(new, DataDescriptor)
            and current.writable
            and new.enumerable == current.enumerable
            and not new.configurable
        )


class AttributeTarget:
    """Patch target over the attributes of an arbitrary Python object.

    Own attributes are the entries of the object's ``__dict__`` plus, for
    instances, every ``__slots__`` member currently holding a value.
    Inherited attributes never show up as conflicts. Python attributes carry
    no descriptor flags: plain attributes read back as writable and
    configurable, and as enumerable unless the name starts with an
    underscore. Flags on installed data descriptors are not enforced.

    Accessor descriptors are installed as ``property`` objects, which only
    take effect on classes; ``property`` objects read back as accessor
    descriptors that keep the original object, so reinstalling the record
    puts back the very same property (deleter, docstring and subclass
    included).
    """

    def __init__(self, subject: Any):
        self.subject = subject

    def _namespace(self) -> Optional[Mapping[str, Any]]:
        try:
            return vars(self.subject)
        except TypeError:
            return None

    def _slotted_classes(self) -> List[type]:
        if isinstance(self.subject, type):
            return []
        return [cls for cls in type(self.subject).__mro__ if "__slots__" in vars(cls)]

    def _slot(self, key: Hashable) -> Optional[Any]:
        """The ``__slots__`` member backing ``key`` on an instance, if any."""
        if not isinstance(key, str):
            return None
        for cls in self._slotted_classes():
            member = vars(cls).get(key)
            if isinstance(member, types.MemberDescriptorType):
                return member
        return None

    def _slot_value(self, member: Any) -> Any:
        """Value held by a slot member; _UNSET when the slot is empty."""
        try:
            return member.__get__(self.subject, type(self.subject))
        except AttributeError:
            return _UNSET

    def _inherited(self, key: str) -> bool:
        """Whether ``key`` resolves through the class rather than the object."""
        if isinstance(self.subject, type):
            return True
        return any(key in vars(cls) for cls in type(self.subject).__mro__)

    def _slot_keys(self) -> List[str]:
        keys: List[str] = []
        for cls in self._slotted_classes():
            for name, member in vars(cls).items():
                if (
                    isinstance(member, types.MemberDescriptorType)
                    and name not in keys
                    and self._slot_value(member) is not _UNSET
                ):
                    keys.append(name)
        return keys

    def read_descriptor(self, key: Hashable) -> Optional[DescriptorPayload]:
        enumerable = not str(key).startswith("_")
        namespace = self._namespace()
        if namespace is not None and key in namespace:
            raw = namespace[key]
            if isinstance(raw, property):
                return AccessorDescriptor(get=raw.fget, set=raw.fset, enumerable=enumerable, source=raw)
            return DataDescriptor(raw, enumerable=enumerable)

        member = self._slot(key)
        if member is None:
            return None
        value = self._slot_value(member)
        if value is _UNSET:
            return None
        return DataDescriptor(value, enumerable=enumerable)

    def define_descriptor(self, key: Hashable, descriptor: DescriptorPayload) -> None:
        if not isinstance(key, str):
            raise TypeError(f"Attribute names must be strings, not {type(key).__name__}")
        if isinstance(descriptor, AccessorDescriptor):
            if not isinstance(self.subject, type):
                raise TypeError(
                    f"Accessor for {key!r} needs a class owner, "
                    f"{describe_owner(self.subject)} is not a class"
                )
            if descriptor.source is not None:
                value = descriptor.source
            else:
                value = property(descriptor.get, descriptor.set)
        else:
            value = descriptor.value
        setattr(self.subject, key, value)

    def delete_key(self, key: Hashable) -> None:
        """Remove an own attribute; absent keys are ignored.

        Raises:
            AttributeError: If the object exposes ``key`` but keeps it in
                neither its ``__dict__`` nor a slot, so it cannot be removed
        """
        namespace = self._namespace()
        if namespace is not None and key in namespace:
            delattr(self.subject, key)
            return

        member = self._slot(key)
        if member is not None:
            if self._slot_value(member) is not _UNSET:
                delattr(self.subject, key)
            return

        if isinstance(key, str) and hasattr(self.subject, key) and not self._inherited(key):
            raise AttributeError(
                f"Cannot delete {key!r} from {describe_owner(self.subject)}: "
                "it is not stored on the object itself"
            )

    def is_extensible(self) -> bool:
        if isinstance(self.subject, type):
            flags = self.subject.__flags__
            return bool(flags & _HEAPTYPE) and not flags & _IMMUTABLETYPE
        return self._namespace() is not None

    def own_keys(self) -> List[Hashable]:
        namespace = self._namespace()
        keys: List[Hashable] = list(namespace) if namespace is not None else []
        keys.extend(name for name in self._slot_keys() if name not in keys)
        return keys

    def __repr__(self) -> str:
        return f"AttributeTarget({describe_owner(self.subject)})"


class ItemTarget:
    """Patch target over the items of a MutableMapping.

    Items are plain values, so only data descriptors can be installed and
    every item reads back as a writable, enumerable, configurable data
    descriptor.
    """

    def __init__(self, subject: MutableMapping):
        self.subject = subject

    def read_descriptor(self, key: Hashable) -> Optional[DescriptorPayload]:
        if key not in self.subject:
            return None
        return DataDescriptor(self.subject[key])

    def define_descriptor(self, key: Hashable, descriptor: DescriptorPayload) -> None:
        if isinstance(descriptor, AccessorDescriptor):
            raise TypeError(f"Mapping items cannot hold accessor descriptors (key {key!r})")
        self.subject[key] = descriptor.value

    def delete_key(self, key: Hashable) -> None:
        self.subject.pop(key, None)

    def is_extensible(self) -> bool:
        return True

    def own_keys(self) -> List[Hashable]:
        return list(self.subject)

    def __repr__(self) -> str:
        return f"ItemTarget({describe_owner(self.subject)})"


def resolve_target(owner: Any) -> PatchTarget:
    """Wrap ``owner`` in the PatchTarget that knows how to mutate it.

    Args:
        owner: Object to be patched

    Returns:
        The owner itself when it is an instance satisfying PatchTarget, an
        ItemTarget for mutable mappings, otherwise an AttributeTarget. Classes
        are always patched through their attributes, even when they define
        the PatchTarget methods.

    Raises:
        InvalidOwnerError: If owner is None or an immutable value
    """
    if owner is None or isinstance(owner, _VALUE_TYPES):
        raise InvalidOwnerError(owner)
    if not isinstance(owner, type) and isinstance(owner, PatchTarget):
        return owner
    if isinstance(owner, MutableMapping):
        return ItemTarget(owner)
    return AttributeTarget(owner)
