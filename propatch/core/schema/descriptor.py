"""Descriptor payloads and point-in-time descriptor records.

A descriptor is the record governing how one property behaves on its owner.
There are exactly two shapes:

- DataDescriptor: holds a ``value`` plus a ``writable`` flag
- AccessorDescriptor: holds a ``get`` and/or ``set`` function

Both carry ``enumerable`` and ``configurable`` flags. Together they form the
``DescriptorPayload`` tagged union that every other part of the engine works
with, so the shape of a payload is decided once, when it is built, and never
inferred again at mutation time.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, Hashable, Optional, Union

from propatch.core.errors import InvalidDescriptorError, PropertyNotFoundError


@dataclass(frozen=True)
class DataDescriptor:
    """Descriptor holding a plain value.

    Attributes:
        value: The property value
        writable: Whether the value may be reassigned
        enumerable: Whether the property shows up when listing keys
        configurable: Whether the property may be redefined or deleted
    """

    value: Any = None
    writable: bool = True
    enumerable: bool = True
    configurable: bool = True

    kind: ClassVar[str] = "data"

    @property
    def is_read_only(self) -> bool:
        return not self.writable or not self.configurable

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "writable": self.writable,
            "enumerable": self.enumerable,
            "configurable": self.configurable,
        }


@dataclass(frozen=True)
class AccessorDescriptor:
    """Descriptor backed by getter and/or setter functions.

    The getter is called with the object the property is read through; the
    setter is called with that object and the new value.

    Attributes:
        get: Getter function, or None for a write-only property
        set: Setter function, or None for a read-only property
        enumerable: Whether the property shows up when listing keys
        configurable: Whether the property may be redefined or deleted
        source: The attribute object this descriptor was read from (e.g. a
            ``property`` with a deleter or docstring), reinstalled as-is by
            targets that understand it. Ignored by equality.
    """

    get: Optional[Callable[[Any], Any]] = None
    set: Optional[Callable[[Any, Any], None]] = None
    enumerable: bool = True
    configurable: bool = True
    source: Any = field(default=None, compare=False, repr=False)

    kind: ClassVar[str] = "accessor"

    @property
    def is_read_only(self) -> bool:
        return not self.configurable

    def to_dict(self) -> Dict[str, Any]:
        return {
            "get": self.get,
            "set": self.set,
            "enumerable": self.enumerable,
            "configurable": self.configurable,
        }


DescriptorPayload = Union[DataDescriptor, AccessorDescriptor]


def evaluate_descriptor(descriptor: DescriptorPayload, owner: Any) -> Any:
    """Return the value ``owner`` would expose through ``descriptor``."""
    if isinstance(descriptor, AccessorDescriptor):
        if descriptor.get is None:
            return None
        return descriptor.get(owner)
    return descriptor.value


@dataclass(frozen=True)
class DescriptorRecord:
    """Immutable snapshot of one property's descriptor on its owner.

    Records are captured once and never mutated; a later patch cycle simply
    produces a new record.

    Attributes:
        owner: The object the descriptor was read from
        key: The property key
        descriptor: The captured payload, or None when the key was absent
        existed: Whether the key had a descriptor at capture time
    """

    owner: Any
    key: Hashable
    descriptor: Optional[DescriptorPayload]
    existed: bool

    def __post_init__(self):
        if self.existed != (self.descriptor is not None):
            raise InvalidDescriptorError(
                f"Record for {self.key!r} must carry a descriptor exactly when the key existed",
                descriptor=self.descriptor,
                key=self.key,
            )

    @property
    def is_data(self) -> bool:
        return isinstance(self.descriptor, DataDescriptor)

    @property
    def is_accessor(self) -> bool:
        return isinstance(self.descriptor, AccessorDescriptor)

    @property
    def is_read_only(self) -> bool:
        return self.existed and self.descriptor.is_read_only

    @property
    def kind(self) -> Optional[str]:
        """Either "data" or "accessor"; None for a key that did not exist."""
        if self.descriptor is None:
            return None
        return self.descriptor.kind

    def computed(self) -> Any:
        """Evaluate the recorded property against its owner.

        Raises:
            PropertyNotFoundError: If the key did not exist when captured
        """
        if not self.existed:
            raise PropertyNotFoundError(self.owner, self.key)
        return evaluate_descriptor(self.descriptor, self.owner)
