"""Descriptor classification and builder utilities.

Pure helpers for constructing well-formed descriptor payloads and for
deciding whether an arbitrary value is descriptor-shaped. Patch uses
``normalize_descriptor`` to turn caller payloads into the typed
DataDescriptor / AccessorDescriptor union before anything is mutated.

Descriptor-shaped mappings use the keys ``get``, ``set``, ``value``,
``writable``, ``configurable`` and ``enumerable``::

    {"value": 42, "writable": False}            # data descriptor
    {"get": lambda owner: 42, "enumerable": False}  # accessor descriptor
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, FrozenSet, Hashable, Optional

from propatch.core.errors import InvalidDescriptorError
from propatch.core.schema.descriptor import (
    AccessorDescriptor,
    DataDescriptor,
    DescriptorPayload,
    DescriptorRecord,
)
from propatch.core.targets import PatchTarget, resolve_target

BASE_KEYS: FrozenSet[str] = frozenset({"configurable", "enumerable"})
DATA_KEYS: FrozenSet[str] = frozenset({"value", "writable"})
ACCESSOR_KEYS: FrozenSet[str] = frozenset({"get", "set"})
DESCRIPTOR_KEYS: FrozenSet[str] = BASE_KEYS | DATA_KEYS | ACCESSOR_KEYS


@dataclass(frozen=True)
class DescriptorStats:
    """Everything ``descriptor_stats`` found out about a candidate.

    Attributes:
        confidence: 0.0-1.0 ratio of how likely the candidate is meant to be
            a descriptor. 1.0 means a valid descriptor with no stray keys;
            values in between mean it has descriptor keys mixed with others.
        is_accessor: True if usable as an accessor descriptor
        is_data: True if usable as a data descriptor
        is_valid: True if the candidate is a valid descriptor
        has_base_keys: True if ``configurable``/``enumerable`` are present
            and boolean
        has_accessor_keys: True if ``get``/``set`` are present and callable
            or None
        has_data_keys: True if ``value``/``writable`` are present and
            ``writable``, when given, is boolean
    """

    confidence: float = 0.0
    is_accessor: bool = False
    is_data: bool = False
    is_valid: bool = False
    has_base_keys: bool = False
    has_accessor_keys: bool = False
    has_data_keys: bool = False


def _is_flag(value: Any) -> bool:
    return isinstance(value, bool)


def _is_function_or_none(value: Any) -> bool:
    return value is None or callable(value)


def descriptor_stats(candidate: Any) -> DescriptorStats:
    """Inspect ``candidate`` and report how descriptor-like it is.

    Typed payloads are always fully valid. Mappings are judged by their keys
    and value types; anything else scores zero.
    """
    if isinstance(candidate, DataDescriptor):
        return DescriptorStats(1.0, is_data=True, is_valid=True, has_base_keys=True, has_data_keys=True)
    if isinstance(candidate, AccessorDescriptor):
        return DescriptorStats(
            1.0, is_accessor=True, is_valid=True, has_base_keys=True, has_accessor_keys=True
        )
    if not isinstance(candidate, Mapping) or not candidate:
        return DescriptorStats()

    keys = set(candidate)
    known = keys & DESCRIPTOR_KEYS

    has_base_keys = bool(keys & BASE_KEYS) and all(_is_flag(candidate[k]) for k in keys & BASE_KEYS)
    has_accessor_keys = bool(keys & ACCESSOR_KEYS) and all(
        _is_function_or_none(candidate[k]) for k in keys & ACCESSOR_KEYS
    )
    has_data_keys = bool(keys & DATA_KEYS) and _is_flag(candidate.get("writable", True))

    base_ok = not (keys & BASE_KEYS) or has_base_keys
    shape_ok = known == keys and base_ok
    is_data = shape_ok and has_data_keys and not keys & ACCESSOR_KEYS
    is_accessor = shape_ok and has_accessor_keys and not keys & DATA_KEYS
    is_valid = is_data != is_accessor

    if is_valid:
        confidence = 1.0
    elif (has_data_keys or has_accessor_keys) and not (keys & DATA_KEYS and keys & ACCESSOR_KEYS):
        # Usable as a descriptor, but stray keys make the intent doubtful
        confidence = len(known) / len(keys)
    else:
        confidence = 0.0

    return DescriptorStats(
        confidence=confidence,
        is_accessor=is_accessor,
        is_data=is_data,
        is_valid=is_valid,
        has_base_keys=has_base_keys,
        has_accessor_keys=has_accessor_keys,
        has_data_keys=has_data_keys,
    )


def is_data_descriptor(candidate: Any) -> bool:
    """True iff ``candidate`` is a valid descriptor with value/writable keys."""
    return descriptor_stats(candidate).is_data


def is_accessor_descriptor(candidate: Any) -> bool:
    """True iff ``candidate`` is a valid descriptor with get/set keys."""
    return descriptor_stats(candidate).is_accessor


def is_descriptor(candidate: Any) -> bool:
    """True iff ``candidate`` is a typed payload or a well-formed descriptor mapping.

    A well-formed mapping has a non-empty key set drawn only from
    ``DESCRIPTOR_KEYS``, boolean flags, callable (or None) accessors, and
    classifies as exactly one of data or accessor.
    """
    return descriptor_stats(candidate).is_valid


def build_accessor_descriptor(
    getter: Optional[Callable[[Any], Any]] = None,
    setter: Optional[Callable[[Any, Any], None]] = None,
    *,
    configurable: bool = True,
    enumerable: bool = True,
) -> AccessorDescriptor:
    """Create an accessor descriptor.

    Args:
        getter: Called with the owner when the property is read
        setter: Called with the owner and new value when the property is assigned
        configurable: Whether the property may later be redefined or deleted
        enumerable: Whether the property is listed among the owner's keys

    Returns:
        AccessorDescriptor with the given functions and flags

    Raises:
        InvalidDescriptorError: If neither getter nor setter is callable, or
            a supplied one is not callable
    """
    if not callable(getter) and not callable(setter):
        raise InvalidDescriptorError("An accessor descriptor needs a callable getter or setter")
    for role, fn in (("getter", getter), ("setter", setter)):
        if not _is_function_or_none(fn):
            raise InvalidDescriptorError(f"Accessor {role} must be callable, got {type(fn).__name__}")
    return AccessorDescriptor(get=getter, set=setter, enumerable=enumerable, configurable=configurable)


def build_data_descriptor(
    value: Any = None,
    writable: bool = True,
    *,
    configurable: bool = True,
    enumerable: bool = True,
) -> DataDescriptor:
    """Create a data descriptor holding ``value``."""
    return DataDescriptor(value=value, writable=writable, enumerable=enumerable, configurable=configurable)


def normalize_descriptor(candidate: Any, key: Optional[Hashable] = None) -> DescriptorPayload:
    """Turn a caller payload into a typed descriptor.

    - typed payloads are returned unchanged
    - descriptor-shaped mappings become typed payloads, missing flags
      defaulting to True
    - mappings built only from descriptor key names that are nonetheless
      malformed (e.g. ``{"get": 5}`` or ``{"value": 1, "get": f}``) raise
    - anything else becomes a data descriptor holding the value; wrap a
      mapping in ``build_data_descriptor`` to install it as a plain value

    Raises:
        InvalidDescriptorError: For malformed descriptor-shaped mappings
    """
    if isinstance(candidate, (DataDescriptor, AccessorDescriptor)):
        return candidate

    if isinstance(candidate, Mapping) and candidate:
        stats = descriptor_stats(candidate)
        if stats.is_data:
            return build_data_descriptor(
                candidate.get("value"),
                candidate.get("writable", True),
                configurable=candidate.get("configurable", True),
                enumerable=candidate.get("enumerable", True),
            )
        if stats.is_accessor:
            try:
                return build_accessor_descriptor(
                    candidate.get("get"),
                    candidate.get("set"),
                    configurable=candidate.get("configurable", True),
                    enumerable=candidate.get("enumerable", True),
                )
            except InvalidDescriptorError as exc:
                exc.key = key
                exc.descriptor = candidate
                raise
        if set(candidate) <= DESCRIPTOR_KEYS:
            label = f" for {key!r}" if key is not None else ""
            raise InvalidDescriptorError(
                f"Malformed descriptor{label}: {sorted(candidate)}", descriptor=candidate, key=key
            )

    return build_data_descriptor(candidate)


def read_descriptor(owner: Any, key: Hashable, target: Optional[PatchTarget] = None) -> DescriptorRecord:
    """Capture the live descriptor for ``key`` on ``owner``.

    Never raises for a missing key: the record simply has ``existed=False``
    and no descriptor.

    Args:
        owner: Object to read from
        key: Property key
        target: Already-resolved target for owner (resolved when omitted)

    Raises:
        InvalidOwnerError: If owner cannot be resolved to a target
    """
    if target is None:
        target = resolve_target(owner)
    descriptor = target.read_descriptor(key)
    return DescriptorRecord(owner=owner, key=key, descriptor=descriptor, existed=descriptor is not None)
