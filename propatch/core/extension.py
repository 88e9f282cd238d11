"""Single net-new named values installed on a shared owner.

An Extension is a Patch with exactly one entry whose key is derived from the
value itself, meant for adding a helper function or class to a namespace
such as ``builtins``::

    def clamp(value, low, high):
        return max(low, min(value, high))

    with Extension(clamp).create_toggle():
        clamp(5, 0, 3)   # resolvable everywhere through builtins
"""

import builtins
import inspect
from typing import Any, Hashable, Tuple

from propatch.core.descriptors import read_descriptor
from propatch.core.errors import CannotBeExtendedError, InvalidDescriptorError
from propatch.core.patch import Patch
from propatch.core.targets import resolve_target

_MISSING = object()


class Extension(Patch):
    """Patch installing one named value onto ``owner`` (``builtins`` by default).

    Attributes:
        key: Name the value is installed under
        is_function: Whether the value is a function (and not a class)
        is_class: Whether the value is a class
    """

    def __init__(self, key_or_value: Any, value: Any = _MISSING, owner: Any = builtins, **kwargs):
        """Resolve the key, check the owner allows it, then build the patch.

        Args:
            key_or_value: Either the key (when ``value`` is given) or a named
                function/class whose ``__name__`` becomes the key
            value: Value to install under ``key_or_value``
            owner: Object receiving the value
            **kwargs: Passed through to Patch

        Raises:
            InvalidDescriptorError: If no key can be determined
            CannotBeExtendedError: If owner already has a read-only property
                under the key
        """
        key, resolved = self.determine_input(key_or_value, value)

        existing = read_descriptor(owner, key, target=resolve_target(owner))
        if existing.is_read_only:
            raise CannotBeExtendedError(owner, key)

        super().__init__(owner, {key: resolved}, **kwargs)
        self.key = key
        self.is_class = inspect.isclass(resolved)
        self.is_function = callable(resolved) and not self.is_class

    @staticmethod
    def determine_input(key_or_value: Any, value: Any = _MISSING) -> Tuple[Hashable, Any]:
        """Split constructor input into (key, value).

        Raises:
            InvalidDescriptorError: If no usable key is found
        """
        if value is not _MISSING:
            if not isinstance(key_or_value, str) or not key_or_value:
                raise InvalidDescriptorError(
                    f"Extension key must be a non-empty string, got {key_or_value!r}"
                )
            return key_or_value, value

        name = getattr(key_or_value, "__name__", None)
        if not isinstance(name, str) or not name or name == "<lambda>":
            raise InvalidDescriptorError(
                f"Cannot determine an extension name for {key_or_value!r}; pass one explicitly",
                descriptor=key_or_value,
            )
        return name, key_or_value

    @property
    def value(self) -> Any:
        """The installed value as the owner exposes it."""
        return self.patch_entries[self.key].computed(self.owner)

    def __repr__(self) -> str:
        return f"<Extension {self.key!r} on {self.owner_name} applied={self.applied}>"
