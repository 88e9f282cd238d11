"""Exceptions raised by the patch engine."""

from typing import Any, Hashable, List, Optional


def describe_owner(owner: Any) -> str:
    """Short human-readable name for an owner in error messages.

    Uses ``__name__`` for modules, classes and functions, a ``name``
    attribute when one is a string (e.g. PropertyTable), and the class
    name otherwise.
    """
    name = getattr(owner, "__name__", None)
    if isinstance(name, str):
        return name
    name = getattr(owner, "name", None)
    if isinstance(name, str) and name:
        return name
    return type(owner).__name__


class PatchError(Exception):
    """Base class for all patch engine errors."""


class InvalidOwnerError(PatchError, TypeError):
    """Raised when a patch target is not a referenceable, mutable object.

    Raised at construction time; the engine never recovers from it.

    Attributes:
        owner: The rejected owner
    """

    def __init__(self, owner: Any) -> None:
        super().__init__(
            f"Cannot patch an owner of type {type(owner).__name__}; "
            "a mutable object, class, module or mapping is required"
        )
        self.owner = owner


class InvalidDescriptorError(PatchError, ValueError):
    """Raised when a descriptor cannot be built or a payload is malformed.

    This is always raised before any mutation happens, so there is no
    partial state to unwind.

    Attributes:
        message: Description of the problem
        descriptor: The offending descriptor-shaped value (optional)
        key: The entry key the descriptor was supplied for (optional)
    """

    def __init__(
        self, message: str, descriptor: Optional[Any] = None, key: Optional[Hashable] = None
    ) -> None:
        super().__init__(message)
        self.descriptor = descriptor
        self.key = key


class PatchApplyError(PatchError):
    """Raised when installing a single key fails during ``Patch.apply()``.

    Keys installed earlier in the same call stay installed. The original
    failure (usually a TypeError or AttributeError from the target) is
    chained as ``__cause__``.

    Attributes:
        message: Description of the failure
        key: The key that could not be installed
        owner: The object being patched
        result: ApplyResult summarizing the failed call (optional)
    """

    def __init__(self, message: str, key: Hashable, owner: Any, result: Optional[Any] = None) -> None:
        super().__init__(message)
        self.key = key
        self.owner = owner
        self.result = result


class PatchRevertError(PatchError):
    """Raised when one or more keys could not be restored by ``Patch.revert()``.

    Every other key is still reverted before this is raised.

    Attributes:
        message: Description of the failure
        keys: Keys that are still installed on the owner
        owner: The object being patched
        failures: (key, exception) pairs, in entry order
        result: RevertResult summarizing the failed call (optional)
    """

    def __init__(
        self,
        message: str,
        keys: List[Hashable],
        owner: Any,
        failures: List[Any],
        result: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.keys = keys
        self.owner = owner
        self.failures = failures
        self.result = result


class PropertyNotFoundError(PatchError, LookupError):
    """Raised by diagnostic paths when an expected property is missing.

    Attributes:
        owner: The object that was inspected
        key: The missing key
    """

    def __init__(self, owner: Any, key: Hashable) -> None:
        super().__init__(f"{describe_owner(owner)} does not have a property named {key!r}.")
        self.owner = owner
        self.key = key


class CannotBeExtendedError(PatchError):
    """Raised when an extension would replace a read-only property.

    Attributes:
        owner: The object that refused the extension
        key: The protected key
    """

    def __init__(self, owner: Any, key: Hashable) -> None:
        super().__init__(f"{describe_owner(owner)} disallows tampering with {key!r}.")
        self.owner = owner
        self.key = key
