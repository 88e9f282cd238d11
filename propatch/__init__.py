"""
propatch: reversible property patches

Installs named sets of data or accessor descriptors onto shared objects
(classes, modules, mappings or in-memory property tables), remembers every
descriptor it overwrote, and restores the owner to its exact prior shape on
demand.
"""

from propatch.core.descriptors import (
    build_accessor_descriptor,
    build_data_descriptor,
    is_accessor_descriptor,
    is_data_descriptor,
    is_descriptor,
    read_descriptor,
)
from propatch.core.errors import (
    CannotBeExtendedError,
    InvalidDescriptorError,
    InvalidOwnerError,
    PatchApplyError,
    PatchError,
    PatchRevertError,
    PropertyNotFoundError,
)
from propatch.core.extension import Extension
from propatch.core.patch import IMMUTABLY_HIDDEN, MUTABLY_HIDDEN, ApplyResult, Patch, RevertResult
from propatch.core.registry import PatchRegistry, default_registry
from propatch.core.targets import PropertyTable
from propatch.core.toggle import PatchToggle

__version__ = "1.0.0"

__all__ = [
    "__version__",
    "Patch",
    "PatchToggle",
    "ApplyResult",
    "RevertResult",
    "PatchRegistry",
    "Extension",
    "PropertyTable",
    "MUTABLY_HIDDEN",
    "IMMUTABLY_HIDDEN",
    "default_registry",
    "build_accessor_descriptor",
    "build_data_descriptor",
    "is_accessor_descriptor",
    "is_data_descriptor",
    "is_descriptor",
    "read_descriptor",
    "PatchError",
    "InvalidOwnerError",
    "InvalidDescriptorError",
    "PatchApplyError",
    "PatchRevertError",
    "PropertyNotFoundError",
    "CannotBeExtendedError",
]
