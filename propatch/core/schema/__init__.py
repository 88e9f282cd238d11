"""
Core schema definitions for descriptor payloads and descriptor records.

These dataclasses form the foundation of the patch engine.
"""

from propatch.core.schema.descriptor import (
    AccessorDescriptor,
    DataDescriptor,
    DescriptorPayload,
    DescriptorRecord,
    evaluate_descriptor,
)

__all__ = [
    "AccessorDescriptor",
    "DataDescriptor",
    "DescriptorPayload",
    "DescriptorRecord",
    "evaluate_descriptor",
]
