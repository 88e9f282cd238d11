"""YAML state reports for patches and registries.

Turns descriptors, records, patches and whole registries into plain
dict/list structures and renders them with ruamel.yaml, so the current
patch state of a process can be dumped, diffed or attached to bug reports.
"""

from io import StringIO
from typing import Any, Dict, List, Optional, TextIO

from ruamel.yaml import YAML

from propatch.core.errors import describe_owner
from propatch.core.patch import Patch
from propatch.core.registry import PatchRegistry
from propatch.core.schema.descriptor import AccessorDescriptor, DescriptorPayload, DescriptorRecord

DEFAULT_WIDTH = 4096

_SCALARS = (str, int, float, bool, type(None))


def _create_yaml_instance(width: int = DEFAULT_WIDTH) -> YAML:
    """Create configured ruamel.yaml instance for report output.

    Returns:
        YAML instance configured to:
        - Not wrap long strings (reprs of payload values stay on one line)
        - Use block style (not flow style)
    """
    yaml = YAML()
    yaml.width = width
    yaml.default_flow_style = False
    yaml.allow_unicode = True
    return yaml


def _render(value: Any) -> Any:
    if isinstance(value, _SCALARS):
        return value
    qualname = getattr(value, "__qualname__", None)
    if callable(value) and isinstance(qualname, str):
        return f"<{type(value).__name__} {qualname}>"
    return repr(value)


def describe_descriptor(descriptor: Optional[DescriptorPayload]) -> Optional[Dict[str, Any]]:
    """Plain-data view of a descriptor payload (None stays None)."""
    if descriptor is None:
        return None
    result: Dict[str, Any] = {"kind": descriptor.kind}
    if isinstance(descriptor, AccessorDescriptor):
        result["get"] = _render(descriptor.get)
        result["set"] = _render(descriptor.set)
    else:
        result["value"] = _render(descriptor.value)
        result["writable"] = descriptor.writable
    result["enumerable"] = descriptor.enumerable
    result["configurable"] = descriptor.configurable
    return result


def describe_record(record: DescriptorRecord) -> Dict[str, Any]:
    return {
        "key": _render(record.key),
        "existed": record.existed,
        "read_only": record.is_read_only,
        "descriptor": describe_descriptor(record.descriptor),
    }


def describe_patch(patch: Patch) -> Dict[str, Any]:
    """Summarize one patch: state flags, entries and what they overwrite.

    Args:
        patch: Patch to describe

    Returns:
        Dict with owner, applied, fully_patched, partially_patched and one
        item per entry (with its conflict record when the key pre-existed)
    """
    installed = set(patch.installed_keys)
    entries: List[Dict[str, Any]] = []
    for key, entry in patch.entries:
        item = {
            "key": _render(key),
            "installed": key in installed,
            "read_only": entry.is_read_only,
            "descriptor": describe_descriptor(entry.descriptor),
        }
        conflict = patch.patch_conflicts.get(key)
        if conflict is not None:
            item["replaces"] = describe_descriptor(conflict.descriptor)
        entries.append(item)

    return {
        "owner": patch.owner_name,
        "applied": patch.applied,
        "fully_patched": patch.is_fully_patched,
        "partially_patched": patch.is_partially_patched,
        "entries": entries,
    }


def describe_registry(registry: PatchRegistry, owners: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
    """Describe every patch in ``registry``, grouped by owner.

    Args:
        registry: Registry to walk
        owners: Restrict to these owners (all registered owners by default)
    """
    selected = registry.owners() if owners is None else owners
    return [
        {
            "owner": describe_owner(owner),
            "patches": [describe_patch(patch) for patch in registry.for_owner(owner)],
        }
        for owner in selected
    ]


def dump_report(data: Any, stream: Optional[TextIO] = None, width: int = DEFAULT_WIDTH) -> str:
    """Render ``data`` as YAML.

    Args:
        data: Output of one of the describe_* functions
        stream: Optional stream to also write the YAML to
        width: Line width before ruamel.yaml wraps

    Returns:
        The rendered YAML text
    """
    yaml = _create_yaml_instance(width)
    buffer = StringIO()
    yaml.dump(data, buffer)
    text = buffer.getvalue()
    if stream is not None:
        stream.write(text)
    return text
