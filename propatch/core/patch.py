"""Reversible property patches.

A Patch binds one owner to a set of key -> descriptor entries. Constructing
it only records what the owner already has (via ConflictLedger); ``apply()``
installs the entries and ``revert()`` puts the owner back exactly as it was:
overwritten keys get their captured descriptor back, new keys are deleted.

Example::

    target = PropertyTable({"x": 1})
    patch = Patch(target, {"x": 2, "greet": lambda: "hi"})

    patch.apply()
    target["x"], target["greet"]()     # (2, "hi")

    patch.revert()
    target["x"], "greet" in target     # (1, False)

Entries may be grouped under MUTABLY_HIDDEN or IMMUTABLY_HIDDEN to force the
same flags onto several entries::

    Patch(SomeClass, {
        MUTABLY_HIDDEN: {"_cache": {}},
        "describe": describe,
    })

Patches are not reentrant: a payload function must not revert the patch that
installed it while it is running.
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, List, Mapping, Optional, Tuple

from propatch.core.descriptors import normalize_descriptor
from propatch.core.errors import PatchApplyError, PatchRevertError, describe_owner
from propatch.core.ledger import ConflictLedger
from propatch.core.registry import PatchRegistry, default_registry
from propatch.core.schema.descriptor import (
    AccessorDescriptor,
    DataDescriptor,
    DescriptorPayload,
    DescriptorRecord,
    evaluate_descriptor,
)
from propatch.core.targets import resolve_target

logger = logging.getLogger(__name__)

Condition = Callable[[], bool]

# Errors a target raises when it refuses a mutation
_TARGET_ERRORS = (TypeError, AttributeError, ValueError)


@dataclass(frozen=True)
class GroupMarker:
    """Entry key that forces descriptor flags onto a nested group of entries.

    Attributes:
        name: Marker name, for display
        enumerable: Flag forced onto every entry in the group
        configurable: Flag forced onto every entry in the group
        writable: Flag forced onto data entries in the group
    """

    name: str
    enumerable: bool
    configurable: bool
    writable: bool

    def shape(self, descriptor: DescriptorPayload) -> DescriptorPayload:
        if isinstance(descriptor, AccessorDescriptor):
            return dataclasses.replace(
                descriptor, enumerable=self.enumerable, configurable=self.configurable
            )
        return dataclasses.replace(
            descriptor,
            enumerable=self.enumerable,
            configurable=self.configurable,
            writable=self.writable,
        )

    def __repr__(self) -> str:
        return self.name


MUTABLY_HIDDEN = GroupMarker("MUTABLY_HIDDEN", enumerable=False, configurable=True, writable=True)
IMMUTABLY_HIDDEN = GroupMarker("IMMUTABLY_HIDDEN", enumerable=False, configurable=False, writable=False)


@dataclass(frozen=True)
class PatchEntry:
    """One key -> descriptor installation within a Patch.

    Attributes:
        key: Property key on the owner
        descriptor: Payload to install
        condition: Optional zero-argument predicate; the entry is skipped by
            ``apply()`` while it returns False
    """

    key: Hashable
    descriptor: DescriptorPayload
    condition: Optional[Condition] = None

    @property
    def is_allowed(self) -> bool:
        return self.condition() if self.condition is not None else True

    @property
    def is_data(self) -> bool:
        return isinstance(self.descriptor, DataDescriptor)

    @property
    def is_accessor(self) -> bool:
        return isinstance(self.descriptor, AccessorDescriptor)

    @property
    def is_read_only(self) -> bool:
        return self.descriptor.is_read_only

    def computed(self, owner: Any) -> Any:
        """Value the owner exposes for this entry once installed."""
        return evaluate_descriptor(self.descriptor, owner)

    def __repr__(self) -> str:
        kind = "Data" if self.is_data else "Accessor"
        read_only = " [ReadOnly]" if self.is_read_only else ""
        return f"PatchEntry<{self.key!r} {kind}{read_only}>"


def _expand_entries(
    entries: Mapping[Hashable, Any],
    condition: Optional[Condition],
    conditions: Mapping[Hashable, Condition],
) -> Dict[Hashable, PatchEntry]:
    expanded: Dict[Hashable, PatchEntry] = {}

    def add(key: Hashable, raw: Any, marker: Optional[GroupMarker] = None) -> None:
        descriptor = normalize_descriptor(raw, key=key)
        if marker is not None:
            descriptor = marker.shape(descriptor)
        expanded[key] = PatchEntry(key, descriptor, conditions.get(key, condition))

    for key, raw in entries.items():
        if isinstance(key, GroupMarker):
            for group_key, group_raw in raw.items():
                add(group_key, group_raw, key)
        else:
            add(key, raw)
    return expanded


@dataclass
class ApplyResult:
    """Summary of one ``Patch.apply()`` call.

    Attributes:
        patches: Number of entries in the patch
        applied: Keys installed by this call, in entry order
        skipped: Keys left out because their condition was false
        errors: (key, exception) pairs for keys the owner refused
        not_applied: Keys not carrying the payload once the call finished
    """

    patches: int
    applied: List[Hashable] = field(default_factory=list)
    skipped: List[Hashable] = field(default_factory=list)
    errors: List[Tuple[Hashable, Exception]] = field(default_factory=list)
    not_applied: List[Hashable] = field(default_factory=list)


@dataclass
class RevertResult:
    """Summary of one ``Patch.revert()`` call.

    Attributes:
        patches: Number of entries in the patch
        reverted: Net-new keys deleted from the owner
        restored: Overwritten keys given their captured descriptor back
        errors: (key, exception) pairs for keys that could not be reverted
        still_applied: Keys still carrying the payload once the call finished
    """

    patches: int
    reverted: List[Hashable] = field(default_factory=list)
    restored: List[Hashable] = field(default_factory=list)
    errors: List[Tuple[Hashable, Exception]] = field(default_factory=list)
    still_applied: List[Hashable] = field(default_factory=list)


class Patch:
    """A reversible bundle of descriptor installations on one owner.

    Two states, unapplied (initial) and applied; ``apply()`` and
    ``revert()`` are the only transitions and both are idempotent.

    Attributes:
        owner: The object being patched (referenced, never copied)
        target: PatchTarget used to mutate the owner
        patch_entries: key -> PatchEntry to install
        patch_conflicts: key -> DescriptorRecord for keys that existed on the
            owner when the patch was constructed
        prevent_revert: Default for toggles created by ``create_toggle()``
        registry: PatchRegistry this patch is registered in
    """

    MUTABLY_HIDDEN = MUTABLY_HIDDEN
    IMMUTABLY_HIDDEN = IMMUTABLY_HIDDEN

    def __init__(
        self,
        owner: Any,
        entries: Mapping[Hashable, Any],
        *,
        condition: Optional[Condition] = None,
        conditions: Optional[Mapping[Hashable, Condition]] = None,
        prevent_revert: bool = False,
        registry: Optional[PatchRegistry] = None,
    ):
        """Capture conflicts and register the patch; the owner is not touched.

        Args:
            owner: Object to patch
            entries: key -> descriptor, descriptor-shaped mapping, or plain
                value (plain values become writable data descriptors)
            condition: Default predicate gating every entry at apply time
            conditions: Per-key predicates overriding ``condition``
            prevent_revert: Default ``prevent_revert`` for created toggles
            registry: Registry to join (``default_registry`` when omitted)

        Raises:
            InvalidOwnerError: If owner is not a patchable object
            InvalidDescriptorError: If an entry is a malformed descriptor
        """
        self.target = resolve_target(owner)
        self.owner = owner
        self.patch_entries = _expand_entries(entries, condition, conditions or {})
        self.patch_conflicts: Dict[Hashable, DescriptorRecord] = ConflictLedger.capture(
            owner, self.patch_entries, target=self.target
        ).conflicts
        self.prevent_revert = prevent_revert
        self._applied = False
        self._installed: List[Hashable] = []

        self.registry = registry if registry is not None else default_registry
        self.registry.register(self)
        logger.debug(
            f"Created patch for {self.owner_name} with {len(self.patch_entries)} entries "
            f"({len(self.patch_conflicts)} conflicts)"
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def applied(self) -> bool:
        return self._applied

    @property
    def owner_name(self) -> str:
        return describe_owner(self.owner)

    @property
    def patch_count(self) -> int:
        return len(self.patch_entries)

    @property
    def installed_keys(self) -> List[Hashable]:
        """Keys currently carrying this patch's payload, in install order."""
        return list(self._installed)

    @property
    def is_partially_patched(self) -> bool:
        return bool(self._installed)

    @property
    def is_fully_patched(self) -> bool:
        return len(self._installed) == len(self.patch_entries)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def entries(self) -> List[Tuple[Hashable, PatchEntry]]:
        return list(self.patch_entries.items())

    @property
    def patches(self) -> List[Tuple[Hashable, DescriptorRecord]]:
        """(key, record) pairs describing the payload this patch installs."""
        return [
            (key, DescriptorRecord(owner=self.owner, key=key, descriptor=entry.descriptor, existed=True))
            for key, entry in self.patch_entries.items()
        ]

    @property
    def conflicts(self) -> List[Tuple[Hashable, DescriptorRecord]]:
        """(key, record) pairs for descriptors this patch overwrites."""
        return list(self.patch_conflicts.items())

    @property
    def computed(self) -> Dict[Hashable, Any]:
        """key -> value each entry exposes on the owner once installed."""
        return {key: entry.computed(self.owner) for key, entry in self.patch_entries.items()}

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def apply(self, callback: Optional[Callable[[ApplyResult], None]] = None) -> ApplyResult:
        """Install every allowed entry onto the owner.

        No-op when already applied. Entries whose condition is false are
        skipped. If a key cannot be installed, keys installed earlier in this
        call stay installed, ``applied`` stays False, and a later call resumes
        with the remaining keys.

        Args:
            callback: Called with the result before this returns or raises

        Returns:
            ApplyResult for this call

        Raises:
            PatchApplyError: If the owner refuses one of the keys; its
                ``result`` holds the partial ApplyResult
        """
        result = ApplyResult(patches=self.patch_count)
        if self._applied:
            return self._report(result, callback)

        for key, entry in self.patch_entries.items():
            if key in self._installed:
                continue
            if not entry.is_allowed:
                logger.debug(f"Skipping {key!r} on {self.owner_name}: condition not met")
                result.skipped.append(key)
                continue
            try:
                self.target.define_descriptor(key, entry.descriptor)
            except _TARGET_ERRORS as exc:
                result.errors.append((key, exc))
                result.not_applied = self._not_installed()
                self._report(result, callback)
                raise PatchApplyError(
                    f"Could not apply patch for key {key!r} on {self.owner_name}: {exc}",
                    key=key,
                    owner=self.owner,
                    result=result,
                ) from exc
            self._installed.append(key)
            result.applied.append(key)

        self._applied = True
        result.not_applied = self._not_installed()
        logger.debug(f"Applied {len(self._installed)}/{self.patch_count} entries to {self.owner_name}")
        return self._report(result, callback)

    def revert(self, callback: Optional[Callable[[RevertResult], None]] = None) -> RevertResult:
        """Restore the owner to its shape before ``apply()``.

        Overwritten keys get their captured descriptor back; keys that did
        not exist before are deleted. No-op when nothing is installed.

        Args:
            callback: Called with the result before this returns or raises

        Returns:
            RevertResult for this call

        Raises:
            PatchRevertError: If some keys could not be restored. All other
                keys are still reverted; the failed ones stay installed and
                are retried by the next call.
        """
        result = RevertResult(patches=self.patch_count)
        if not self._applied and not self._installed:
            return self._report(result, callback)

        for key in list(self._installed):
            record = self.patch_conflicts.get(key)
            try:
                if record is not None:
                    self.target.define_descriptor(key, record.descriptor)
                else:
                    self.target.delete_key(key)
            except _TARGET_ERRORS as exc:
                logger.warning(f"Failed to revert {key!r} on {self.owner_name}: {exc}")
                result.errors.append((key, exc))
                continue
            self._installed.remove(key)
            (result.restored if record is not None else result.reverted).append(key)

        self._applied = False
        result.still_applied = list(self._installed)
        self._report(result, callback)
        if result.errors:
            failed = [key for key, _ in result.errors]
            raise PatchRevertError(
                f"Failed to revert {len(failed)} key(s) on {self.owner_name}: {failed}",
                keys=failed,
                owner=self.owner,
                failures=list(result.errors),
                result=result,
            ) from result.errors[0][1]
        logger.debug(f"Reverted patch on {self.owner_name}")
        return result

    def _not_installed(self) -> List[Hashable]:
        return [key for key in self.patch_entries if key not in self._installed]

    @staticmethod
    def _report(result, callback):
        if callback is not None:
            callback(result)
        return result

    # ------------------------------------------------------------------
    # Composition and lifecycle
    # ------------------------------------------------------------------

    def create_toggle(self, prevent_revert: Optional[bool] = None) -> "PatchToggle":
        """Create a PatchToggle coordinating this patch."""
        from propatch.core.toggle import PatchToggle

        if prevent_revert is None:
            prevent_revert = self.prevent_revert
        return PatchToggle(self, prevent_revert)

    def release(self) -> None:
        """Remove this patch from its registry; it is not reverted."""
        self.registry.unregister(self)

    @classmethod
    def enable_for(cls, owner: Any, registry: Optional[PatchRegistry] = None) -> None:
        """Apply every registered patch for ``owner``, in registration order."""
        (registry if registry is not None else default_registry).enable_for(owner)

    @classmethod
    def disable_for(cls, owner: Any, registry: Optional[PatchRegistry] = None) -> None:
        """Revert every registered patch for ``owner``, in registration order."""
        (registry if registry is not None else default_registry).disable_for(owner)

    def __repr__(self) -> str:
        keys = list(self.patch_entries)
        return f"<Patch {self.owner_name} keys={keys!r} applied={self._applied}>"
