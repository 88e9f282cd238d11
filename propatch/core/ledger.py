"""Conflict ledger: what a patch is about to overwrite.

Before a Patch touches its owner, the ledger reads every payload key once and
keeps a DescriptorRecord for each key that already exists. Those records are
what ``Patch.revert()`` reinstalls.
"""

import logging
from typing import Any, Dict, Hashable, Iterable, List, Optional

from propatch.core.descriptors import read_descriptor
from propatch.core.errors import PropertyNotFoundError
from propatch.core.schema.descriptor import DescriptorRecord
from propatch.core.targets import PatchTarget, resolve_target

logger = logging.getLogger(__name__)


class ConflictLedger:
    """Pre-mutation snapshot of the keys a patch will touch.

    Example:
        >>> table = PropertyTable({"x": 1})
        >>> ledger = ConflictLedger.capture(table, ["x", "y"])
        >>> ledger.has_conflict("x"), ledger.has_conflict("y")
        (True, False)
        >>> ledger.missing_keys
        ['y']
    """

    def __init__(self, owner: Any, keys: Iterable[Hashable], target: Optional[PatchTarget] = None):
        """Initialize the ledger without reading anything yet.

        Args:
            owner: Object about to be patched
            keys: Keys the patch will install
            target: Already-resolved target for owner (resolved when omitted)
        """
        self.owner = owner
        self.keys: List[Hashable] = list(keys)
        self.target = target if target is not None else resolve_target(owner)
        self.conflicts: Dict[Hashable, DescriptorRecord] = {}
        self.evaluated = False

    @classmethod
    def capture(
        cls, owner: Any, keys: Iterable[Hashable], target: Optional[PatchTarget] = None
    ) -> "ConflictLedger":
        """Build a ledger and evaluate it immediately."""
        ledger = cls(owner, keys, target)
        ledger.evaluate()
        return ledger

    def evaluate(self) -> Dict[Hashable, DescriptorRecord]:
        """Read every key and record those that already exist.

        Returns:
            Mapping of key -> DescriptorRecord for existing keys, in key order
        """
        conflicts = {}
        for key in self.keys:
            record = read_descriptor(self.owner, key, target=self.target)
            if record.existed:
                conflicts[key] = record
        self.conflicts = conflicts
        self.evaluated = True
        if conflicts:
            logger.debug(f"Captured {len(conflicts)} conflicting key(s): {list(conflicts)}")
        return conflicts

    def has_conflict(self, key: Hashable) -> bool:
        return key in self.conflicts

    @property
    def missing_keys(self) -> List[Hashable]:
        """Keys that did not exist on the owner when evaluated."""
        return [key for key in self.keys if key not in self.conflicts]

    def require(self, key: Hashable) -> DescriptorRecord:
        """Return the captured record for ``key``.

        Raises:
            PropertyNotFoundError: If the key did not exist on the owner
        """
        if key not in self.conflicts:
            raise PropertyNotFoundError(self.owner, key)
        return self.conflicts[key]

    def __contains__(self, key: Hashable) -> bool:
        return key in self.conflicts

    def __len__(self) -> int:
        return len(self.conflicts)
