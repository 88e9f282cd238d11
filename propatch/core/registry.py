"""Registry of patches grouped by the owner they target.

Every Patch registers itself on construction so that all patches touching
one owner can be enabled or disabled together. Owners are tracked by
identity, so unhashable owners (dicts, instances defining ``__eq__``) work.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Tuple

if TYPE_CHECKING:
    from propatch.core.patch import Patch

logger = logging.getLogger(__name__)


class PatchRegistry:
    """Ordered index of patches per owner.

    Registration order is kept per owner and is the order bulk operations
    replay in. The registry holds strong references to owners and patches
    until they are unregistered or the registry is cleared.
    """

    def __init__(self):
        self._owners: Dict[int, Tuple[Any, List["Patch"]]] = {}

    def register(self, patch: "Patch") -> None:
        """Append ``patch`` to its owner's list (no-op if already present)."""
        _, patches = self._owners.setdefault(id(patch.owner), (patch.owner, []))
        if not any(existing is patch for existing in patches):
            patches.append(patch)

    def unregister(self, patch: "Patch") -> bool:
        """Remove ``patch``; returns False when it was not registered."""
        entry = self._owners.get(id(patch.owner))
        if entry is None:
            return False
        _, patches = entry
        for index, existing in enumerate(patches):
            if existing is patch:
                del patches[index]
                if not patches:
                    del self._owners[id(patch.owner)]
                return True
        return False

    def for_owner(self, owner: Any) -> List["Patch"]:
        """Patches registered for ``owner``, in registration order."""
        entry = self._owners.get(id(owner))
        return list(entry[1]) if entry is not None else []

    def owners(self) -> List[Any]:
        """Every owner with at least one registered patch."""
        return [owner for owner, _ in self._owners.values()]

    def enable_for(self, owner: Any) -> None:
        """Apply every patch registered for ``owner``."""
        patches = self.for_owner(owner)
        logger.debug(f"Enabling {len(patches)} patch(es) for {owner!r}")
        for patch in patches:
            patch.apply()

    def disable_for(self, owner: Any) -> None:
        """Revert every patch registered for ``owner``."""
        patches = self.for_owner(owner)
        logger.debug(f"Disabling {len(patches)} patch(es) for {owner!r}")
        for patch in patches:
            patch.revert()

    def enable_all(self, owners: Optional[Iterable[Any]] = None) -> None:
        """Apply all patches for ``owners`` (every registered owner by default)."""
        targets = self.owners() if owners is None else list(owners)
        logger.info(f"Enabling patches for {len(targets)} owner(s)")
        for owner in targets:
            self.enable_for(owner)

    def disable_all(self, owners: Optional[Iterable[Any]] = None) -> None:
        """Revert all patches for ``owners`` (every registered owner by default)."""
        targets = self.owners() if owners is None else list(owners)
        logger.info(f"Disabling patches for {len(targets)} owner(s)")
        for owner in targets:
            self.disable_for(owner)

    def clear(self) -> None:
        """Forget every registered patch without reverting anything."""
        self._owners.clear()

    def __contains__(self, patch: "Patch") -> bool:
        return any(existing is patch for existing in self.for_owner(patch.owner))

    def __len__(self) -> int:
        return sum(len(patches) for _, patches in self._owners.values())

    def __iter__(self):
        for _, patches in list(self._owners.values()):
            yield from list(patches)


default_registry = PatchRegistry()
"""Registry used by patches constructed without an explicit one."""
