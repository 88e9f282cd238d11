"""Scoped apply/revert coordination for a single Patch."""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from propatch.core.patch import Patch

logger = logging.getLogger(__name__)


@dataclass
class ToggleState:
    """Who is responsible for the patch, decided when the toggle starts.

    Attributes:
        needs_application: The patch was unapplied at start, so this toggle
            applied it and owns its reversion
        needs_reversion: The patch was already applied at start, so someone
            else owns its reversion
    """

    needs_application: bool = False
    needs_reversion: bool = False


class PatchToggle:
    """Apply a patch for a window of time without stepping on other users.

    Ownership is captured once, at ``start()``: only a toggle that found the
    patch unapplied (and therefore applied it) reverts it at ``stop()``. A
    toggle that found the patch already applied leaves it applied, so nested
    toggles over the same patch do not fight each other. With
    ``prevent_revert`` set, ``stop()`` never reverts.

    Example::

        outer = patch.create_toggle()
        inner = patch.create_toggle()

        outer.start()   # applies
        inner.start()   # already applied, nothing to do
        inner.stop()    # not the owner, patch stays applied
        outer.stop()    # reverts

        with patch.create_toggle():
            ...         # patch applied inside the block

    Attributes:
        patch: The coordinated Patch (referenced, not owned)
        prevent_revert: Never revert on ``stop()``
        started: Whether the toggle is inside its window
        state: Ownership captured at ``start()``
    """

    def __init__(self, patch: "Patch", prevent_revert: bool = False):
        self.patch = patch
        self.prevent_revert = prevent_revert
        self.started = False
        self.state = ToggleState()

    @property
    def patch_name(self) -> str:
        return self.patch.owner_name

    def start(self) -> "PatchToggle":
        """Open the window, applying the patch if nothing else has."""
        if not self.started:
            self.state.needs_application = not self.patch.applied
            self.state.needs_reversion = self.patch.applied
            self.started = True
            if self.state.needs_application:
                logger.debug(f"{self!r} applying patch")
                self.patch.apply()
        return self

    def stop(self) -> "PatchToggle":
        """Close the window, reverting only if this toggle applied the patch."""
        if self.started:
            if self.state.needs_application and not self.prevent_revert:
                logger.debug(f"{self!r} reverting patch")
                self.patch.revert()
            self.state.needs_application = False
            self.state.needs_reversion = False
            self.started = False
        return self

    def __enter__(self) -> "PatchToggle":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.stop()
        return False

    def __repr__(self) -> str:
        return (
            f"PatchToggle:{self.patch_name} "
            f"(started: {self.started} needed: {self.state.needs_application})"
        )
