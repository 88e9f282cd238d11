"""Unit tests for PatchToggle."""

import pytest

from propatch.core.errors import PatchApplyError
from propatch.core.patch import Patch
from propatch.core.schema.descriptor import DataDescriptor
from propatch.core.targets import PropertyTable
from propatch.core.toggle import PatchToggle


@pytest.fixture
def table():
    return PropertyTable({"x": 1}, name="Shared")


@pytest.fixture
def patch(table, registry):
    return Patch(table, {"x": 2, "extra": True}, registry=registry)


class TestStartStop:
    """Tests for a single toggle."""

    def test_start_applies_and_stop_reverts(self, patch, table):
        """Test a toggle that applied the patch reverts it."""
        toggle = patch.create_toggle()
        toggle.start()
        assert toggle.started
        assert toggle.state.needs_application
        assert not toggle.state.needs_reversion
        assert table["x"] == 2

        toggle.stop()
        assert not toggle.started
        assert not toggle.state.needs_application
        assert table["x"] == 1
        assert "extra" not in table

    def test_start_and_stop_return_self(self, patch):
        """Test start/stop support chaining."""
        toggle = PatchToggle(patch)
        assert toggle.start() is toggle
        assert toggle.stop() is toggle

    def test_start_twice_is_noop(self, patch):
        """Test a second start keeps the ownership captured by the first."""
        toggle = patch.create_toggle()
        toggle.start()
        toggle.start()
        assert toggle.state.needs_application
        toggle.stop()
        assert not patch.applied

    def test_stop_without_start_is_noop(self, patch):
        """Test stop on an idle toggle does nothing."""
        patch.apply()
        patch.create_toggle().stop()
        assert patch.applied

    def test_prevent_revert(self, patch):
        """Test prevent_revert leaves the patch applied on stop."""
        toggle = patch.create_toggle(prevent_revert=True)
        toggle.start()
        toggle.stop()
        assert patch.applied
        assert not toggle.started

    def test_already_applied_is_not_reverted(self, patch):
        """Test a toggle that found the patch applied does not revert it."""
        patch.apply()
        toggle = patch.create_toggle()
        toggle.start()
        assert not toggle.state.needs_application
        assert toggle.state.needs_reversion
        toggle.stop()
        assert patch.applied

    def test_context_manager(self, patch, table):
        """Test the with-block applies for its duration."""
        with patch.create_toggle() as toggle:
            assert toggle.started
            assert table["x"] == 2
        assert table["x"] == 1
        assert not toggle.started

    def test_context_manager_reverts_on_error(self, patch, table):
        """Test exceptions inside the block still revert and propagate."""
        with pytest.raises(RuntimeError):
            with patch.create_toggle():
                raise RuntimeError("boom")
        assert table["x"] == 1

    def test_failed_start_can_be_stopped(self, registry):
        """Test stop unwinds keys left by an apply that failed during start."""
        table = PropertyTable(name="Half")
        patch = Patch(table, {"a": 1, "b": 2}, registry=registry)
        table.define_descriptor("b", DataDescriptor("locked", writable=False, configurable=False))

        toggle = patch.create_toggle()
        with pytest.raises(PatchApplyError):
            toggle.start()
        assert toggle.started
        assert "a" in table

        toggle.stop()
        assert "a" not in table

    def test_repr(self, patch):
        """Test repr names the owner and state."""
        assert repr(patch.create_toggle()) == "PatchToggle:Shared (started: False needed: False)"


class TestNesting:
    """Tests for several toggles over one patch."""

    def test_inner_stop_keeps_patch_applied(self, patch):
        """Test stopping a nested toggle does not revert the outer one's patch."""
        outer = patch.create_toggle()
        inner = patch.create_toggle()

        outer.start()
        inner.start()
        inner.stop()
        assert patch.applied

        outer.stop()
        assert not patch.applied

    def test_nested_context_managers(self, patch, table):
        """Test nested with-blocks only revert when the outermost exits."""
        with patch.create_toggle():
            with patch.create_toggle():
                assert table["x"] == 2
            assert table["x"] == 2
        assert table["x"] == 1

    def test_out_of_order_stop(self, patch):
        """Test the owning toggle reverts even if it stops first."""
        outer = patch.create_toggle()
        inner = patch.create_toggle()

        outer.start()
        inner.start()
        outer.stop()
        assert not patch.applied

        inner.stop()
        assert not patch.applied
