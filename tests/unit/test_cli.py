"""Tests for the propatch command line."""

import collections
import json

import pytest
from ruamel.yaml import YAML

from propatch.cli.main import main, resolve_owner
from propatch.core.patch import Patch
from propatch.core.registry import default_registry


def load(text):
    return YAML(typ="safe").load(text)


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Run every CLI test without a propatch.json in reach."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("LOGGING_LEVEL", raising=False)
    monkeypatch.delenv("REPORT_WIDTH", raising=False)
    monkeypatch.delenv("CLI_IMPORTS", raising=False)


class TestResolveOwner:
    """Tests for MODULE:ATTR resolution."""

    def test_module(self):
        """Test a bare module name."""
        assert resolve_owner("collections") is collections

    def test_attribute_path(self):
        """Test dotted attribute paths after the colon."""
        assert resolve_owner("collections:OrderedDict.move_to_end") is collections.OrderedDict.move_to_end

    def test_missing_module(self):
        """Test unknown modules raise ValueError."""
        with pytest.raises(ValueError, match="Cannot import module"):
            resolve_owner("no_such_module_here")

    def test_missing_attribute(self):
        """Test unknown attributes raise ValueError."""
        with pytest.raises(ValueError, match="has no attribute 'Nope'"):
            resolve_owner("collections:Nope")


class TestDescribeCommand:
    """Tests for `propatch describe`."""

    def test_existing_and_missing_keys(self, capsys):
        """Test each key gets a record, missing ones with existed: false."""
        assert main(["describe", "collections:OrderedDict", "move_to_end", "not_there"]) == 0
        records = load(capsys.readouterr().out)
        assert [record["key"] for record in records] == ["move_to_end", "not_there"]
        assert records[0]["existed"] is True
        assert records[0]["descriptor"]["kind"] == "data"
        assert records[1] == {"key": "not_there", "existed": False, "read_only": False, "descriptor": None}

    def test_require_fails_on_missing_key(self, capsys):
        """Test --require turns a missing key into exit status 1."""
        assert main(["describe", "collections:OrderedDict", "not_there", "--require"]) == 1
        assert "does not have a property named 'not_there'" in capsys.readouterr().err

    def test_bad_owner(self, capsys):
        """Test an unresolvable owner reports an error."""
        assert main(["describe", "collections:Nope", "x"]) == 1
        assert "Error:" in capsys.readouterr().err


class TestReportCommand:
    """Tests for `propatch report`."""

    def test_reports_registered_patches(self, capsys):
        """Test the default registry is dumped as YAML."""
        Patch(collections, {"propatch_marker": 1})

        assert main(["report"]) == 0
        groups = load(capsys.readouterr().out)
        assert groups[0]["owner"] == "collections"
        assert groups[0]["patches"][0]["applied"] is False
        assert not hasattr(collections, "propatch_marker")

    def test_enable(self, capsys):
        """Test --enable applies the patches before reporting."""
        patch = Patch(collections, {"propatch_marker": 1})
        try:
            assert main(["report", "--enable", "--owner", "collections"]) == 0
            assert patch.applied
            assert load(capsys.readouterr().out)[0]["patches"][0]["applied"] is True
        finally:
            default_registry.disable_all()
        assert not hasattr(collections, "propatch_marker")

    def test_bad_import(self, capsys):
        """Test an unimportable module reports an error."""
        assert main(["report", "--import", "no_such_module_here"]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_empty_registry(self, capsys):
        """Test an empty registry dumps an empty list."""
        assert main(["report"]) == 0
        assert load(capsys.readouterr().out) == []

    def test_no_command(self, capsys):
        """Test running without a subcommand prints help."""
        assert main([]) == 1
        assert "usage: propatch" in capsys.readouterr().out


class TestLoggingLevel:
    """Tests for the logging level taken from configuration."""

    def test_unknown_level_falls_back(self, tmp_path, capsys):
        """Test an unknown level is reported and the command still runs."""
        (tmp_path / "propatch.json").write_text(json.dumps({"logging": {"level": "LOUD"}}))

        assert main(["report"]) == 0
        captured = capsys.readouterr()
        assert "unknown logging level 'LOUD'" in captured.err
        assert load(captured.out) == []

    def test_known_level_is_accepted(self, monkeypatch, capsys):
        """Test a valid level from the environment produces no error."""
        monkeypatch.setenv("LOGGING_LEVEL", "debug")

        assert main(["report"]) == 0
        assert "unknown logging level" not in capsys.readouterr().err
