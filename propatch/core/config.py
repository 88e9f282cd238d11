"""Settings for the propatch command line, read from ``propatch.json``.

The library itself needs no configuration; these values only shape what the
``propatch`` CLI does. Each setting lives under a section of the JSON file
and can be supplied through an environment variable instead, named after the
section and key joined by an underscore and upper-cased:

==================  ===================  ====================================
JSON path           Environment          Meaning
==================  ===================  ====================================
``cli.imports``     ``CLI_IMPORTS``      Modules ``propatch report`` imports
                                         when no ``--import`` is given
                                         (comma-separated in the environment)
``report.width``    ``REPORT_WIDTH``     Line width of YAML reports
``logging.level``   ``LOGGING_LEVEL``    Log level when ``-v`` is not given
==================  ===================  ====================================

Example ``propatch.json``::

    {
      "cli": {"imports": ["myproject.extensions"]},
      "report": {"width": 120},
      "logging": {"level": "INFO"}
    }

Values found in the file win over the environment; the caller's default is
used when neither has one.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

DEFAULT_CONFIG_PATH = "propatch.json"


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """Read the settings file.

    A missing file, unparsable JSON, or a top-level value that is not an
    object all yield ``{}`` so the CLI falls back to its defaults.

    Args:
        config_path: Path to the settings file

    Returns:
        The parsed settings, or an empty dict
    """
    path = Path(config_path)
    if not path.is_file():
        return {}

    try:
        with open(path, "r") as f:
            loaded = json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}

    return loaded if isinstance(loaded, dict) else {}


def env_key(keys: List[str]) -> str:
    """Environment variable consulted for a JSON path (``["report", "width"]`` -> ``REPORT_WIDTH``)."""
    return "_".join(key.upper() for key in keys)


def get_config_value(
    keys: List[str], default: Any = None, config: Optional[Dict[str, Any]] = None
) -> Any:
    """Look up one setting by its JSON path.

    Args:
        keys: Path into the settings, e.g. ``["logging", "level"]``
        default: Returned when neither the file nor the environment sets it
        config: Already-loaded settings (``load_config()`` is called if omitted)

    Returns:
        The file value, else the environment value (always a string), else
        ``default``
    """
    if config is None:
        config = load_config()

    node: Any = config
    for key in keys:
        node = node.get(key) if isinstance(node, dict) else None
        if node is None:
            break

    if node is not None:
        return node

    return os.environ.get(env_key(keys), default)
