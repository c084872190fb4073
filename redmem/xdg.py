"""Config file discovery for redmem (home directory, then XDG locations)."""

import os
from pathlib import Path
from typing import List

APP_DIR = "redmem"


def config_candidates(filename: str, legacy_dir: bool = True) -> List[Path]:
    """Locations searched for a config file, highest precedence first.

    ``~/.redmem`` comes first when ``legacy_dir`` is set, then ``$XDG_CONFIG_HOME``
    (only if the variable is set), then ``~/.config``.
    """
    candidates = []
    if legacy_dir:
        candidates.append(Path.home() / f".{APP_DIR}" / filename)

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        candidates.append(Path(xdg_config) / APP_DIR / filename)

    candidates.append(Path.home() / ".config" / APP_DIR / filename)
    return candidates


def get_xdg_config_path(filename: str, legacy_dir: bool = True) -> Path:
    """Return the first existing config file.

    When none exists, the XDG location where a new file belongs is returned
    (``$XDG_CONFIG_HOME`` if set, else ``~/.config``), never the legacy directory.
    """
    candidates = config_candidates(filename, legacy_dir)
    for path in candidates:
        if path.exists():
            return path
    return candidates[1] if legacy_dir else candidates[0]
