"""Config file discovery and loading.

Walk-up finder locates coachctl.toml, similar to how git finds .git/.
Supports the COACHCTL_CONFIG env var and the --config CLI flag.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from coachctl.config.models import CoachConfig

CONFIG_FILENAME = "coachctl.toml"
CONFIG_ENV_VAR = "COACHCTL_CONFIG"


def find_config(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default: cwd) looking for coachctl.toml.

    Returns the path to the config file, or None if not found.
    Checks COACHCTL_CONFIG env var first.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        p = Path(env_path)
        return p if p.is_file() else None

    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(path: Path | None = None, cwd: Path | None = None) -> CoachConfig:
    """Load and validate config from a TOML file.

    If *path* is None, uses find_config(*cwd*) to discover the file.
    Returns default CoachConfig if no file is found.
    """
    if path is None:
        path = find_config(cwd)
    if path is None:
        return CoachConfig()

    data: dict[str, Any] = tomllib.loads(path.read_text(encoding="utf-8"))
    return CoachConfig.model_validate(data)
