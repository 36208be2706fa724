"""Extension layer: plugin system via pluggy.

Discovery: entry_points (``coachctl.plugins`` group) plus single-file
plugins in ``.coachctl/plugins/``.
INVARIANT: Plugin failures are warnings, never errors.
"""

from coachctl.plugins.manager import PluginManager

__all__ = ["PluginManager"]
