"""
config.py

Constants and environment-driven settings for profile-view.

Environment variables:
- PROFILE_VIEW_LOG_LEVEL: logging level name (default WARNING)
- PROFILE_VIEW_LOG_FILE: also write logs to this file
- PROFILE_VIEW_MAX_DEPTH: default depth to which the call tree is printed
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

# Responsiveness above this marks a jank instance.
JANK_THRESHOLD_MS = 50

DEFAULT_TAB_ORDER = (0, 1, 2, 3, 4, 5)
COMPLETE_THREAD_LABEL = "Complete Thread"
UNKNOWN_FUNC_LABEL = "(unknown function)"
COMPOSITOR_THREAD_NAME = "Compositor"
PLATFORM_FUNC_NAME = "Platform"
DEFAULT_CATEGORY_COLOR = "grey"


@dataclass(frozen=True)
class Settings:
    log_level: int = logging.WARNING
    log_file: Optional[str] = None
    max_depth: int = 12


def load_settings(environ=None) -> Settings:
    """Build Settings from the environment, falling back to defaults."""
    env = os.environ if environ is None else environ
    level_name = env.get("PROFILE_VIEW_LOG_LEVEL", "WARNING").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.WARNING
    log_file = env.get("PROFILE_VIEW_LOG_FILE") or None
    try:
        max_depth = int(env.get("PROFILE_VIEW_MAX_DEPTH", Settings.max_depth))
    except ValueError:
        max_depth = Settings.max_depth
    return Settings(log_level=level, log_file=log_file, max_depth=max_depth)
