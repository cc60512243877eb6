#
# config/__init__.py
#
"""
Configuration handling sub-package for phpunit-runner.

Exports the loading function and the configuration model.
"""

from .loader import load_config
from .models import SHOW_AFTER_EXECUTION_CHOICES, RunnerConfig

__all__ = [
    "SHOW_AFTER_EXECUTION_CHOICES",
    "RunnerConfig",
    "load_config",
]

# 🔼⚙️
