#
# src/phpunit_runner/telemetry/__init__.py
#
"""
Structured logging setup for phpunit-runner.
"""
from .logger import StructLogger, setup_logging

__all__ = ["StructLogger", "setup_logging"]

# 🔼⚙️
