#
# src/phpunit_runner/__init__.py
#
"""
phpunit-runner: run PHPUnit as a subprocess and report its TeamCity stream.
"""
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("phpunit-runner")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

__all__ = ["__version__"]

# 🔼⚙️
