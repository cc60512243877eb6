# src/phpunit_runner/exceptions.py

"""
Custom exceptions for phpunit-runner.
"""


class PhpUnitRunnerError(Exception):
    """Base class for all phpunit-runner errors."""

    pass


class ConfigurationError(PhpUnitRunnerError):
    """Raised when the runner configuration cannot be loaded or validated."""

    def __init__(
        self,
        message: str,
        config_path: str | None = None,
        details: Exception | None = None,
    ):
        self.config_path = config_path
        self.details = details
        full_message = message
        if config_path:
            full_message += f" (File: '{config_path}')"
        super().__init__(full_message)
        if details and hasattr(self, "add_note"):
            self.add_note(f"Original error: {type(details).__name__}: {details}")


class ProcessSpawnError(PhpUnitRunnerError):
    """Raised when the test runner subprocess cannot be started."""

    def __init__(self, command: list[str], details: Exception | None = None):
        self.command = command
        self.details = details
        executable = command[0] if command else "<empty>"
        super().__init__(
            f"Failed to start '{executable}'. Is it installed and in the system's PATH?"
        )
        if details and hasattr(self, "add_note"):
            self.add_note(f"Original error: {type(details).__name__}: {details}")


# 🔼⚙️
