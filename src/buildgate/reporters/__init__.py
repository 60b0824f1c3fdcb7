"""Terminal output."""

from buildgate.reporters.terminal import CLIReporter, reporter

__all__ = ["CLIReporter", "reporter"]
