"""Exception taxonomy shared by the parser, the metrics and the runner."""


class RepoVitalsError(Exception):
    """Base class for every error raised by repo_vitals."""


class ValidationError(RepoVitalsError, ValueError):
    """Invalid repository label, time window or analysis option."""


class ParseError(RepoVitalsError, ValueError):
    """Raw history text could not be turned into records."""


class ExternalCommandError(RepoVitalsError, RuntimeError):
    """A history provider failed to produce its text."""

    def __init__(self, command: str, message: str = "", returncode: int = None):
        self.command = command
        self.returncode = returncode
        detail = message or "command failed"
        if returncode is not None:
            detail = f"{detail} (exit {returncode})"
        super().__init__(f"{command}: {detail}")


class UnknownMetricError(RepoVitalsError, KeyError):
    """The requested metric name is not registered."""

    def __str__(self):
        return f"Unknown metric: {self.args[0]}" if self.args else "Unknown metric"


class ConfigError(RepoVitalsError, ValueError):
    """Configuration file could not be used."""
