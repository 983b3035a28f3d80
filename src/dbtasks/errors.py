"""Domain errors for dbtasks."""


class DatabaseTaskError(RuntimeError):
    """Raised when a database task cannot continue."""


class UnsupportedEngineError(DatabaseTaskError):
    """Raised when the configured engine type is missing or unknown."""


class InvalidScriptError(DatabaseTaskError):
    """Raised when a SQL script is missing or unreadable."""


class CommandFailedError(DatabaseTaskError):
    """Raised when a database client could not be started or exited nonzero."""


class IOFailureError(DatabaseTaskError):
    """Raised when a script could not be fully written to a client process."""


class SchemaMismatchError(DatabaseTaskError):
    """Raised when two database schemas are not equal."""

    def __init__(self, message: str, report: str = ""):
        super().__init__(message)
        self.report = report
