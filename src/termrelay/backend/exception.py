"""Custom exceptions for the terminal relay"""


class TermRelayException(Exception):
    """Base exception for all relay errors

    All custom exceptions should inherit from this class.
    The global exception handler will catch this and return ErrorResponse.

    Attributes:
        message: Human-readable error message
        code: Error code for client-side error handling
    """

    def __init__(self, message: str, code: str):
        """Initialize relay exception

        Args:
            message: Human-readable error message
            code: Error code (e.g., "VALIDATION_ERROR", "NOT_FOUND")
        """
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(TermRelayException):
    """Validation error (invalid input data)

    Examples:
        - Session id outside the allowed character set
        - Session id longer than 32 characters
    """

    def __init__(self, message: str):
        super().__init__(message, "VALIDATION_ERROR")


class AuthenticationError(TermRelayException):
    """Authentication error (invalid credentials)

    Examples:
        - Missing bearer token
        - Token does not match the configured secret
    """

    def __init__(self, message: str):
        super().__init__(message, "AUTHENTICATION_ERROR")


class NotFoundError(TermRelayException):
    """Resource not found error

    Examples:
        - tmux session does not exist
        - Session has no pane to query
    """

    def __init__(self, message: str):
        super().__init__(message, "NOT_FOUND")


class InternalError(TermRelayException):
    """Internal server error (unexpected errors)"""

    def __init__(self, message: str):
        super().__init__(message, "INTERNAL_ERROR")


# ==================== Terminal Layer Exceptions ====================


class TmuxCommandError(TermRelayException):
    """A tmux command on the critical path failed or timed out

    Examples:
        - new-session failed (bad working directory, server unreachable)
        - tmux binary missing
    """

    def __init__(self, message: str, returncode: int | None = None):
        self.returncode = returncode
        super().__init__(message, "TMUX_COMMAND_FAILED")


class BridgeSpawnError(TermRelayException):
    """The attach subprocess could not be started"""

    def __init__(self, message: str):
        super().__init__(message, "BRIDGE_SPAWN_FAILED")
