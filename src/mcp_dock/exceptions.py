"""Custom exceptions for mcp-dock."""


class McpDockError(Exception):
    """Base exception for all mcp-dock errors."""

    def __init__(self, message: str, details: dict | None = None):
        """
        Initialize error.

        Args:
            message: Error message
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(McpDockError):
    """Raised when configuration bootstrap fails (nothing to orchestrate)."""

    def __init__(self, source: str, reason: str | None = None, details: dict | None = None):
        """
        Initialize error.

        Args:
            source: Configuration source that failed to load
            reason: Reason for the failure
            details: Additional error details
        """
        message = f"Failed to load {source}"
        if reason:
            message += f": {reason}"
        super().__init__(message, details)
        self.source = source
        self.reason = reason


class ServerNotFoundError(McpDockError):
    """Raised when a requested server is not defined or not enabled."""

    def __init__(self, server: str, available: list[str] | None = None, details: dict | None = None):
        """
        Initialize error.

        Args:
            server: Server name that was not found
            available: Names of the servers that are available
            details: Additional error details
        """
        message = f"Server '{server}' not found"
        if available:
            message += f". Available servers: {', '.join(available)}"
        super().__init__(message, details)
        self.server = server
        self.available = available or []


class CommandError(McpDockError):
    """Raised when an external docker command fails."""

    def __init__(
        self, command: list[str], return_code: int, stderr: str | None = None, details: dict | None = None
    ):
        """
        Initialize error.

        Args:
            command: Command that failed
            return_code: Command return code
            stderr: Error output
            details: Additional error details
        """
        cmd_str = " ".join(command)
        message = f"Command '{cmd_str}' failed with return code {return_code}"
        if stderr:
            message += f": {stderr}"
        super().__init__(message, details)
        self.command = command
        self.return_code = return_code
        self.stderr = stderr


class TimeoutError(McpDockError):
    """Raised when an external operation times out."""

    def __init__(self, operation: str, timeout: float, details: dict | None = None):
        """
        Initialize error.

        Args:
            operation: Operation that timed out
            timeout: Timeout in seconds
            details: Additional error details
        """
        message = f"Operation '{operation}' timed out after {timeout} seconds"
        super().__init__(message, details)
        self.operation = operation
        self.timeout = timeout
