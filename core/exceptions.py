"""
Exception Definitions - Custom exceptions for Regexp Handler
============================================================

This module defines all custom exceptions used throughout the application,
providing clear error handling and meaningful error messages.
"""


class RegexpHandlerError(Exception):
    """
    Base exception for all Regexp Handler errors.

    All custom exceptions in this application inherit from this base class,
    allowing for easy catching of all application-specific errors.

    Attributes:
        message (str): Human-readable error description
        details (dict): Additional error details for debugging
    """

    def __init__(self, message: str, details: dict = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            details: Optional dictionary with additional error context
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        """Return formatted error message with details if present."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigError(RegexpHandlerError):
    """
    Configuration-related errors.

    Raised when there are issues with:
    - Missing or unreadable rules files
    - Missing or unreadable settings files
    - Invalid configuration values
    - Configuration parsing errors
    """
    pass


class ChainLimitError(RegexpHandlerError):
    """
    Command chain guard errors.

    Raised when evaluation of a single message runs away:
    - Too many chained command lines
    - call/jump nesting deeper than allowed (context cycles)

    Attributes:
        limit (int): The limit that was exceeded
    """

    def __init__(self, message: str, limit: int = 0, details: dict = None):
        """
        Initialize chain limit error with the exceeded limit.

        Args:
            message: Human-readable error description
            limit: The limit that was exceeded
            details: Optional dictionary with additional error context
        """
        self.limit = limit
        super().__init__(message, details)

    def __str__(self) -> str:
        """Return formatted error message with the limit."""
        base = super().__str__()
        return f"{base} | Limit: {self.limit}"


class EnqueueError(RegexpHandlerError):
    """
    Message submission errors.

    Raised while building or submitting a message from an enqueue
    command. Never leaves the interpreter: it is logged and reported
    to the host's error channel.
    """
    pass


class BusError(RegexpHandlerError):
    """
    Message bus errors.

    Raised when the bus is used incorrectly:
    - Installing a non-callable handler
    - Dispatching something that is not a message
    """
    pass
