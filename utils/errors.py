"""
Defines custom exception classes for the application.
"""

class AIChatException(Exception):
    """Base exception class for the aichat application."""
    pass

class ContextBuildError(AIChatException):
    """Raised when workspace context cannot be built."""
    pass

class GitError(ContextBuildError):
    """Raised when git is unavailable or a git command fails."""
    pass

class ProviderError(AIChatException):
    """Raised when an error occurs with a response provider."""
    pass

class FormatterError(AIChatException):
    """Raised when an error occurs while rendering the context block."""
    pass

class ConfigError(AIChatException):
    """Raised when there is a configuration error."""
    pass
