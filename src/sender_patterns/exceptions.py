"""Custom exceptions for Sender Pattern Learner."""


class SenderPatternError(Exception):
    """Base exception for all Sender Pattern Learner errors."""


class GmailAPIError(SenderPatternError):
    """Exception raised for Gmail API related errors."""


class OllamaConnectionError(SenderPatternError):
    """Exception raised when unable to connect to Ollama."""


class OllamaInferenceError(SenderPatternError):
    """Exception raised when Ollama inference fails."""


class ConfigurationError(SenderPatternError):
    """Exception raised for configuration related errors."""


class AuthenticationError(SenderPatternError):
    """Exception raised when an account has no usable mail credentials."""


class NotFoundError(SenderPatternError):
    """Exception raised when a referenced record does not exist."""


class AccountNotFoundError(NotFoundError):
    """Exception raised when an email account does not exist."""


class RuleNotFoundError(NotFoundError):
    """Exception raised when a rule does not exist for an account."""


class ValidationError(SenderPatternError):
    """Exception raised for data validation errors."""
