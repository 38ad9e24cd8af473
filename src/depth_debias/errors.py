from __future__ import annotations


class DebiasError(Exception):
    """Base class for all errors raised by depth_debias."""


class UsageError(DebiasError, RuntimeError):
    """The caller used a debiaser in an unsupported order or state."""


class UnsortError(UsageError):
    """`unsort` was called without a matching `sort`."""


class ConfigurationError(UsageError, ValueError):
    """A required configuration attribute is unset or out of range."""


class FactorizationError(DebiasError, ArithmeticError):
    """The SVD of the input matrix could not be computed."""
