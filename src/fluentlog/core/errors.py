"""
Exceptions raised by the logging facade.
"""


class LoggingError(Exception):
    """
    Raised when a log statement could not be emitted.

    Only raised when the backend failed and its own error handler failed
    too. The original backend error is available as __cause__.
    """
