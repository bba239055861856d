"""
apmexport.errors - Exceptions raised while delivering transactions.
"""

from __future__ import annotations


class ApmExportError(Exception):
    """Base class for apmexport errors."""


class SendError(ApmExportError):
    """Raised when a transaction could not be delivered to the APM endpoint.

    Covers connection and DNS failures of the POST itself as well as a
    failure to close the response afterwards. The underlying ``requests``
    exception is chained as ``__cause__``.

    Attributes:
        endpoint: The URL the transaction was posted to
    """

    def __init__(self, message: str, endpoint: str) -> None:
        super().__init__(message)
        self.endpoint = endpoint
