"""
Error taxonomy shared by the proxy and the table client.
"""
from typing import Optional


class LedgerError(Exception):
    ...


class ConfigurationError(LedgerError):
    """Required secrets or identifiers are missing."""


class UpstreamAuthError(LedgerError):
    """Credential exchange was rejected by Feishu."""


class UpstreamNotFoundOrForbidden(LedgerError):
    """Bad sheet/table identifier or the app lacks permission."""


class MalformedUpstreamResponse(LedgerError):
    """Upstream answered with something that is not JSON."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class GenericProxyFailure(LedgerError):
    """Network or runtime failure while talking to upstream."""


class FeishuAPIError(LedgerError):
    """JSON envelope carried a non-zero application code."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code
