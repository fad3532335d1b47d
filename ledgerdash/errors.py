# ledgerdash/errors.py
"""Error taxonomy shared by the domain library and the Flask layer."""
from __future__ import annotations


class LedgerError(Exception):
    """Base error. ``status_code`` is what the web layer answers with."""

    status_code = 500

    def __init__(self, message: str = "", **context):
        super().__init__(message)
        self.message = message
        # owner / action / entity id, logged by the error handler
        self.context = {k: v for k, v in context.items() if v is not None}


class InvalidArgument(LedgerError):
    """Bad window, bad group_by, malformed input."""

    status_code = 400


class InvalidRule(InvalidArgument):
    """A recurring rule that violates its own invariants."""


class NotAuthenticated(LedgerError):
    status_code = 401


class NotAuthorized(LedgerError):
    status_code = 403


class NotFound(LedgerError):
    status_code = 404


class UpstreamFailure(LedgerError):
    """Payments API, store or identity provider failed or was unreachable."""

    status_code = 502
