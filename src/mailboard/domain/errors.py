"""
Exception hierarchy for the mailboard pipeline.

Every error carries a context dict (tenant, uid, ...) so a failed message
can be reconciled by hand from the log line alone.
"""

from __future__ import annotations

from typing import Any


class MailboardError(Exception):
    """Base exception for all mailboard errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} | context={self.context}"
        return self.message


# =============================================================================
# Configuration
# =============================================================================


class ConfigurationError(MailboardError):
    """Tenant is missing, incomplete, or has no allowed sender."""

    pass


class NotFoundError(ConfigurationError):
    """Tenant id is not registered."""

    pass


class SchemaResolutionError(MailboardError):
    """Board fields could not be looked up or created during onboarding."""

    pass


# =============================================================================
# Per-message outcomes (never surfaced to callers)
# =============================================================================


class PolicyRejection(MailboardError):
    """Sender is not the tenant's allowed sender."""

    pass


class ExtractionIncompleteness(MailboardError):
    """No name could be derived from the message body."""

    pass


# =============================================================================
# Upstream
# =============================================================================


class UpstreamError(MailboardError):
    """A mailbox or record store call failed."""

    pass


class MailboxError(UpstreamError):
    """IMAP command failed or the connection dropped."""

    pass


class RecordStoreError(UpstreamError):
    """monday.com API returned an HTTP or GraphQL error."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, context)
        self.status_code = status_code
