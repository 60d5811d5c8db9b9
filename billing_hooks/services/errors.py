class WebhookError(Exception):
    """Base for webhook pipeline errors."""

class SignatureError(WebhookError):
    """Payload could not be authenticated; never persisted, never retried."""

class MalformedEventError(WebhookError):
    """Payload lacks a field the state applier needs, or carries an unknown value."""

class TenantNotResolvedError(WebhookError):
    """No tenant matches the event's identifiers (retryable)."""

class TenantNotFoundError(WebhookError):
    pass

class CustomerConflictError(WebhookError):
    """The external customer id already belongs to a different tenant."""

class DuplicateEventError(WebhookError):
    """Raised by the ledger when the event id is already recorded."""
