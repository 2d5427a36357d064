"""Exception types raised by webhook-chat."""


class WebhookChatError(Exception):
    """Base class for all webhook-chat errors."""


class ValidationError(WebhookChatError):
    """Bad user input: invalid URL, missing fields, duplicate name."""


class DuplicateName(ValidationError):
    """An endpoint with this name already exists."""


class SessionBusy(ValidationError):
    """A send was issued while another one is still in flight."""


class NotFound(WebhookChatError):
    """An endpoint, conversation or message id does not resolve."""


class NoActiveEndpoint(WebhookChatError):
    """A send or start was attempted with no endpoint selected."""


class MalformedPayload(WebhookChatError):
    """An attachment payload is not valid base64."""


class TransportFailure(WebhookChatError):
    """The webhook request failed or returned something unusable."""

    def __init__(self, message: str, status_code: int | None = None, reason: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason
