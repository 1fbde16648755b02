"""Exceptions raised by the notification pipeline.

Only request problems and store failures are exceptions. Delivery failures
are reported as `DeliveryResult(status="error")` values instead.
"""

from __future__ import annotations


class NotificationError(Exception):
    """Base class; `status_code` is what the HTTP layer answers with."""

    status_code = 500


class InvalidEventKind(NotificationError):
    status_code = 400

    def __init__(self, kind: object):
        self.kind = kind
        super().__init__(f"Invalid notification type: {kind!r}")


class EventValidationError(NotificationError):
    """The `data` object does not match the shape its event kind requires."""

    status_code = 400

    def __init__(self, kind: str, detail: str):
        self.kind = kind
        self.detail = detail
        super().__init__(f"Invalid data for {kind}: {detail}")


class AudienceLookupFailed(NotificationError):
    """A membership/address/group query failed; the whole event is aborted."""

    status_code = 500


class SMSRequestError(NotificationError):
    """Malformed request to the SMS gateway (missing field, bad phone, unknown type)."""

    status_code = 400


class SMSDeliveryFailed(NotificationError):
    """The SMS provider rejected or failed a single / OTP send."""

    status_code = 500
