# chatpulse/core/errors.py

from __future__ import annotations


class ChatRelayError(Exception):
    """Base class for failures reported back to a client or the scheduler."""

    default_message = "Chat relay error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class UnknownSender(ChatRelayError):
    """No user exists for the email attached to a send request."""

    default_message = "Unknown sender"

    @classmethod
    def for_email(cls, email: str) -> "UnknownSender":
        return cls(f"User with email {email} not found")


class StoreWriteFailed(ChatRelayError):
    default_message = "Failed to send message"


class StoreReadFailed(ChatRelayError):
    default_message = "Failed to read from message store"


class SweepFailed(ChatRelayError):
    default_message = "Retention sweep failed"
