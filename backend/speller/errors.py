"""Speller error taxonomy."""

from __future__ import annotations


class SpellerError(Exception):
    """Base class for speller engine errors."""


class InvalidGridShape(SpellerError, ValueError):
    """Grid is empty or not rectangular. Fatal at construction."""


class EmptyLogError(SpellerError, LookupError):
    """A decode was attempted before any flash occurred."""


class SubscriptionLost(SpellerError, ConnectionError):
    """The probability stream ended or failed."""
