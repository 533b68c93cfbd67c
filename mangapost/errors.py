from __future__ import annotations


class PublishError(Exception):
    """Base for every failure surfaced by the dashboard."""


class ValidationError(PublishError):
    pass


class AuthError(PublishError):
    pass


class PersistenceError(PublishError):
    pass


class NotificationError(PublishError):
    pass
