"""Notification store service."""

from .service import INotificationService, NotificationService

__all__ = ["INotificationService", "NotificationService"]
