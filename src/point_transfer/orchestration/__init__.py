"""Orchestration layer — background work detached from request handling."""

from point_transfer.orchestration.dispatcher import NotificationDispatcher

__all__ = ["NotificationDispatcher"]
