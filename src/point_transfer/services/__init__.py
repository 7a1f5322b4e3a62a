"""Application services — use case orchestration."""

from point_transfer.services.notification_service import EmailNotifier
from point_transfer.services.transfer_service import TransferService

__all__ = ["EmailNotifier", "TransferService"]
