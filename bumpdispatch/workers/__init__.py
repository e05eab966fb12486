"""Workers package initialization."""
from bumpdispatch.workers.auto_bump_worker import AutoBumpWorker, AutoBumpPassResult
from bumpdispatch.workers.watermark_notifier import (
    WatermarkNotifier,
    NotificationPassResult,
    NotificationStream,
    NEW_LISTING_STREAM,
    BUMP_STREAM
)
from bumpdispatch.workers.status_board_worker import StatusBoardWorker, StatusPassResult

__all__ = [
    "AutoBumpWorker",
    "AutoBumpPassResult",
    "WatermarkNotifier",
    "NotificationPassResult",
    "NotificationStream",
    "NEW_LISTING_STREAM",
    "BUMP_STREAM",
    "StatusBoardWorker",
    "StatusPassResult"
]
