############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# __init__.py: Services package initialization
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Services for VideoRelay."""

from backend.app.services.quota_ledger import QuotaLedger
from backend.app.services.task_recorder import TaskRecorder
from backend.app.services.video_relay import RelayStage, VideoRelayService

__all__ = ["QuotaLedger", "TaskRecorder", "RelayStage", "VideoRelayService"]
