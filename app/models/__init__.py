# Models package for wrapflow

from .execution_log import ExecutionLogRecord, StageLogRecord
from .pipeline import STATUS_ACTIVE, STATUS_INACTIVE, PipelineRecord

__all__ = [
    "ExecutionLogRecord",
    "PipelineRecord",
    "STATUS_ACTIVE",
    "STATUS_INACTIVE",
    "StageLogRecord",
]
