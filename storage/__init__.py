from .container import StorageContainer
from .contracts import HistoryRepo, TagIndexRepo
from .models import Candidate, FileRecord, HistoryRecord, Operation, OperationLogEntry

__all__ = [
    "StorageContainer",
    "TagIndexRepo",
    "HistoryRepo",
    "Candidate",
    "FileRecord",
    "HistoryRecord",
    "Operation",
    "OperationLogEntry",
]
