from .database import SQLiteHealthDB
from .errors import RecordError, RecordNotFound, RecordValidationError
from .service import HealthRecordService

__all__ = [
    "SQLiteHealthDB",
    "HealthRecordService",
    "RecordError",
    "RecordNotFound",
    "RecordValidationError",
]
