from __future__ import annotations


class RecordError(Exception):
    status_code = 500


class RecordNotFound(RecordError):
    status_code = 404


class RecordValidationError(RecordError):
    status_code = 400
