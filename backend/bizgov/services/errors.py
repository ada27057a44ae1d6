"""Error taxonomy for export, import and CSV ingestion."""


class TransferError(Exception):
    """Base class for data transfer errors."""

    pass


class CorruptArchiveError(TransferError):
    """The uploaded archive or manifest cannot be trusted.

    This is the only transfer error that aborts an import; it is raised before
    any row is written.
    """

    pass


class RecordError(TransferError):
    """A single record could not be imported; counted, never escalated."""

    def __init__(self, entity: str, record_id: str | None, reason: str):
        super().__init__(f"{entity} {record_id or '<no id>'}: {reason}")
        self.entity = entity
        self.record_id = record_id
        self.reason = reason


class DuplicateKeyError(RecordError):
    """A row with the same primary key already exists."""

    pass


class DanglingReferenceError(RecordError):
    """A foreign key points at a row that exists nowhere."""

    pass


class ConstraintViolationError(RecordError):
    """The record is invalid or collides with a unique column."""

    pass


class InvalidCsvError(TransferError):
    """The uploaded CSV cannot be read at all (encoding, missing headers)."""

    pass


class MalformedCsvRowError(TransferError):
    """A CSV row failed validation."""

    def __init__(self, row_number: int, reason: str):
        super().__init__(f"Row {row_number}: {reason}")
        self.row_number = row_number
        self.reason = reason


class MissingFileError(TransferError):
    """An evidence file referenced by the database is not on disk."""

    def __init__(self, evidence_id: str, file_path: str):
        super().__init__(f"Evidence {evidence_id}: file not found at {file_path}")
        self.evidence_id = evidence_id
        self.file_path = file_path
