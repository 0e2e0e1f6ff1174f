"""Custom exceptions for Limnl services."""


class RecordNotFoundError(Exception):
    """Raised when an operation needs a record that does not exist.

    Attributes:
        table: Table the record was looked up in
        record_id: Identifier that was not found
    """

    def __init__(self, table: str, record_id: int):
        """Initialize RecordNotFoundError.

        Args:
            table: Table the record was looked up in
            record_id: Identifier that was not found
        """
        self.table = table
        self.record_id = record_id
        super().__init__(f"No {table} record with id {record_id}")


class ForeignKeyViolation(Exception):
    """Raised when a row references a parent that no longer exists.

    The background analysis treats this as its parent having been
    deleted while the analysis was running.
    """

    def __init__(self, table: str, message: str = "FOREIGN KEY constraint failed"):
        self.table = table
        super().__init__(f"{message} (table: {table})")


class DuplicateRecordError(Exception):
    """Raised when a one-per-parent record already exists."""

    def __init__(self, table: str, parent_id: int):
        self.table = table
        self.parent_id = parent_id
        super().__init__(f"{table} already has a record for parent {parent_id}")
