"""Exception hierarchy for crudbench."""


class CrudbenchError(Exception):
    """Base class for all engine errors."""


class ConnectionFailed(CrudbenchError):
    """The database could not be reached or refused the credentials."""


class NotConnected(CrudbenchError):
    """An operation needed a live session but none was open."""

    def __init__(self, message="Not connected to a database"):
        super().__init__(message)


class UnknownDatabaseType(CrudbenchError):
    def __init__(self, db_type):
        self.db_type = db_type
        super().__init__(f"Unknown database type: {db_type}")


class MetadataUnavailable(CrudbenchError):
    """The database catalog could not be read."""


class TableNotFound(CrudbenchError):
    def __init__(self, table):
        self.table = table
        super().__init__(f"Table not found: {table}")


class CoercionError(CrudbenchError):
    """Raised when user input cannot be turned into a column value."""

    def __init__(self, field, message):
        self.field = field
        super().__init__(message)


class RequiredFieldMissing(CoercionError):
    def __init__(self, field):
        super().__init__(field, f"{field or 'Value'} is required")


class InvalidFormat(CoercionError):
    def __init__(self, field, expected_pattern, value=None):
        self.expected_pattern = expected_pattern
        self.value = value
        label = field or "value"
        super().__init__(
            field, f"Invalid format for {label}. Use {expected_pattern} format."
        )


class UnknownColumn(CoercionError):
    def __init__(self, table, column):
        self.table = table
        super().__init__(column, f"Table {table} has no column {column}")


class PlanError(CrudbenchError):
    """A statement could not be built from the given metadata and values."""

    def __init__(self, table, message):
        self.table = table
        super().__init__(message)


class NoPrimaryKey(PlanError):
    def __init__(self, table):
        super().__init__(table, f"Table {table} has no single-column primary key")


class NoColumnsToInsert(PlanError):
    def __init__(self, table):
        super().__init__(table, f"No columns to insert into {table}")


class NoColumnsToUpdate(PlanError):
    def __init__(self, table):
        super().__init__(table, f"No columns to update in {table}")


class EmptyStatement(CrudbenchError):
    def __init__(self):
        super().__init__("Please enter a SQL query")


class ExecutionFailed(CrudbenchError):
    """The database rejected a statement. ``message`` is the driver's text."""

    def __init__(self, message, sql=None):
        self.message = message
        self.sql = sql
        super().__init__(message)


class QueryTimeout(ExecutionFailed):
    def __init__(self, message, sql=None, timeout=None):
        self.timeout = timeout
        super().__init__(message, sql)


class SavedQueryNotFound(CrudbenchError):
    def __init__(self, name):
        self.name = name
        super().__init__(f"Query not found: {name}")


class ExportError(CrudbenchError):
    """Results could not be written to the requested format."""
