"""crudbench - browse and edit relational database tables."""

from .config import ConnectionTarget, Settings, get_settings
from .connection import ConnectionProvider, Session, get_provider
from .crud import CrudFacade
from .errors import (
    CoercionError,
    ConnectionFailed,
    CrudbenchError,
    EmptyStatement,
    ExecutionFailed,
    ExportError,
    InvalidFormat,
    MetadataUnavailable,
    NoColumnsToInsert,
    NoColumnsToUpdate,
    NoPrimaryKey,
    NotConnected,
    PlanError,
    QueryTimeout,
    RequiredFieldMissing,
    SavedQueryNotFound,
    TableNotFound,
    UnknownColumn,
    UnknownDatabaseType,
)
from .models import (
    ColumnMetadata,
    Record,
    ResultColumn,
    ResultSetView,
    SqlType,
    StatementKind,
    StatementPlan,
    TableMetadata,
)
from .query import QueryFacade
from .version import __version__

__all__ = [
    "CoercionError",
    "ColumnMetadata",
    "ConnectionFailed",
    "ConnectionProvider",
    "ConnectionTarget",
    "CrudFacade",
    "CrudbenchError",
    "EmptyStatement",
    "ExecutionFailed",
    "ExportError",
    "InvalidFormat",
    "MetadataUnavailable",
    "NoColumnsToInsert",
    "NoColumnsToUpdate",
    "NoPrimaryKey",
    "NotConnected",
    "PlanError",
    "QueryFacade",
    "QueryTimeout",
    "Record",
    "RequiredFieldMissing",
    "ResultColumn",
    "ResultSetView",
    "SavedQueryNotFound",
    "Session",
    "Settings",
    "SqlType",
    "StatementKind",
    "StatementPlan",
    "TableMetadata",
    "TableNotFound",
    "UnknownColumn",
    "UnknownDatabaseType",
    "get_provider",
    "get_settings",
    "__version__",
]
