"""
Database Package Initialization.

============================================================
RELATIONAL STORE
============================================================

Async SQLAlchemy persistence for the verification engine:

- batches      cached/fallback batch records
- scan_logs    the append-only scan ledger
- alerts       risk and recall alerts
- audit_logs   audit trail

Every write is explicit (commit/rollback) and logged. Read
failures surface as SourceUnavailableError so callers can
degrade to the remaining sources.

============================================================
"""

from .engine import (
    Base,
    DEFAULT_DATABASE_URL,
    get_database_url,
    to_async_url,
    create_database_engine,
    get_engine,
    create_session_factory,
    get_session_factory,
    transaction_scope,
    verify_database_connection,
    create_all_tables,
    initialize_database,
    DatabasePersistenceError,
    DatabaseConnectionError,
    DatabaseInitializationError,
)
from .models import (
    BatchModel,
    ScanLogModel,
    AlertModel,
    AuditLogModel,
    REQUIRED_TABLES,
)
from .repository import RelationalStore
from .scan_ledger import ScanLedger, ScanWindow, WIDEST_WINDOW


__all__ = [
    # Engine & Session
    "Base",
    "DEFAULT_DATABASE_URL",
    "get_database_url",
    "to_async_url",
    "create_database_engine",
    "get_engine",
    "create_session_factory",
    "get_session_factory",
    "transaction_scope",
    # Initialization
    "verify_database_connection",
    "create_all_tables",
    "initialize_database",
    # Models
    "BatchModel",
    "ScanLogModel",
    "AlertModel",
    "AuditLogModel",
    "REQUIRED_TABLES",
    # Repository
    "RelationalStore",
    "ScanLedger",
    "ScanWindow",
    "WIDEST_WINDOW",
    # Exceptions
    "DatabasePersistenceError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
]
