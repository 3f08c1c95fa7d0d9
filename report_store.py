#!/usr/bin/env python3
"""
Report Store Module

SQLite-backed persistence for fraud reports. Every webhook after call
creation addresses its report through the provider's CallSid, which is
unique across the table.

Key Features:
- Thread-safe operations (one lock per store)
- Partial, last-write-wins updates keyed by CallSid
- Failures are logged and raised as ReportStoreError
- Reports are never deleted
"""

import sqlite3
import threading
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from errors import DuplicateReportError, ReportStoreError, ValidationError
from logging_config import get_logger
from models import FraudReport

logger = get_logger(__name__)

REPORTS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS fraud_reports (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    aadhaar TEXT NOT NULL,
    name TEXT NOT NULL,
    mobile TEXT NOT NULL,
    call_sid TEXT NOT NULL UNIQUE,
    call_status TEXT NOT NULL DEFAULT 'initiated',
    language TEXT NOT NULL DEFAULT 'en-US',
    recording_url TEXT,
    transcript TEXT,
    fraud_summary TEXT,
    fraud_severity TEXT NOT NULL DEFAULT 'medium',
    created_at TEXT NOT NULL,
    completed_at TEXT
)
"""

REPORTS_INDEX_SQL = """
CREATE INDEX IF NOT EXISTS idx_fraud_reports_created_at
ON fraud_reports(created_at)
"""

REQUIRED_FIELDS = ('aadhaar', 'name', 'mobile', 'call_sid')

UPDATABLE_FIELDS = frozenset({
    'call_status', 'language', 'recording_url', 'transcript',
    'fraud_summary', 'fraud_severity', 'completed_at',
})


def _to_column(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class ReportStore:
    """
    Database-backed store for FraudReport records.
    """

    def __init__(self, db_path: str = "fraud_reports.db"):
        """
        Initialize the report store.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path
        self._lock = threading.Lock()
        self._schema_ready = False

    def _get_connection(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
        except sqlite3.Error as e:
            logger.error(f"Failed to connect to database {self.db_path}: {e}")
            raise ReportStoreError("Database unavailable", str(e)) from e
        if not self._schema_ready:
            try:
                conn.execute(REPORTS_TABLE_SQL)
                conn.execute(REPORTS_INDEX_SQL)
                conn.commit()
            except sqlite3.Error as e:
                conn.close()
                logger.error(f"Failed to create fraud_reports schema: {e}")
                raise ReportStoreError("Database unavailable", str(e)) from e
            self._schema_ready = True
        return conn

    def init_schema(self) -> None:
        """Create the fraud_reports table and its index if missing."""
        with self._lock:
            self._get_connection().close()

    def create(self, report: FraudReport) -> FraudReport:
        """
        Insert a new report.

        Args:
            report: Report to persist; its id is filled in on success

        Returns:
            The stored report

        Raises:
            ValidationError: a required field is empty
            DuplicateReportError: a report with this CallSid already exists
            ReportStoreError: any other database failure
        """
        missing = [name for name in REQUIRED_FIELDS if not getattr(report, name)]
        if missing:
            raise ValidationError(f"Missing required report fields: {', '.join(missing)}")

        with self._lock:
            conn = self._get_connection()
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO fraud_reports (
                        aadhaar, name, mobile, call_sid, call_status, language,
                        recording_url, transcript, fraud_summary, fraud_severity,
                        created_at, completed_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        report.aadhaar, report.name, report.mobile, report.call_sid,
                        _to_column(report.call_status), _to_column(report.language),
                        report.recording_url, report.transcript, report.fraud_summary,
                        _to_column(report.fraud_severity), _to_column(report.created_at),
                        _to_column(report.completed_at),
                    ),
                )
                conn.commit()
                report.id = cursor.lastrowid
                logger.info(f"Created fraud report {report.id} for call {report.call_sid}")
                return report
            except sqlite3.IntegrityError as e:
                logger.error(f"Duplicate fraud report for call {report.call_sid}: {e}")
                raise DuplicateReportError(
                    f"A report for call {report.call_sid} already exists") from e
            except sqlite3.Error as e:
                logger.error(f"Database error creating report for {report.call_sid}: {e}")
                raise ReportStoreError("Failed to save report", str(e)) from e
            finally:
                conn.close()

    def find_by_call_id(self, call_sid: str) -> Optional[FraudReport]:
        with self._lock:
            conn = self._get_connection()
            try:
                row = conn.execute(
                    "SELECT * FROM fraud_reports WHERE call_sid = ?", (call_sid,)
                ).fetchone()
                return FraudReport.from_row(row) if row else None
            except sqlite3.Error as e:
                logger.error(f"Database error finding report for {call_sid}: {e}")
                raise ReportStoreError("Failed to read report", str(e)) from e
            finally:
                conn.close()

    def update_by_call_id(self, call_sid: str, fields: Dict[str, Any]) -> bool:
        """
        Merge the given fields into the report for call_sid.

        Only the listed columns are written, so concurrent updates touching
        disjoint fields do not overwrite each other.

        Returns:
            bool: True if a report matched, False if none did (not an error)
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update report fields: {', '.join(sorted(unknown))}")
        if not fields:
            return False

        columns = sorted(fields)
        assignments = ", ".join(f"{column} = ?" for column in columns)
        params = [_to_column(fields[column]) for column in columns] + [call_sid]

        with self._lock:
            conn = self._get_connection()
            try:
                cursor = conn.execute(
                    f"UPDATE fraud_reports SET {assignments} WHERE call_sid = ?", params
                )
                conn.commit()
                if cursor.rowcount == 0:
                    logger.debug(f"No report for call {call_sid}; update skipped")
                    return False
                logger.debug(f"Updated report for {call_sid}: {columns}")
                return True
            except sqlite3.Error as e:
                logger.error(f"Database error updating report for {call_sid}: {e}")
                raise ReportStoreError("Failed to update report", str(e)) from e
            finally:
                conn.close()

    def find_by_recording_fragment(self, fragment: str) -> Optional[FraudReport]:
        """Find the report whose recording URL contains fragment."""
        if not fragment:
            return None
        with self._lock:
            conn = self._get_connection()
            try:
                row = conn.execute(
                    """
                    SELECT * FROM fraud_reports
                    WHERE recording_url IS NOT NULL AND instr(recording_url, ?) > 0
                    ORDER BY created_at DESC, id DESC
                    LIMIT 1
                    """,
                    (fragment,),
                ).fetchone()
                return FraudReport.from_row(row) if row else None
            except sqlite3.Error as e:
                logger.error(f"Database error finding recording {fragment}: {e}")
                raise ReportStoreError("Failed to read report", str(e)) from e
            finally:
                conn.close()

    def list_all(self) -> List[FraudReport]:
        """All reports, newest first."""
        with self._lock:
            conn = self._get_connection()
            try:
                rows = conn.execute(
                    "SELECT * FROM fraud_reports ORDER BY created_at DESC, id DESC"
                ).fetchall()
                return [FraudReport.from_row(row) for row in rows]
            except sqlite3.Error as e:
                logger.error(f"Database error listing reports: {e}")
                raise ReportStoreError("Error fetching reports", str(e)) from e
            finally:
                conn.close()

    def count(self) -> int:
        with self._lock:
            conn = self._get_connection()
            try:
                result = conn.execute("SELECT COUNT(*) AS count FROM fraud_reports").fetchone()
                return result['count'] if result else 0
            except sqlite3.Error as e:
                logger.error(f"Database error counting reports: {e}")
                raise ReportStoreError("Failed to count reports", str(e)) from e
            finally:
                conn.close()
