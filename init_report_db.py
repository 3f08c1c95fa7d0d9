#!/usr/bin/env python3
"""
Report Database Initialization Script

Creates the SQLite database holding the fraud_reports table and checks
that the columns the service relies on are present.

Schema:
- id (INTEGER, PRIMARY KEY)
- call_sid (TEXT, UNIQUE) - provider call identifier, key for every webhook
- aadhaar, name, mobile (TEXT) - citizen identity captured at call creation
- call_status, language, fraud_severity (TEXT) - enum values
- recording_url, transcript, fraud_summary (TEXT, nullable)
- created_at, completed_at (ISO-8601 TEXT)
"""

import os
import sqlite3
import sys

import settings
from errors import ReportStoreError
from logging_config import get_logger
from report_store import ReportStore

logger = get_logger(__name__)

REQUIRED_COLUMNS = [
    'id', 'aadhaar', 'name', 'mobile', 'call_sid', 'call_status', 'language',
    'recording_url', 'transcript', 'fraud_summary', 'fraud_severity',
    'created_at', 'completed_at',
]


def create_reports_database(db_path: str) -> bool:
    """
    Creates the reports database with the fraud_reports table.

    Returns:
        bool: True if successful, False otherwise
    """
    try:
        ReportStore(db_path).init_schema()
    except ReportStoreError as e:
        logger.error(f"Database error: {e.details or e.message}")
        return False
    logger.info(f"Successfully created reports database: {db_path}")
    return True


def verify_database(db_path: str) -> bool:
    """
    Verifies that the fraud_reports table exists with the expected columns.

    Returns:
        bool: True if verification passes, False otherwise
    """
    if not os.path.exists(db_path):
        logger.error(f"Database file not found: {db_path}")
        return False

    try:
        conn = sqlite3.connect(db_path)
        try:
            columns = conn.execute("PRAGMA table_info(fraud_reports)").fetchall()
        finally:
            conn.close()
    except sqlite3.Error as e:
        logger.error(f"Database verification error: {e}")
        return False

    if not columns:
        logger.error("fraud_reports table not found")
        return False

    column_names = [col[1] for col in columns]
    missing_columns = [col for col in REQUIRED_COLUMNS if col not in column_names]
    if missing_columns:
        logger.error(f"Missing required columns: {missing_columns}")
        return False

    logger.info("Table schema:")
    for col in columns:
        logger.info(f"  {col[1]} ({col[2]}) - {'PRIMARY KEY' if col[5] else 'NOT NULL' if col[3] else 'NULL'}")
    return True


def main(db_path: str = settings.REPORTS_DB_FILE) -> bool:
    logger.info(f"Starting reports database initialization at {db_path}...")

    if not create_reports_database(db_path):
        logger.error("Failed to create reports database")
        return False

    if not verify_database(db_path):
        logger.error("Database verification failed")
        return False

    logger.info("Reports database initialization completed successfully!")
    return True


if __name__ == "__main__":
    sys.exit(0 if main() else 1)
