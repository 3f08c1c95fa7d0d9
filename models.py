#!/usr/bin/env python3
"""
Fraud report record and the call-status lifecycle.

One FraudReport exists per phone call and is keyed by the provider's
CallSid. Status values are the provider's call-status strings plus the
lifecycle markers this service sets itself (language-selected, recording,
transcribed).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

import settings


class CallStatus(str, Enum):
    INITIATED = 'initiated'
    RINGING = 'ringing'
    IN_PROGRESS = 'in-progress'
    LANGUAGE_SELECTED = 'language-selected'
    RECORDING = 'recording'
    TRANSCRIBED = 'transcribed'
    COMPLETED = 'completed'
    NO_ANSWER = 'no-answer'
    BUSY = 'busy'
    FAILED = 'failed'
    CANCELED = 'canceled'


class Language(str, Enum):
    DEFAULT = settings.DEFAULT_LANGUAGE
    ALTERNATE = settings.ALTERNATE_LANGUAGE


class Severity(str, Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    CRITICAL = 'critical'
    NONE = 'no-fraud'


# Forward order of the non-failure path
_STATUS_RANK = {
    CallStatus.INITIATED: 0,
    CallStatus.RINGING: 1,
    CallStatus.IN_PROGRESS: 2,
    CallStatus.LANGUAGE_SELECTED: 3,
    CallStatus.RECORDING: 4,
    CallStatus.TRANSCRIBED: 5,
    CallStatus.COMPLETED: 6,
}

FAILURE_STATUSES = frozenset({
    CallStatus.NO_ANSWER, CallStatus.BUSY, CallStatus.FAILED, CallStatus.CANCELED,
})
TERMINAL_STATUSES = FAILURE_STATUSES | {CallStatus.COMPLETED}


def parse_call_status(value: Optional[str]) -> Optional[CallStatus]:
    """Map a provider status string onto CallStatus, or None if unknown."""
    if not value:
        return None
    try:
        return CallStatus(value.strip().lower())
    except ValueError:
        return None


def can_transition(current: Optional[CallStatus], target: CallStatus) -> bool:
    """True if moving from current to target goes forward in the lifecycle."""
    if current is None:
        return True
    if current in TERMINAL_STATUSES:
        return False
    if target in FAILURE_STATUSES:
        return True
    return _STATUS_RANK[target] > _STATUS_RANK[current]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class FraudReport:
    aadhaar: str
    name: str
    mobile: str
    call_sid: str
    call_status: CallStatus = CallStatus.INITIATED
    language: Language = Language.DEFAULT
    recording_url: Optional[str] = None
    transcript: Optional[str] = None
    fraud_summary: Optional[str] = None
    fraud_severity: Severity = Severity.MEDIUM
    created_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    id: Optional[int] = None

    @classmethod
    def from_row(cls, row) -> 'FraudReport':
        """Build a report from a sqlite3.Row of the fraud_reports table."""
        completed_at = row['completed_at']
        return cls(
            id=row['id'],
            aadhaar=row['aadhaar'],
            name=row['name'],
            mobile=row['mobile'],
            call_sid=row['call_sid'],
            call_status=parse_call_status(row['call_status']) or CallStatus.INITIATED,
            language=Language(row['language']),
            recording_url=row['recording_url'],
            transcript=row['transcript'],
            fraud_summary=row['fraud_summary'],
            fraud_severity=Severity(row['fraud_severity']),
            created_at=datetime.fromisoformat(row['created_at']),
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'aadhaar': self.aadhaar,
            'name': self.name,
            'mobile': self.mobile,
            'callSid': self.call_sid,
            'callStatus': self.call_status.value,
            'language': self.language.value,
            'recordingUrl': self.recording_url,
            'transcript': self.transcript,
            'fraudSummary': self.fraud_summary,
            'fraudSeverity': self.fraud_severity.value,
            'createdAt': self.created_at.isoformat(),
            'completedAt': self.completed_at.isoformat() if self.completed_at else None,
        }
