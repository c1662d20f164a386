from .checkin import (
	DEFAULT_EVENT_DAY_KEYS,
	AttendanceCount,
	EventDay,
	EventDayCatalog,
	OutcomeKind,
	RegistrationToken,
	ScanMode,
	ScanOutcome,
	ScanState,
	UnknownEventDay,
)
from .registration import InvalidRegistration, RegistrationRecord

__all__ = [
	"DEFAULT_EVENT_DAY_KEYS",
	"AttendanceCount",
	"EventDay",
	"EventDayCatalog",
	"InvalidRegistration",
	"OutcomeKind",
	"RegistrationRecord",
	"RegistrationToken",
	"ScanMode",
	"ScanOutcome",
	"ScanState",
	"UnknownEventDay",
]
