from .checkin_client import CheckinClient, RegistrationClient, RegistrationRejected, TransportError
from .coordinator import CheckinCoordinator
from .counter_sync import AttendanceCounterSync
from .day_context import DayContext, DayNotSelected
from .dedup import DedupFilter
from .feedback import FeedbackEmitter, VisualSignal, VisualTone
from .qr_scanner import CameraUnavailable, DecoderAdapter, QRScanner

__all__ = [
	"AttendanceCounterSync",
	"CameraUnavailable",
	"CheckinClient",
	"CheckinCoordinator",
	"DayContext",
	"DayNotSelected",
	"DecoderAdapter",
	"DedupFilter",
	"FeedbackEmitter",
	"QRScanner",
	"RegistrationClient",
	"RegistrationRejected",
	"TransportError",
	"VisualSignal",
	"VisualTone",
]
