import os
from dataclasses import dataclass
from datetime import time
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./salonqueue.db")

# Redis is optional - change events are only published when it is configured
REDIS_URL = os.getenv("REDIS_URL")
REDIS_CHANNEL_PREFIX = os.getenv("REDIS_CHANNEL_PREFIX", "salonqueue:changes")

# Comma separated list of frontend origins allowed by CORS
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

# Queue rules
# Employees checked in at or before the cutoff form round 1, later check-ins round 2
QUEUE_ROUND_CUTOFF = os.getenv("QUEUE_ROUND_CUTOFF", "10:00")
# Arrivals asking for a start further out than this need staff approval
EARLY_APPROVAL_MINUTES = int(os.getenv("EARLY_APPROVAL_MINUTES", "30"))
DEFAULT_SERVICE_DURATION = int(os.getenv("DEFAULT_SERVICE_DURATION", "30"))

# Booking calendar
BUSINESS_DAY_START = os.getenv("BUSINESS_DAY_START", "09:00")
BUSINESS_DAY_END = os.getenv("BUSINESS_DAY_END", "18:00")
BOOKING_SLOT_MINUTES = int(os.getenv("BOOKING_SLOT_MINUTES", "30"))


def parse_clock_time(value: str) -> time:
    """Parse an HH:MM string into a time"""
    hours, minutes = value.strip().split(":")
    return time(int(hours), int(minutes))


@dataclass(frozen=True)
class QueueSettings:
    """Scheduler parameters injected into the queue and booking services"""

    round_cutoff: time = time(10, 0)
    early_approval_minutes: int = 30
    default_service_duration: int = 30
    day_start: time = time(9, 0)
    day_end: time = time(18, 0)
    slot_minutes: int = 30

    @classmethod
    def from_env(cls) -> "QueueSettings":
        return cls(
            round_cutoff=parse_clock_time(QUEUE_ROUND_CUTOFF),
            early_approval_minutes=EARLY_APPROVAL_MINUTES,
            default_service_duration=DEFAULT_SERVICE_DURATION,
            day_start=parse_clock_time(BUSINESS_DAY_START),
            day_end=parse_clock_time(BUSINESS_DAY_END),
            slot_minutes=BOOKING_SLOT_MINUTES,
        )
