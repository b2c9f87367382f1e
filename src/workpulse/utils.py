"""Utility functions for WorkPulse"""

import json
import os
import uuid
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from datetime import datetime, date, timedelta


class ValidationError(ValueError):
    """Raised when input is rejected before any record is mutated"""


class NotFoundError(LookupError):
    """Raised when a reference does not resolve to exactly one record"""


class Config:
    """Configuration manager for WorkPulse"""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize config manager

        Args:
            config_path: Path to config file. If None, uses $WORKPULSE_CONFIG or
                ~/.workpulse/config.json
        """
        if config_path is None:
            config_path = self._get_default_config_path()

        self.config_path = Path(config_path).expanduser()
        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        self._config: Dict[str, Any] = self._load_config()

    @staticmethod
    def _get_default_config_path() -> str:
        """Get default config path in user's home directory"""
        env_path = os.environ.get("WORKPULSE_CONFIG")
        if env_path:
            return env_path
        return str(Path.home() / ".workpulse" / "config.json")

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file, filling in missing keys"""
        config = self._get_default_config()
        if not self.config_path.exists():
            return config

        try:
            with open(self.config_path, "r") as f:
                config.update(json.load(f))
        except (json.JSONDecodeError, IOError):
            return self._get_default_config()
        return config

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration"""
        return {
            "db_path": str(self.config_path.parent / "workpulse.db"),
            "storage_slot": "workpulse-data",
            "sync_marker_slot": "workpulse-lastSync",
            "remote_url": None,
            "user_id": None,
            "sync_debounce_seconds": 2.0,
            "snapshot_stale_hours": 24,
            "default_report_preset": "weekly",
            "log_level": "WARNING",
        }

    def save(self) -> None:
        """Save configuration to file"""
        with open(self.config_path, "w") as f:
            json.dump(self._config, f, indent=2)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value"""
        return self._config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set configuration value and save"""
        self._config[key] = value
        self.save()

    def update(self, updates: Dict[str, Any]) -> None:
        """Update multiple configuration values"""
        self._config.update(updates)
        self.save()


def generate_id() -> str:
    """Generate an opaque unique record id"""
    return uuid.uuid4().hex


def to_local_date_string(d: Optional[date] = None) -> str:
    """Format a date as YYYY-MM-DD, defaulting to today"""
    return (d or date.today()).strftime("%Y-%m-%d")


def format_date(d: Optional[date]) -> str:
    """Format date for display"""
    if d is None:
        return "No deadline"
    return d.strftime("%b %d, %Y").replace(" 0", " ")


def format_date_short(d: Optional[date]) -> str:
    """Format date for display without the year"""
    if d is None:
        return ""
    return d.strftime("%b %d").replace(" 0", " ")


def format_datetime(dt: Optional[datetime]) -> str:
    """Format datetime for display"""
    if dt is None:
        return "Never"
    return dt.strftime("%Y-%m-%d %H:%M:%S")


def parse_date(value) -> Optional[date]:
    """Parse a calendar date from a string, date or datetime"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    from dateutil import parser

    try:
        return parser.parse(str(value)).date()
    except (ValueError, OverflowError) as e:
        raise ValidationError(f"Invalid date '{value}'") from e


def parse_datetime(value) -> Optional[datetime]:
    """Parse an instant from an ISO string or epoch milliseconds"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000)

    from dateutil import parser

    try:
        parsed = parser.parse(str(value))
    except (ValueError, OverflowError) as e:
        raise ValidationError(f"Invalid timestamp '{value}'") from e
    if parsed.tzinfo is not None:
        # Stored instants are compared as local wall-clock time
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def get_week_bounds(d: Optional[date] = None) -> Tuple[date, date]:
    """Get the Monday and Sunday of the week containing d"""
    d = d or date.today()
    monday = d - timedelta(days=d.weekday())
    return monday, monday + timedelta(days=6)


def get_relative_date(d: Optional[date], today: Optional[date] = None) -> str:
    """Describe a calendar date relative to today"""
    if d is None:
        return ""
    today = today or date.today()
    diff = (today - d).days
    if diff == 0:
        return "Today"
    if diff == 1:
        return "Yesterday"
    if 0 < diff < 7:
        return f"{diff} days ago"
    return format_date(d)


def get_date_group(d: Optional[date], today: Optional[date] = None) -> str:
    """Bucket a calendar date for the activity feed"""
    if d is None:
        return "Unknown"
    today = today or date.today()
    diff = (today - d).days
    if diff == 0:
        return "Today"
    if diff == 1:
        return "Yesterday"
    if 0 < diff < 7:
        return "This Week"
    if 0 < diff < 14:
        return "Last Week"
    if 0 < diff < 30:
        return "This Month"
    return format_date(d)


def get_due_urgency(due: Optional[date], today: Optional[date] = None) -> str:
    """Classify a due date as overdue, today, this-week or future"""
    if due is None:
        return ""
    today = today or date.today()
    diff = (due - today).days
    if diff < 0:
        return "overdue"
    if diff == 0:
        return "today"
    if diff <= 7:
        return "this-week"
    return "future"


def get_relative_time(dt: datetime, now: Optional[datetime] = None) -> str:
    """Get human-readable relative time"""
    now = now or datetime.now()
    diff = now - dt

    seconds = diff.total_seconds()
    if seconds < 60:
        return "just now"
    elif seconds < 3600:
        minutes = int(seconds / 60)
        return f"{minutes}m ago"
    elif seconds < 86400:
        hours = int(seconds / 3600)
        return f"{hours}h ago"
    elif seconds < 604800:
        days = int(seconds / 86400)
        return f"{days}d ago"
    elif seconds < 2592000:
        weeks = int(seconds / 604800)
        return f"{weeks}w ago"
    else:
        months = int(seconds / 2592000)
        return f"{months}mo ago"


def truncate_string(s: str, max_length: int = 50) -> str:
    """Truncate string with ellipsis if too long"""
    if len(s) <= max_length:
        return s
    return s[: max_length - 3] + "..."


def parse_tags(value) -> list:
    """Normalize comma-separated or list tags, dropping blanks"""
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [t.strip() for t in value if t and t.strip()]


def validate_priority(priority: int) -> int:
    """Validate and clamp priority to 1-5 range"""
    return max(1, min(5, int(priority)))


def validate_status(status: str, allowed: list) -> str:
    """Validate status against allowed values"""
    if status not in allowed:
        raise ValidationError(f"Invalid status '{status}'. Must be one of: {', '.join(allowed)}")
    return status


def validate_text(value: Optional[str], field: str, max_length: int) -> str:
    """Require non-blank text within a length limit"""
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field} is required")
    if len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return text


# Status constants
PROJECT_STATUSES = ["active", "on-hold", "completed", "archived"]
TASK_STATUSES = ["backlog", "this-week", "in-progress", "blocked", "done"]
ACTIVITY_CATEGORIES = ["build", "deploy", "meeting", "research", "support", "other"]
THEMES = ["dark", "light"]
VIEWS = ["dashboard", "projects", "kanban", "activities", "metrics", "reports"]

PROJECT_NAME_MAX = 100
TASK_NAME_MAX = 200
ACTIVITY_ENTRY_MAX = 1000
