"""Record dataclasses and the in-memory Record Store"""

import logging
from dataclasses import dataclass, field, fields
from datetime import datetime, date
from typing import Any, Dict, List, Optional

from .utils import generate_id, parse_date, parse_datetime

logger = logging.getLogger(__name__)

_date = date


KARMA_LEVELS = [
    (0, "Beginner"),
    (50, "Contributor"),
    (200, "Achiever"),
    (500, "Expert"),
    (1000, "Legend"),
]


def _camel(name: str) -> str:
    """Convert a snake_case attribute name to its camelCase JSON key"""
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


class Record:
    """Mixin giving dataclass records camelCase JSON (de)serialisation"""

    DATE_FIELDS: tuple = ()
    DATETIME_FIELDS: tuple = ()

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            elif isinstance(value, list):
                value = list(value)
            data[_camel(f.name)] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        kwargs = {}
        for f in fields(cls):
            key = _camel(f.name)
            if key not in data:
                continue
            value = data[key]
            if value is None and f.default is not None:
                # Only Optional fields default to None; others keep their default
                continue
            if f.name in cls.DATE_FIELDS:
                value = parse_date(value)
            elif f.name in cls.DATETIME_FIELDS:
                value = parse_datetime(value)
            elif isinstance(value, list):
                value = list(value)
            kwargs[f.name] = value
        return cls(**kwargs)


@dataclass
class Project(Record):
    """A body of work that owns tasks, activities and one metric"""

    DATETIME_FIELDS = ("created_at", "updated_at", "completed_at")

    id: str = field(default_factory=generate_id)
    name: str = ""
    description: str = ""
    status: str = "active"  # active, on-hold, completed, archived
    priority: int = 3  # 1-5
    tags: List[str] = field(default_factory=list)
    color: str = "#6366f1"
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None


@dataclass
class Task(Record):
    """Actionable work item living in one kanban column"""

    DATE_FIELDS = ("due_date",)
    DATETIME_FIELDS = ("created_at", "updated_at", "completed_at")

    id: str = field(default_factory=generate_id)
    name: str = ""
    project_id: Optional[str] = None
    description: str = ""
    status: str = "backlog"  # backlog, this-week, in-progress, blocked, done
    blocker_note: str = ""
    priority: int = 3  # 1-5
    due_date: Optional[date] = None
    tags: List[str] = field(default_factory=list)
    sort_order: float = 0.0
    completed_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


@dataclass
class Activity(Record):
    """Freeform log entry"""

    DATE_FIELDS = ("date",)
    DATETIME_FIELDS = ("timestamp", "created_at", "updated_at")

    id: str = field(default_factory=generate_id)
    entry: str = ""
    project_id: Optional[str] = None
    task_id: Optional[str] = None
    category: str = "other"  # build, deploy, meeting, research, support, other
    date: Optional[_date] = None  # calendar day the work happened
    tags: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: Optional[datetime] = None


@dataclass
class Metric(Record):
    """Time-saved inputs for one project"""

    DATETIME_FIELDS = ("created_at", "updated_at")

    id: str = field(default_factory=generate_id)
    project_id: Optional[str] = None
    hours_to_run: float = 0.0  # manual hours per execution
    runs_per_week: float = 0.0
    run_duration_minutes: float = 0.0  # automated minutes per execution
    hours_to_build: float = 0.0
    people_impacted: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


@dataclass
class WeeklySnapshot(Record):
    """Point-in-time rollup of task movement for one Monday-Sunday week"""

    DATE_FIELDS = ("week_start", "week_end")
    DATETIME_FIELDS = ("created_at", "updated_at")

    id: str = field(default_factory=generate_id)
    week_start: Optional[date] = None
    week_end: Optional[date] = None
    completed: List[str] = field(default_factory=list)
    in_progress: List[str] = field(default_factory=list)
    new_tasks: List[str] = field(default_factory=list)
    stuck: List[str] = field(default_factory=list)
    summary: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


@dataclass
class Settings(Record):
    """Singleton user preferences and gamification state"""

    DATE_FIELDS = ("last_active_date",)

    theme: str = "dark"
    user_name: str = ""
    job_title: str = ""
    boss_name: str = ""
    onboarding_complete: bool = False
    default_view: str = "dashboard"
    streak: int = 0
    longest_streak: int = 0
    last_active_date: Optional[date] = None
    karma: int = 0
    karma_level: str = "Beginner"


@dataclass
class RecordStore:
    """All application state, passed explicitly to every engine function"""

    projects: List[Project] = field(default_factory=list)
    tasks: List[Task] = field(default_factory=list)
    activities: List[Activity] = field(default_factory=list)
    metrics: List[Metric] = field(default_factory=list)
    weekly_snapshots: List[WeeklySnapshot] = field(default_factory=list)
    settings: Settings = field(default_factory=Settings)

    def get_project(self, project_id: Optional[str]) -> Optional[Project]:
        return next((p for p in self.projects if p.id == project_id), None)

    def get_task(self, task_id: Optional[str]) -> Optional[Task]:
        return next((t for t in self.tasks if t.id == task_id), None)

    def get_activity(self, activity_id: Optional[str]) -> Optional[Activity]:
        return next((a for a in self.activities if a.id == activity_id), None)

    def get_metric_for_project(self, project_id: Optional[str]) -> Optional[Metric]:
        return next((m for m in self.metrics if m.project_id == project_id), None)

    def get_snapshot(self, week_start: date) -> Optional[WeeklySnapshot]:
        return next((s for s in self.weekly_snapshots if s.week_start == week_start), None)

    def project_name(self, project_id: Optional[str]) -> Optional[str]:
        project = self.get_project(project_id)
        return project.name if project else None

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the whole store into the persisted JSON document shape"""
        return {
            "projects": [p.to_dict() for p in self.projects],
            "tasks": [t.to_dict() for t in self.tasks],
            "activities": [a.to_dict() for a in self.activities],
            "metrics": [m.to_dict() for m in self.metrics],
            "weeklySnapshots": [s.to_dict() for s in self.weekly_snapshots],
            "settings": self.settings.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], strict: bool = False) -> "RecordStore":
        """Build a store from a persisted document; missing keys fall back to defaults

        Args:
            data: Parsed JSON document
            strict: Raise on the first unreadable record instead of skipping it

        Raises:
            ValueError: in strict mode, if a collection or record cannot be read
        """

        def reject(message: str) -> None:
            if strict:
                raise ValueError(message)
            logger.warning("Skipping %s", message)

        def records(key, record_cls):
            items = data.get(key) or []
            if not isinstance(items, list):
                reject(f"'{key}': expected a list")
                return []

            loaded = []
            for index, item in enumerate(items):
                if not isinstance(item, dict):
                    reject(f"{key}[{index}]: expected an object")
                    continue
                try:
                    loaded.append(record_cls.from_dict(item))
                except (ValueError, TypeError) as e:
                    reject(f"{key}[{index}]: {e}")
            return loaded

        settings_data = data.get("settings")
        try:
            settings = Settings.from_dict(settings_data if isinstance(settings_data, dict) else {})
        except (ValueError, TypeError) as e:
            reject(f"settings: {e}")
            settings = Settings()

        return cls(
            projects=records("projects", Project),
            tasks=records("tasks", Task),
            activities=records("activities", Activity),
            metrics=records("metrics", Metric),
            weekly_snapshots=records("weeklySnapshots", WeeklySnapshot),
            settings=settings,
        )
