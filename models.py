from dataclasses import dataclass, field
from datetime import date, datetime
from typing import FrozenSet, Optional

from flask_sqlalchemy import SQLAlchemy

from dates import parse_date_key, to_date_key

db = SQLAlchemy()

CATEGORIES = (
    "Health & Fitness",
    "Learning",
    "Productivity",
    "Mindfulness",
    "Creative",
    "Social",
)


class UserSession(db.Model):
    __tablename__ = "user_session"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False)
    last_used = db.Column(db.DateTime, nullable=False)
    habits = db.relationship("Habit", backref="session", lazy=True, cascade="all, delete-orphan")


class Habit(db.Model):
    __tablename__ = "habit"

    id = db.Column(db.String(36), primary_key=True)
    user_id = db.Column(db.String(64), db.ForeignKey("user_session.id"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    category = db.Column(db.String(50), nullable=False)
    x1 = db.Column(db.Integer, nullable=False, default=0)
    x2 = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False)
    last_tracked_date = db.Column(db.DateTime)
    completed_dates = db.Column(db.JSON, nullable=False, default=list)  # ["YYYY-MM-DD", ...]
    missed_dates = db.Column(db.JSON, nullable=False, default=list)
    version = db.Column(db.Integer, nullable=False, default=1)


@dataclass(frozen=True)
class HabitRecord:
    """A habit as the engines and both stores see it.

    ``completed_dates`` and ``missed_dates`` are the source of truth;
    ``x1``/``x2`` are counters cached from their sizes.
    """

    id: str
    user_id: str
    name: str
    category: str
    created_at: datetime
    last_tracked_date: Optional[datetime] = None
    completed_dates: FrozenSet[date] = field(default_factory=frozenset)
    missed_dates: FrozenSet[date] = field(default_factory=frozenset)
    x1: int = 0
    x2: int = 0
    version: int = 1

    @classmethod
    def from_row(cls, row):
        return cls(
            id=row.id,
            user_id=row.user_id,
            name=row.name,
            category=row.category,
            created_at=row.created_at,
            last_tracked_date=row.last_tracked_date,
            completed_dates=frozenset(parse_date_key(d) for d in row.completed_dates or []),
            missed_dates=frozenset(parse_date_key(d) for d in row.missed_dates or []),
            x1=row.x1,
            x2=row.x2,
            version=row.version,
        )

    def column_values(self):
        """Values for the ``habit`` table, minus the primary key."""
        return {
            "user_id": self.user_id,
            "name": self.name,
            "category": self.category,
            "x1": self.x1,
            "x2": self.x2,
            "created_at": self.created_at,
            "last_tracked_date": self.last_tracked_date,
            "completed_dates": sorted(to_date_key(d) for d in self.completed_dates),
            "missed_dates": sorted(to_date_key(d) for d in self.missed_dates),
        }

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "category": self.category,
            "x1": self.x1,
            "x2": self.x2,
            "createdAt": self.created_at.isoformat(),
            "lastTrackedDate": self.last_tracked_date.isoformat() if self.last_tracked_date else None,
            "completedDates": sorted(to_date_key(d) for d in self.completed_dates),
            "missedDates": sorted(to_date_key(d) for d in self.missed_dates),
        }


@dataclass(frozen=True)
class SessionRecord:
    id: str
    name: str
    created_at: datetime
    last_used: datetime

    @classmethod
    def from_row(cls, row):
        return cls(id=row.id, name=row.name, created_at=row.created_at, last_used=row.last_used)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "createdAt": self.created_at.isoformat(),
            "lastUsed": self.last_used.isoformat(),
        }
