import logging
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from errors import ConcurrentUpdateError, NotFoundError, StorageUnavailable
from models import Habit, HabitRecord, SessionRecord, UserSession, db

logger = logging.getLogger(__name__)


def new_habit_id():
    return str(uuid.uuid4())


def new_session_id(now):
    return f"user_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:9]}"


class HabitStore(ABC):
    """Persistence for habits and the sessions that own them.

    Writes to a habit go through ``save_habit`` with the version the caller
    read; a store rejects the write with ``ConcurrentUpdateError`` when the
    stored version has moved on, so at most one read-modify-write per habit
    succeeds.
    """

    name = "abstract"

    @abstractmethod
    def list_habits(self, user_id):
        ...

    @abstractmethod
    def get_habit(self, habit_id, user_id):
        ...

    @abstractmethod
    def create_habit(self, user_id, name, category, now):
        ...

    @abstractmethod
    def save_habit(self, habit, expected_version):
        ...

    @abstractmethod
    def delete_habit(self, habit_id, user_id):
        ...

    @abstractmethod
    def get_session(self, session_id):
        ...

    @abstractmethod
    def list_sessions(self, limit=10):
        ...

    @abstractmethod
    def create_session(self, name, now):
        ...

    @abstractmethod
    def update_session(self, session_id, name):
        ...

    @abstractmethod
    def delete_session(self, session_id):
        ...

    @abstractmethod
    def touch_session(self, session_id, now):
        ...


class MemoryHabitStore(HabitStore):
    name = "memory"

    def __init__(self):
        self._habits = {}
        self._sessions = {}
        self._lock = threading.Lock()

    def list_habits(self, user_id):
        with self._lock:
            habits = [h for h in self._habits.values() if h.user_id == user_id]
        return sorted(habits, key=lambda h: h.created_at, reverse=True)

    def get_habit(self, habit_id, user_id):
        habit = self._habits.get(habit_id)
        return habit if habit and habit.user_id == user_id else None

    def create_habit(self, user_id, name, category, now):
        habit = HabitRecord(id=new_habit_id(), user_id=user_id, name=name, category=category, created_at=now)
        with self._lock:
            self._habits[habit.id] = habit
        return habit

    def save_habit(self, habit, expected_version):
        with self._lock:
            stored = self._habits.get(habit.id)
            if stored is None or stored.user_id != habit.user_id:
                raise NotFoundError(habit.id)
            if stored.version != expected_version:
                raise ConcurrentUpdateError(habit.id)
            saved = replace(habit, version=expected_version + 1)
            self._habits[habit.id] = saved
        return saved

    def delete_habit(self, habit_id, user_id):
        with self._lock:
            habit = self._habits.get(habit_id)
            if not habit or habit.user_id != user_id:
                return False
            del self._habits[habit_id]
        return True

    def get_session(self, session_id):
        return self._sessions.get(session_id)

    def list_sessions(self, limit=10):
        with self._lock:
            sessions = list(self._sessions.values())
        sessions.sort(key=lambda s: s.last_used, reverse=True)
        return sessions[:limit]

    def create_session(self, name, now):
        session = SessionRecord(id=new_session_id(now), name=name, created_at=now, last_used=now)
        with self._lock:
            self._sessions[session.id] = session
        return session

    def update_session(self, session_id, name):
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            session = replace(session, name=name)
            self._sessions[session_id] = session
        return session

    def delete_session(self, session_id):
        with self._lock:
            if self._sessions.pop(session_id, None) is None:
                return False
            for habit_id in [h.id for h in self._habits.values() if h.user_id == session_id]:
                del self._habits[habit_id]
        return True

    def touch_session(self, session_id, now):
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                self._sessions[session_id] = replace(session, last_used=now)


class SQLHabitStore(HabitStore):
    name = "sql"

    @contextmanager
    def _guard(self, action):
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(f"Database error during {action}: {str(e)}")
            db.session.rollback()
            raise StorageUnavailable(f"Failed to {action}") from e

    def list_habits(self, user_id):
        with self._guard("list habits"):
            rows = Habit.query.filter_by(user_id=user_id).order_by(Habit.created_at.desc()).all()
            return [HabitRecord.from_row(row) for row in rows]

    def get_habit(self, habit_id, user_id):
        with self._guard("read habit"):
            row = Habit.query.filter_by(id=habit_id, user_id=user_id).first()
            return HabitRecord.from_row(row) if row else None

    def create_habit(self, user_id, name, category, now):
        habit = HabitRecord(id=new_habit_id(), user_id=user_id, name=name, category=category, created_at=now)
        with self._guard("create habit"):
            db.session.add(Habit(id=habit.id, version=habit.version, **habit.column_values()))
            db.session.commit()
        return habit

    def save_habit(self, habit, expected_version):
        with self._guard("save habit"):
            result = db.session.execute(
                update(Habit)
                .where(
                    Habit.id == habit.id,
                    Habit.user_id == habit.user_id,
                    Habit.version == expected_version,
                )
                .values(version=expected_version + 1, **habit.column_values())
            )
            if result.rowcount == 0:
                db.session.rollback()
                exists = Habit.query.filter_by(id=habit.id, user_id=habit.user_id).first() is not None
                if exists:
                    raise ConcurrentUpdateError(habit.id)
                raise NotFoundError(habit.id)
            db.session.commit()
        return replace(habit, version=expected_version + 1)

    def delete_habit(self, habit_id, user_id):
        with self._guard("delete habit"):
            row = Habit.query.filter_by(id=habit_id, user_id=user_id).first()
            if row is None:
                return False
            db.session.delete(row)
            db.session.commit()
        return True

    def get_session(self, session_id):
        with self._guard("read session"):
            row = db.session.get(UserSession, session_id)
            return SessionRecord.from_row(row) if row else None

    def list_sessions(self, limit=10):
        with self._guard("list sessions"):
            rows = UserSession.query.order_by(UserSession.last_used.desc()).limit(limit).all()
            return [SessionRecord.from_row(row) for row in rows]

    def create_session(self, name, now):
        session = SessionRecord(id=new_session_id(now), name=name, created_at=now, last_used=now)
        with self._guard("create session"):
            db.session.add(UserSession(id=session.id, name=name, created_at=now, last_used=now))
            db.session.commit()
        return session

    def update_session(self, session_id, name):
        with self._guard("update session"):
            row = db.session.get(UserSession, session_id)
            if row is None:
                return None
            row.name = name
            db.session.commit()
            return SessionRecord.from_row(row)

    def delete_session(self, session_id):
        with self._guard("delete session"):
            row = db.session.get(UserSession, session_id)
            if row is None:
                return False
            db.session.delete(row)
            db.session.commit()
        return True

    def touch_session(self, session_id, now):
        with self._guard("touch session"):
            db.session.execute(update(UserSession).where(UserSession.id == session_id).values(last_used=now))
            db.session.commit()


def create_store(app):
    """Pick the store named by STORAGE_BACKEND once, at startup."""
    backend = app.config.get("STORAGE_BACKEND", "auto")
    if backend == "memory":
        logger.info("Using in-memory storage")
        return MemoryHabitStore()
    with app.app_context():
        try:
            db.create_all()
        except SQLAlchemyError as e:
            if backend == "sql":
                raise StorageUnavailable("Database unreachable") from e
            logger.warning(f"Database connection failed, using in-memory storage as fallback: {str(e)}")
            return MemoryHabitStore()
    logger.info("Using SQL storage")
    return SQLHabitStore()


def get_store():
    return current_app.extensions["habit_store"]
