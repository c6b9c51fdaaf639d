from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from nomadconnect.core.db import Base
from nomadconnect.core.init_db import init_db
from nomadconnect.repository.base import ActivityRecord, ProfileSummary
from nomadconnect.repository.memory import MemoryRepository

START = datetime(2026, 10, 18, 12, 0, 0)


class FakeClock:
    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeCompleter:
    def __init__(self, reply: str = '{"score": 80}', error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls = []

    def complete(self, messages):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return self.reply


def seeded_repo(*user_ids: str, **profile_fields) -> MemoryRepository:
    repo = MemoryRepository()
    for uid in user_ids:
        repo.add_profile(ProfileSummary(id=uid, name=f"name-{uid}", **profile_fields))
    return repo


def activity(activity_id: str, lat: float, lng: float, date: datetime, **fields) -> ActivityRecord:
    return ActivityRecord(
        id=activity_id,
        title=f"activity {activity_id}",
        date=date,
        location="somewhere",
        host_id="host",
        latitude=lat,
        longitude=lng,
        **fields,
    )


def sqlite_session() -> Session:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)()


def drop_all(session: Session) -> None:
    Base.metadata.drop_all(bind=session.get_bind())
