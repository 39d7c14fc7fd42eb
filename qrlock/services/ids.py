import itertools
import time
import uuid
from datetime import datetime, timedelta, timezone

from flask import current_app


class IdGenerator:
    def new_id(self) -> str:
        raise NotImplementedError


class UuidGenerator(IdGenerator):
    def new_id(self) -> str:
        return str(uuid.uuid4())


class SequenceIds(IdGenerator):
    """Deterministic ids (``<prefix>-00000001`` ...), for tests and fixtures."""

    def __init__(self, prefix: str = 'id'):
        self.prefix = prefix
        self._counter = itertools.count(1)

    def new_id(self) -> str:
        return f"{self.prefix}-{next(self._counter):08d}"


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def epoch(self) -> int:
        return int(time.time())


class FixedClock(SystemClock):
    def __init__(self, at: datetime):
        if at.tzinfo is None:
            at = at.replace(tzinfo=timezone.utc)
        self.at = at

    def now(self) -> datetime:
        return self.at

    def epoch(self) -> int:
        return int(self.at.timestamp())

    def advance(self, **delta):
        self.at = self.at + timedelta(**delta)


def ids() -> IdGenerator:
    return current_app.extensions['qrlock.ids']


def clock() -> SystemClock:
    return current_app.extensions['qrlock.clock']
