from datetime import datetime, timedelta, timezone

MONDAY = datetime(2025, 6, 2, tzinfo=timezone.utc)


class Clock:
    """Callable clock the tests can move forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def at(hour: int, minute: int = 0, days: int = 0) -> datetime:
    """A UTC instant on the test Monday, or ``days`` after it."""
    return MONDAY + timedelta(days=days, hours=hour, minutes=minute)
