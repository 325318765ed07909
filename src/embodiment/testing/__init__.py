"""Testing helpers for the embodiment layer."""

from .fakes import FakeWorldClient, ManualClock, SentEvent, make_scheduler

__all__ = ["FakeWorldClient", "ManualClock", "SentEvent", "make_scheduler"]
