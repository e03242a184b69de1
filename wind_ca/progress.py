"""
Progress observers.

Progress is a side channel: observers are told how many units of work are
done out of a known total and must never influence the simulation.
"""

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Union

logger = logging.getLogger(__name__)


class ProgressReporter:
    """Base observer; subclasses override the hooks they need."""
    
    def start(self, total: int):
        self.total = total
    
    def update(self, done: int):
        pass
    
    def close(self):
        pass


class CallbackProgress(ProgressReporter):
    """Forward the completed-unit count to a plain callable."""
    
    def __init__(self, callback: Callable[[int], None]):
        self.callback = callback
    
    def update(self, done: int):
        self.callback(done)


class LoggingProgress(ProgressReporter):
    """Log progress every `step` percent."""
    
    def __init__(self, step: int = 10, label: str = "Simulating"):
        self.step = step
        self.label = label
        self._last = -1
    
    def start(self, total: int):
        super().start(total)
        self._last = -1
        logger.info("%s: %d units", self.label, total)
    
    def update(self, done: int):
        if not self.total:
            return
        percent = int(100 * done / self.total)
        bucket = percent // self.step
        if bucket > self._last:
            self._last = bucket
            logger.info("%s: %d/%d (%d%%)", self.label, done, self.total, percent)
    
    def close(self):
        logger.debug("%s: progress closed", self.label)


Observer = Union[ProgressReporter, Callable[[int], None], None]


def as_reporter(observer: Observer) -> ProgressReporter:
    """Wrap callables so the orchestrator deals with one interface."""
    if observer is None:
        return ProgressReporter()
    if isinstance(observer, ProgressReporter):
        return observer
    if callable(observer):
        return CallbackProgress(observer)
    raise TypeError(f"Progress observer must be callable, got {type(observer).__name__}")


@contextmanager
def reporting(observer: Observer, total: int) -> Iterator[ProgressReporter]:
    """Start an observer for one run and close it however the run ends."""
    reporter = as_reporter(observer)
    reporter.start(total)
    try:
        yield reporter
    finally:
        reporter.close()
