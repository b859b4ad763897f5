"""
No-op tracker handed to work when tracking is disabled
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from models.base import LogLevel
from tracking.base import BaseTracker, StepWork, run_work


class NullTracker(BaseTracker):
    """
    Same surface as Tracker, nothing is persisted.

    Steps still run their work (with this tracker) and return its result,
    so tracked code behaves the same whether tracking is on or off.
    """

    async def log(
        self,
        message: str,
        level: LogLevel = LogLevel.INFO,
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        return None

    async def flow(
        self,
        name: str,
        work: Optional[StepWork] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Any:
        if work is None:
            return self
        return await run_work(work, self)

    @asynccontextmanager
    async def step(self, name: str, metadata: Optional[Dict[str, Any]] = None):
        yield self

    async def update_progress(self, current: int, total: int) -> None:
        return None

    async def ok(self) -> None:
        return None

    async def ko(self) -> None:
        return None

    async def skip(self) -> None:
        return None

    async def update_metadata(self, patch: Dict[str, Any]) -> None:
        return None

    async def complete(self) -> None:
        return None

    async def fail(self, error: Optional[BaseException] = None) -> None:
        return None

    async def skip_flow(self, reason: Optional[str] = None) -> None:
        return None

    @property
    def flow_record(self) -> None:
        return None

    @property
    def process(self) -> None:
        return None

    @property
    def step_prefix(self) -> None:
        return None

    @property
    def flow_id(self) -> None:
        return None

    @property
    def process_id(self) -> None:
        return None

    @property
    def correlation_id(self) -> None:
        return None
