"""
Abstract tracker interface shared by Tracker and NullTracker
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Awaitable, Callable, Dict, Optional, Union
import inspect

from models.base import LogLevel

StepWork = Callable[["BaseTracker"], Union[Any, Awaitable[Any]]]


async def run_work(work: StepWork, tracker: "BaseTracker") -> Any:
    """Call sync or async work with a tracker"""
    result = work(tracker)
    if inspect.isawaitable(result):
        result = await result
    return result


class BaseTracker(ABC):
    """
    Capability surface handed to tracked work.

    Calling code is written once against this interface; whether tracking
    is enabled only decides which implementation it receives.
    """

    @abstractmethod
    async def log(
        self,
        message: str,
        level: LogLevel = LogLevel.INFO,
        context: Optional[Dict[str, Any]] = None
    ):
        pass

    async def debug(self, message: str, context: Optional[Dict[str, Any]] = None):
        return await self.log(message, level=LogLevel.DEBUG, context=context)

    async def info(self, message: str, context: Optional[Dict[str, Any]] = None):
        return await self.log(message, level=LogLevel.INFO, context=context)

    async def warn(self, message: str, context: Optional[Dict[str, Any]] = None):
        return await self.log(message, level=LogLevel.WARN, context=context)

    async def error(self, message: str, context: Optional[Dict[str, Any]] = None):
        return await self.log(message, level=LogLevel.ERROR, context=context)

    @abstractmethod
    async def flow(
        self,
        name: str,
        work: Optional[StepWork] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Any:
        """Run work inside a named logical step, or return the step's tracker"""
        pass

    @abstractmethod
    def step(self, name: str, metadata: Optional[Dict[str, Any]] = None) -> AsyncContextManager["BaseTracker"]:
        """async with tracker.step("load") as step: ..."""
        pass

    @abstractmethod
    async def update_progress(self, current: int, total: int):
        pass

    @abstractmethod
    async def ok(self):
        pass

    @abstractmethod
    async def ko(self):
        pass

    @abstractmethod
    async def skip(self):
        pass

    @abstractmethod
    async def update_metadata(self, patch: Dict[str, Any]):
        pass

    @abstractmethod
    async def complete(self):
        pass

    @abstractmethod
    async def fail(self, error: Optional[BaseException] = None):
        pass

    @abstractmethod
    async def skip_flow(self, reason: Optional[str] = None):
        pass

    @property
    @abstractmethod
    def flow_record(self):
        """Flow row being tracked"""
        pass

    @property
    @abstractmethod
    def process(self):
        pass

    @property
    @abstractmethod
    def step_prefix(self) -> Optional[str]:
        """Dotted name of the current step, None at the top level"""
        pass

    @property
    @abstractmethod
    def flow_id(self) -> Optional[int]:
        pass

    @property
    @abstractmethod
    def process_id(self) -> Optional[int]:
        pass

    @property
    @abstractmethod
    def correlation_id(self) -> Optional[str]:
        pass


__all__ = ["BaseTracker", "StepWork", "run_work"]
