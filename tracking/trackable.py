"""
Base class for background jobs whose executions are tracked.

Example:
    class InvoiceDigestJob(TrackableJob):
        async def perform(self, account_id):
            await self.tracker.info("Building digest", context={"account_id": account_id})

    await InvoiceDigestJob(42, job_id="abc", queue_name="mailers").run(FlowTracker(session))
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional
import re
import uuid

from models.base import Category
from tracking.arguments import truncate_argument
from tracking.base import BaseTracker
from tracking.null_tracker import NullTracker

# Arguments copied into flow metadata
METADATA_ARGUMENTS = 3


def humanize(class_name: str) -> str:
    """"InvoiceDigestJob" -> "Invoice digest job", "HTTPSyncJob" -> "Http sync job" """
    words = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", class_name)
    words = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", words)
    words = words.replace("_", " ").strip().lower()
    return words[:1].upper() + words[1:]


class TrackableJob(ABC):
    """
    A job instance: its arguments plus the queue bookkeeping.

    run() wraps perform() in one tracked execution. Inside perform(),
    self.tracker is the execution's Tracker; anywhere else it is a NullTracker.
    """

    category = Category.JOBS
    triggered_by = "TrackableJob"

    def __init__(
        self,
        *arguments,
        job_id: Optional[str] = None,
        queue_name: str = "default",
        scheduled_at: Optional[datetime] = None
    ):
        self.arguments = list(arguments)
        self.job_id = job_id or str(uuid.uuid4())
        self.queue_name = queue_name
        self.scheduled_at = scheduled_at
        self._tracker: Optional[BaseTracker] = None

    @property
    def tracker(self) -> BaseTracker:
        return self._tracker or NullTracker()

    @abstractmethod
    async def perform(self, *arguments) -> Any:
        pass

    @classmethod
    def process_identifier(cls) -> str:
        return f"{cls.__module__}.{cls.__qualname__}#perform"

    @classmethod
    def process_name(cls) -> str:
        return humanize(cls.__name__)

    def build_metadata(self) -> Dict[str, Any]:
        metadata = {
            "job_id": self.job_id,
            "queue_name": self.queue_name
        }

        arguments = [truncate_argument(arg) for arg in self.arguments[:METADATA_ARGUMENTS]]
        if arguments:
            metadata["arguments"] = arguments

        if self.scheduled_at is not None:
            metadata["scheduled_at"] = self.scheduled_at.isoformat()

        return metadata

    async def run(self, flow_tracker) -> Dict[str, Any]:
        """Perform the job under flow_tracker, returning its track() outcome"""

        async def work(tracker: BaseTracker):
            self._tracker = tracker
            try:
                return await self.perform(*self.arguments)
            finally:
                self._tracker = None

        return await flow_tracker.track(
            self.process_identifier(),
            work,
            name=self.process_name(),
            category=self.category,
            metadata=self.build_metadata(),
            triggered_by=self.triggered_by
        )
