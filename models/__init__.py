"""
SQLAlchemy ORM models for the flow tracker tables.

Models:
    base: Base declarative class, shared enums (FlowStatus, LogLevel, Category)
          and the small-integer enum column type
    process: Process definitions, one per trackable identifier
    flow: Flow executions with status, progress and counters
    log_entry: Structured log lines attached to a flow

Usage:
    from models import Process, Flow, LogEntry
    from models.base import FlowStatus, LogLevel, Category

Example:
    process = await Process.find_or_create(session, "billing.jobs.InvoiceJob#perform")
    flow = await Flow.start(session, process, metadata={"invoice_id": 42})
    await LogEntry.create(session, flow, "Invoice rendered")
    await flow.complete(session)

Relationships:
    - Process → Flow (one-to-many, cascade delete)
    - Flow → LogEntry (one-to-many, cascade delete)
"""

from models.base import Base, Category, FlowStatus, LogLevel
from models.log_entry import LogEntry
from models.flow import Flow
from models.process import Process

__all__ = [
    "Base",
    "Category",
    "FlowStatus",
    "LogLevel",
    "Process",
    "Flow",
    "LogEntry",
]
