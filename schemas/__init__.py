"""
Pydantic schemas for the dashboard API.

Schemas:
    api: Response models for health, stats, processes, flows and cleanup

Enum columns (status, level, category) are rendered by their lowercase
label, e.g. {"status": "completed"}.
"""

__all__ = [
    "HealthCheckResponse",
    "StatsResponse",
    "ProcessResponse",
    "ProcessStatsResponse",
    "ProcessDetailResponse",
    "FlowSummary",
    "FlowDetailResponse",
    "LogEntryResponse",
    "CleanupResponse",
]
