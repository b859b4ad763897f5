"""
Core utilities and configuration for the flow tracker.

Modules:
    config: Environment settings and the runtime tracking configuration
    database: Async engine and session management
    exceptions: Exception hierarchy of the tracking engine
    logging: Logging configuration

Usage:
    from core.config import settings, tracking_config
    from core.database import async_session_maker
    from core.exceptions import InvalidStateError, ValidationError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Switch tracking off for a test run
    tracking_config.configure(enabled=False)
"""

__all__ = [
    "settings",
    "tracking_config",
    "async_session_maker",
    "setup_logging",
    # Exceptions
    "FlowTrackerError",
    "ValidationError",
    "InvalidStateError",
    "UnserializableValueError",
]
