"""
Tracking engine: facade, trackers and job integration
"""

from tracking.base import BaseTracker
from tracking.tracker import Tracker
from tracking.null_tracker import NullTracker
from tracking.facade import FlowTracker
from tracking.trackable import TrackableJob
from tracking.arguments import truncate_argument

__all__ = [
    "BaseTracker",
    "Tracker",
    "NullTracker",
    "FlowTracker",
    "TrackableJob",
    "truncate_argument",
]
