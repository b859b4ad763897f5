from datetime import datetime, timezone
from typing import Optional, Type, Union
from sqlalchemy import JSON, BigInteger, Integer, SmallInteger
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator
import enum

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# SQLite only autoincrements INTEGER PRIMARY KEY columns
IdType = BigInteger().with_variant(Integer(), "sqlite")


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ============================================================================
# ENUMS
# ============================================================================

class LabeledIntEnum(enum.IntEnum):
    """Integer-backed enum with a stable lowercase name per value"""

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value: Union["LabeledIntEnum", int, str]):
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ValueError(f"Invalid {cls.__name__}: {value!r}")
        if isinstance(value, int):
            return cls(value)
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                pass
        raise ValueError(f"Invalid {cls.__name__}: {value!r}")

    @classmethod
    def labels(cls):
        return [member.label for member in cls]


class FlowStatus(LabeledIntEnum):
    """Flow execution status"""
    RUNNING = 0
    COMPLETED = 1
    FAILED = 2
    SKIPPED = 3


class LogLevel(LabeledIntEnum):
    """Log entry severity, ordered"""
    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3


class Category(LabeledIntEnum):
    """Process category"""
    JOBS = 0
    SERVICES = 1
    API = 2
    OTHER = 3


TERMINAL_STATUSES = (FlowStatus.COMPLETED, FlowStatus.FAILED, FlowStatus.SKIPPED)


class IntEnumType(TypeDecorator):
    """Stores a LabeledIntEnum as a small integer"""

    impl = SmallInteger
    cache_ok = True

    def __init__(self, enum_class: Type[LabeledIntEnum], *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.enum_class = enum_class

    def process_bind_param(self, value, dialect) -> Optional[int]:
        if value is None:
            return None
        return int(self.enum_class.parse(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self.enum_class(value)
