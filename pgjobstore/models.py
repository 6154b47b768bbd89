"""Row types read from the job tables and their conversion into domain values."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

_ULID_ALPHABET = frozenset("0123456789ABCDEFGHJKMNPQRSTVWXYZ")
_ULID_LENGTH = 26


class ModelError(Exception):
    """Base error raised while turning a database row into a domain value."""


class MissingFieldError(ModelError):
    """A column required for the conversion was NULL."""

    def __init__(self, field_name: str) -> None:
        super().__init__(f"missing field: {field_name}")
        self.field_name = field_name


class RowError(ModelError):
    """A column held a value that could not be parsed."""


class StatType(Enum):
    """How a statistic's value should be interpreted."""

    TIMESTAMP = "Timestamp"
    NUMBER = "Number"
    DECIMAL = "Decimal"
    PERCENTAGE = "Percentage"


class Status(Enum):
    """Lifecycle status of a task."""

    PENDING = "Pending"
    QUEUED = "Queued"
    RUNNING = "Running"
    DONE = "Done"
    FAILED = "Failed"
    KILLED = "Killed"


def stat_type_from_string(value: str) -> StatType:
    """Map a stored type name to a StatType; unknown names become NUMBER."""
    for stat_type in StatType:
        if stat_type.value == value:
            return stat_type
    return StatType.NUMBER


def parse_status(text: str) -> Status:
    """Parse a status name, raising RowError when it is unknown."""
    try:
        return Status(text)
    except ValueError:
        raise RowError(f"unknown task status: {text!r}") from None


def parse_task_id(text: str) -> str:
    """Validate a ULID task id and return it in canonical upper case."""
    candidate = text.upper()
    if len(candidate) != _ULID_LENGTH:
        raise RowError(f"invalid task id length: {text!r}")
    if not set(candidate) <= _ULID_ALPHABET:
        raise RowError(f"invalid character in task id: {text!r}")
    if candidate[0] > "7":
        raise RowError(f"task id overflows 128 bits: {text!r}")
    return candidate


def _unix_timestamp(moment: datetime) -> int:
    return math.floor(moment.timestamp())


def _non_negative(value: int) -> int:
    return max(value, 0)


def _format_f32(value: float) -> str:
    """Render a single-precision float the shortest way, without exponent."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    packed = struct.pack("<f", value)
    single = struct.unpack("<f", packed)[0]
    text = repr(single)
    for precision in range(1, 10):
        attempt = f"{single:.{precision}g}"
        if struct.pack("<f", float(attempt)) == packed:
            text = attempt
            break
    rendered = format(Decimal(text).normalize(), "f")
    if math.copysign(1.0, single) < 0 and not rendered.startswith("-"):
        rendered = "-" + rendered
    return rendered


@dataclass
class TaskRow:
    """A task as the rest of the system sees it."""

    job: bytes
    id: str
    job_type: str
    status: str
    attempts: int
    max_attempts: Optional[int]
    run_at: Optional[datetime]
    last_result: Any = None
    lock_at: Optional[datetime] = None
    lock_by: Optional[str] = None
    done_at: Optional[datetime] = None
    priority: Optional[int] = None
    metadata: Any = None
    idempotency_key: Optional[str] = None


@dataclass
class JobRow:
    """A raw row of the jobs table."""

    job: bytes
    id: str
    job_type: str
    status: str
    attempts: int
    max_attempts: int
    run_at: datetime
    last_result: Any = None
    lock_at: Optional[datetime] = None
    lock_by: Optional[str] = None
    done_at: Optional[datetime] = None
    priority: Optional[int] = None
    metadata: Any = None
    idempotency_key: Optional[str] = None

    def to_task_row(self) -> TaskRow:
        """Convert to a TaskRow, clamping negative counters to zero."""
        return TaskRow(
            job=self.job,
            id=self.id,
            job_type=self.job_type,
            status=self.status,
            attempts=_non_negative(self.attempts),
            max_attempts=_non_negative(self.max_attempts),
            run_at=self.run_at,
            last_result=self.last_result,
            lock_at=self.lock_at,
            lock_by=self.lock_by,
            done_at=self.done_at,
            priority=None if self.priority is None else _non_negative(self.priority),
            metadata=self.metadata,
            idempotency_key=self.idempotency_key,
        )


@dataclass
class RunningWorker:
    """A registered worker with times as unix seconds."""

    id: str
    queue: str
    backend: str
    started_at: int
    last_heartbeat: int
    layers: str


@dataclass
class WorkerRow:
    """A raw row of the workers table."""

    id: str
    worker_type: str
    storage_name: str
    last_seen: datetime
    layers: Optional[str] = None
    started_at: Optional[datetime] = None

    def to_running_worker(self) -> RunningWorker:
        """Convert to a RunningWorker; absent or pre-epoch times become 0."""
        started = 0
        if self.started_at is not None:
            started = _non_negative(_unix_timestamp(self.started_at))
        return RunningWorker(
            id=self.id,
            queue=self.worker_type,
            backend=self.storage_name,
            started_at=started,
            last_heartbeat=_non_negative(_unix_timestamp(self.last_seen)),
            layers=self.layers or "",
        )


@dataclass
class Statistic:
    """One named metric value."""

    title: str
    stat_type: StatType
    value: str
    priority: Optional[int] = None

    @classmethod
    def from_json(cls, data: Any) -> "Statistic":
        """Decode a statistic from its JSON object form."""
        if not isinstance(data, dict):
            raise ValueError("statistic must be an object")
        title = data.get("title")
        value = data.get("value")
        kind = data.get("stat_type")
        priority = data.get("priority")
        if not isinstance(title, str) or not isinstance(value, str):
            raise ValueError("statistic title and value must be strings")
        if not isinstance(kind, str):
            raise ValueError("statistic stat_type must be a string")
        stat_type = StatType(kind)
        if priority is not None and (
            isinstance(priority, bool) or not isinstance(priority, int) or priority < 0
        ):
            raise ValueError("statistic priority must be a non-negative integer")
        return cls(title=title, stat_type=stat_type, value=value, priority=priority)


@dataclass
class StatisticRow:
    """A raw metrics row."""

    priority: Optional[int] = None
    stat_type: Optional[str] = None
    statistic: Optional[str] = None
    value: Optional[float] = None

    def to_statistic(self) -> Statistic:
        """Convert to a Statistic, filling absent columns with defaults."""
        return Statistic(
            title=self.statistic or "",
            stat_type=stat_type_from_string(self.stat_type or ""),
            value=_format_f32(self.value if self.value is not None else 0.0),
            priority=_non_negative(self.priority or 0),
        )


@dataclass
class QueueInfo:
    """Summary of one queue."""

    name: str
    stats: list[Statistic] = field(default_factory=list)
    workers: list[str] = field(default_factory=list)
    activity: list[int] = field(default_factory=list)


def _decode_stats(value: Any) -> list[Statistic]:
    if not isinstance(value, list):
        return []
    try:
        return [Statistic.from_json(item) for item in value]
    except ValueError:
        return []


def _decode_workers(value: Any) -> list[str]:
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return list(value)
    return []


def _decode_activity(value: Any) -> list[int]:
    if isinstance(value, list) and all(
        isinstance(item, int) and not isinstance(item, bool) and item >= 0
        for item in value
    ):
        return list(value)
    return []


@dataclass
class QueueInfoRow:
    """A raw queue summary row with JSON columns."""

    name: Optional[str] = None
    stats: Any = None
    workers: Any = None
    activity: Any = None

    def to_queue_info(self) -> QueueInfo:
        """Convert to QueueInfo; undecodable JSON columns become empty lists."""
        return QueueInfo(
            name=self.name or "",
            stats=_decode_stats(self.stats),
            workers=_decode_workers(self.workers),
            activity=_decode_activity(self.activity),
        )


@dataclass
class TaskResult:
    """The recorded outcome of a finished task."""

    task_id: str
    status: Status
    value: Any = None
    error: Optional[str] = None

    @property
    def is_ok(self) -> bool:
        return self.error is None


@dataclass
class TaskResultRow:
    """A raw row holding a task's id, status and last result."""

    id: Optional[str] = None
    status: Optional[str] = None
    result: Any = None


def task_result_from_row(row: TaskResultRow) -> TaskResult:
    """Build a TaskResult from a row, raising when a column is missing or bad.

    The result column holds either {"Ok": value} or {"Err": "message"}.
    """
    if row.id is None:
        raise MissingFieldError("id")
    if row.status is None:
        raise MissingFieldError("status")
    if row.result is None:
        raise MissingFieldError("last_result")
    task_id = parse_task_id(row.id)
    status = parse_status(row.status)
    result = row.result
    if not isinstance(result, dict) or len(result) != 1:
        raise ModelError("last_result must be an object with a single Ok or Err key")
    (key, payload), = result.items()
    if key == "Ok":
        return TaskResult(task_id=task_id, status=status, value=payload)
    if key == "Err":
        if not isinstance(payload, str):
            raise ModelError("Err result must carry a string message")
        return TaskResult(task_id=task_id, status=status, error=payload)
    raise ModelError(f"unknown result variant: {key!r}")