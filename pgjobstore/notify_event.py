"""Payload of the job-insert notification channel.

Two payload shapes are accepted: the per-row form ``{"job_type", "id"}`` and
the statement-level form ``{"job_type", "ids": [...]}``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from pgjobstore.models import ModelError, parse_task_id

INSERT_EVENT_IDS_CAP = 65_536
"""Largest number of task ids taken from one notification payload.

Bounds memory if someone with notify privilege publishes a huge fabricated
payload; it is far above any realistic insert batch.
"""


@dataclass
class InsertEvent:
    """A decoded job-insert notification."""

    job_type: str
    id: Optional[str] = None
    ids: list[str] = field(default_factory=list)

    def into_ids(self) -> tuple[str, list[str]]:
        """Return the queue name and the task ids the event refers to.

        The batched ``ids`` list wins when it is not empty and is cut to
        INSERT_EVENT_IDS_CAP entries; otherwise the single ``id`` is used.
        """
        ids = self.ids[:INSERT_EVENT_IDS_CAP]
        if ids:
            return self.job_type, list(ids)
        return self.job_type, [] if self.id is None else [self.id]


def _task_id(value: Any, where: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{where} must be a string task id")
    try:
        return parse_task_id(value)
    except ModelError as exc:
        raise ValueError(f"{where}: {exc}") from exc


def parse_insert_event(payload: Union[str, bytes]) -> InsertEvent:
    """Decode a notification payload, raising ValueError when it is malformed."""
    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValueError(f"insert event is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("insert event must be a JSON object")

    job_type = data.get("job_type")
    if not isinstance(job_type, str):
        raise ValueError("insert event needs a string job_type")

    raw_id = data.get("id")
    single = None if raw_id is None else _task_id(raw_id, "id")

    if "ids" in data:
        raw_ids = data["ids"]
        if not isinstance(raw_ids, list):
            raise ValueError("ids must be a list of task ids")
        ids = [_task_id(item, "ids entry") for item in raw_ids]
    else:
        ids = []

    return InsertEvent(job_type=job_type, id=single, ids=ids)