from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Mapping

from arthive_chat.domain.value_objects.enums import FeedEvent


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


def serialize_insert(table: str, row: Mapping[str, Any]) -> str:
    envelope = {"event": FeedEvent.INSERT.value, "table": table, "data": dict(row)}
    return json.dumps(envelope, cls=_Encoder)


def deserialize_event(raw: str | bytes) -> tuple[str, str, dict[str, Any]]:
    data = json.loads(raw)
    return data["event"], data["table"], data["data"]
