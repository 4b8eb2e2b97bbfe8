"""Change event payloads published on commit."""

import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy import inspect

# Identifies events published by this process when relayed through Redis
PROCESS_ORIGIN = f"{os.getpid()}-{id(object())}"

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"
BROADCAST = "BROADCAST"


@dataclass
class ChangeEvent:
    operation: str
    table: Optional[str]
    new: Optional[dict] = None
    old: Optional[dict] = None
    version: Optional[int] = None
    channel: Optional[str] = None  # Set for broadcast events only
    commit_timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    origin: str = PROCESS_ORIGIN

    @property
    def row(self) -> dict:
        """The row a filter is evaluated against: new image, or old image on delete"""
        return self.new if self.new is not None else (self.old or {})

    @property
    def record_id(self) -> Optional[str]:
        return self.row.get("id")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ChangeEvent":
        return cls(**data)


def row_snapshot(obj) -> dict:
    """JSON-ready image of a mapped row's column values"""
    state = inspect(obj)
    values = {attr.key: state.dict.get(attr.key) for attr in state.mapper.column_attrs}
    return jsonable_encoder(values)


def previous_values(obj) -> dict:
    """Old image of a dirty row built from attribute history before the flush completes"""
    state = inspect(obj)
    old = {}
    for attr in state.mapper.column_attrs:
        history = state.attrs[attr.key].history
        if history.deleted:
            old[attr.key] = history.deleted[0]
        else:
            old[attr.key] = state.dict.get(attr.key)
    return jsonable_encoder(old)
