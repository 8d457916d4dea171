"""Structural validation of inbound point cloud batches.

The payload schema is declared as field contracts and evaluated in a fixed
order, each step short-circuiting with a typed rejection:

1. required top-level fields present        -> MissingFieldsError
2. claimed drone id == authenticated id     -> IdentityMismatchError
3. points is a sequence, stats a mapping,
   timestamp an ISO-8601 string             -> MalformedPayloadError
4. every stats field a finite number        -> MalformedPayloadError("stats.<f>")
5. first ``sample_size`` points finite      -> MalformedPayloadError("points[i].<f>")

Only a prefix of the points is checked. Points past the sample reach the
cache and the viewers exactly as the producer sent them, so a malformed
tail goes undetected. Nothing is normalized, clamped or converted here.
"""

from __future__ import annotations

import enum
import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from .. import config as C
from ..exceptions import IdentityMismatchError, MalformedPayloadError, MissingFieldsError
from ..models import PointCloudBatch


class FieldKind(str, enum.Enum):
    STRING = "string"
    NUMBER = "number"
    SEQUENCE = "sequence"
    MAPPING = "mapping"


def is_number(value: Any) -> bool:
    """Finite int or float. Bools, NaN, infinities and ints past float range are not numbers."""
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO-8601 string -> aware datetime (naive values are taken as UTC)."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


_KIND_CHECKS: Dict[FieldKind, Callable[[Any], bool]] = {
    FieldKind.STRING: lambda v: isinstance(v, str),
    FieldKind.NUMBER: is_number,
    FieldKind.SEQUENCE: is_sequence,
    FieldKind.MAPPING: lambda v: isinstance(v, Mapping),
}

_KIND_MESSAGES = {
    FieldKind.STRING: "must be a string",
    FieldKind.NUMBER: "must be a number",
    FieldKind.SEQUENCE: "must be an array",
    FieldKind.MAPPING: "must be an object",
}


@dataclass(frozen=True)
class FieldContract:
    """One field: its name, expected kind and an optional extra post-condition."""

    name: str
    kind: FieldKind
    required: bool = True
    check: Optional[Callable[[Any], bool]] = None
    expected: Optional[str] = None

    def is_present(self, record: Mapping) -> bool:
        value = record.get(self.name)
        return value is not None and value != ""

    def accepts(self, value: Any) -> bool:
        if not _KIND_CHECKS[self.kind](value):
            return False
        return self.check is None or bool(self.check(value))

    def message(self, path: str) -> str:
        return f"{path} {self.expected or _KIND_MESSAGES[self.kind]}"


BATCH_FIELDS: Tuple[FieldContract, ...] = (
    FieldContract("drone_id", FieldKind.STRING),
    FieldContract(
        "timestamp",
        FieldKind.STRING,
        check=lambda v: parse_timestamp(v) is not None,
        expected="must be an ISO-8601 timestamp",
    ),
    FieldContract("points", FieldKind.SEQUENCE),
    FieldContract("stats", FieldKind.MAPPING),
)

# step 3 checks these shapes in this order
SHAPE_FIELDS: Tuple[str, ...] = ("points", "stats", "timestamp")

STATS_FIELDS: Tuple[FieldContract, ...] = tuple(
    FieldContract(name, FieldKind.NUMBER)
    for name in ("point_count", "valid_points", "min_distance", "max_distance", "avg_distance", "avg_quality")
)

POINT_FIELDS: Tuple[FieldContract, ...] = tuple(
    FieldContract(name, FieldKind.NUMBER) for name in ("angle", "distance", "quality", "x", "y")
)


class BatchValidator:
    """Checks a raw batch and turns it into a PointCloudBatch."""

    def __init__(self, sample_size: int = C.POINT_SAMPLE_SIZE) -> None:
        self._sample_size = max(0, sample_size)

    @property
    def sample_size(self) -> int:
        return self._sample_size

    def validate(self, raw: Mapping, claimed_drone_id: Any, authenticated_drone_id: str) -> PointCloudBatch:
        if not isinstance(raw, Mapping):
            raise MalformedPayloadError("payload must be an object", field=None)

        missing = [c.name for c in BATCH_FIELDS if c.required and not c.is_present(raw)]
        if missing:
            raise MissingFieldsError(missing)

        if claimed_drone_id != authenticated_drone_id:
            raise IdentityMismatchError("Drone ID mismatch", field="drone_id")

        contracts = {c.name: c for c in BATCH_FIELDS}
        for name in SHAPE_FIELDS:
            contract = contracts[name]
            if not contract.accepts(raw[name]):
                raise MalformedPayloadError(contract.message(name), field=name)

        stats = raw["stats"]
        for contract in STATS_FIELDS:
            if not contract.accepts(stats.get(contract.name)):
                path = f"stats.{contract.name}"
                raise MalformedPayloadError(contract.message(path), field=path)

        points = raw["points"]
        for index, point in enumerate(points[: self._sample_size]):
            if not isinstance(point, Mapping):
                path = f"points[{index}]"
                raise MalformedPayloadError(f"{path} must be an object", field=path)
            for contract in POINT_FIELDS:
                if not contract.accepts(point.get(contract.name)):
                    path = f"points[{index}].{contract.name}"
                    raise MalformedPayloadError(contract.message(path), field=path)

        return self._build(raw, points, stats)

    @staticmethod
    def _build(raw: Mapping, points: List[Any], stats: Mapping) -> PointCloudBatch:
        try:
            return PointCloudBatch.model_validate(
                {
                    "drone_id": raw["drone_id"],
                    "timestamp": raw["timestamp"],
                    "points": list(points),
                    "stats": {c.name: stats[c.name] for c in STATS_FIELDS},
                }
            )
        except ValidationError as exc:
            raise MalformedPayloadError(f"payload could not be read: {exc.error_count()} errors") from exc
