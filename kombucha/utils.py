from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Union

from .errors import DecodeFailure
from .models import Batch, BrewingProfile, TeaType


def format_timestamp(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def parse_timestamp(value: Union[str, int, float]) -> datetime:
    if isinstance(value, bool):
        raise ValueError(f"Not a timestamp: {value!r}")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_time_remaining(remaining: timedelta) -> str:
    seconds = max(0, int(remaining.total_seconds()))
    days = seconds // 86400
    hours = seconds % 86400 // 3600
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h"
    minutes = seconds % 3600 // 60
    return f"{minutes}m"


def format_date(dt: Optional[datetime]) -> str:
    if not dt:
        return ""
    return dt.strftime("%b %d, %Y")


def serialize_batch(batch: Batch) -> Dict:
    profile = batch.profile
    payload = {
        "id": batch.id,
        "name": batch.name,
        "startDate": format_timestamp(batch.start_date),
        "endDate": format_timestamp(batch.end_date),
        "durationDays": batch.duration_days,
        "rating": batch.rating,
        "notes": batch.notes,
        "scobyName": profile.scoby_name,
        "teaType": profile.tea_type.value if profile.tea_type else None,
        "sugar": profile.sugar,
        "starterLiquidAmount": profile.starter_liquid_amount,
        "activeNotes": profile.active_notes,
    }
    return {key: value for key, value in payload.items() if value is not None}


def deserialize_batch(payload: Dict, key: str = "batch") -> Batch:
    if not isinstance(payload, dict):
        raise DecodeFailure(key, f"expected an object, got {type(payload).__name__}")
    try:
        rating = payload.get("rating")
        if rating is not None:
            rating = int(rating)
        batch = Batch(
            id=str(payload["id"]),
            name=str(payload["name"]),
            start_date=parse_timestamp(payload["startDate"]),
            end_date=parse_timestamp(payload["endDate"]),
            duration_days=int(payload["durationDays"]),
            rating=rating,
            notes=payload.get("notes"),
            profile=BrewingProfile(
                scoby_name=payload.get("scobyName"),
                tea_type=TeaType.parse(payload.get("teaType")),
                sugar=payload.get("sugar"),
                starter_liquid_amount=payload.get("starterLiquidAmount"),
                active_notes=payload.get("activeNotes"),
            ),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise DecodeFailure(key, str(exc)) from exc
    if batch.end_date < batch.start_date:
        raise DecodeFailure(key, f"batch {batch.id} ends before it starts")
    if batch.rating is not None and not 1 <= batch.rating <= 5:
        raise DecodeFailure(key, f"batch {batch.id} has rating {batch.rating} outside 1-5")
    return batch


def serialize_batches(batches: Iterable[Batch]) -> List[Dict]:
    return [serialize_batch(batch) for batch in batches]


def deserialize_batches(payload, key: str) -> List[Batch]:
    if not isinstance(payload, list):
        raise DecodeFailure(key, f"expected a list, got {type(payload).__name__}")
    return [deserialize_batch(item, key) for item in payload]


__all__ = [
    "format_timestamp",
    "parse_timestamp",
    "format_time_remaining",
    "format_date",
    "serialize_batch",
    "deserialize_batch",
    "serialize_batches",
    "deserialize_batches",
]
