"""Normalize raw span records into Spans.

Accepts OTel-style stored spans (``start_time_unix_nano``...) as well as the
compact ``id``/``parent_id``/``start_time``/``duration`` form, with common
alternative field names.
"""
from __future__ import annotations

import json
import logging
import math
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml
from jsonschema import Draft202012Validator

from traceviz.trace.span_model import Span, normalize_status

logger = logging.getLogger(__name__)


# Canonical name -> accepted alternatives, checked in order
FIELD_MAPPINGS = {
    "span_id": ["span_id", "spanId", "id"],
    "parent_span_id": ["parent_span_id", "parentSpanId", "parent_id", "parentId"],
    "trace_id": ["trace_id", "traceId"],
    "name": ["name", "operation", "operationName", "op"],
    "service_name": ["service_name", "serviceName", "service"],
    "start": ["start_time_unix_nano", "start_time", "startTime", "start", "ts_start"],
    "end": ["end_time_unix_nano", "end_time", "endTime", "end", "ts_end"],
    "duration": ["duration_ms", "duration", "durationMs"],
    "status": ["status", "status_code", "statusCode"],
    "attributes": ["attributes", "tags"],
}

# Jan 1, 2100 in milliseconds; larger values are nanosecond timestamps
NANO_THRESHOLD = 4102444800000


class SpanValidationError(ValueError):
    """Raw span records do not match the span schema."""


class TraceNotFoundError(LookupError):
    """No spans matched the requested trace id."""


_SCHEMA_PATH = Path(__file__).resolve().parent.parent / "schemas" / "traceviz.span.schema.json"


def extract_field(obj: dict[str, Any], canonical_name: str, default: Any = None) -> Any:
    """Extract a field using any of its accepted names."""
    for name in FIELD_MAPPINGS.get(canonical_name, [canonical_name]):
        if name in obj and obj[name] is not None:
            return obj[name]
    return default


def _parse_iso(ts: str) -> Optional[float]:
    if ts.endswith("Z"):
        ts = ts[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(ts).timestamp() * 1000
    except ValueError:
        return None


def to_ms(timestamp: Any) -> float:
    """Convert a timestamp to milliseconds.

    Numbers above NANO_THRESHOLD are treated as nanoseconds. ISO-8601 strings
    are accepted. Anything non-finite or unparseable becomes 0.
    """
    if isinstance(timestamp, str):
        try:
            value = float(timestamp)
        except ValueError:
            parsed = _parse_iso(timestamp)
            return parsed if parsed is not None else 0.0
    elif isinstance(timestamp, (int, float)) and not isinstance(timestamp, bool):
        value = float(timestamp)
    else:
        return 0.0

    if not math.isfinite(value):
        return 0.0
    return value / 1_000_000 if value > NANO_THRESHOLD else value


def calculate_duration_ms(start: Any, end: Any) -> float:
    """Duration between two raw timestamps, clamped to a finite value >= 0."""
    duration = to_ms(end) - to_ms(start)
    return duration if math.isfinite(duration) and duration >= 0 else 0.0


def _attributes_to_dict(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return dict(raw)
    result: dict[str, Any] = {}
    if isinstance(raw, list):
        for item in raw:
            if isinstance(item, (list, tuple)) and len(item) == 2:
                result[str(item[0])] = item[1]
    return result


def normalize_record(obj: dict[str, Any]) -> Span:
    """Normalize one raw span record into a Span."""
    start_raw = extract_field(obj, "start", 0)
    end_raw = extract_field(obj, "end")
    duration_raw = extract_field(obj, "duration")

    start_ms = to_ms(start_raw)
    if end_raw is not None:
        end_ms = to_ms(end_raw)
    elif duration_raw is not None:
        # Kept raw: Span.duration_ms clamps, and stats drop non-finite or negative spans
        try:
            duration = float(duration_raw)
        except (TypeError, ValueError):
            duration = math.nan
        end_ms = start_ms + duration
    else:
        end_ms = start_ms

    service_name = extract_field(obj, "service_name")
    if not service_name:
        resource = obj.get("resource")
        if isinstance(resource, dict):
            service_name = resource.get("service.name")

    parent = extract_field(obj, "parent_span_id")

    return Span(
        span_id=str(extract_field(obj, "span_id")),
        parent_span_id=str(parent) if parent not in (None, "") else None,
        name=str(extract_field(obj, "name", "unknown")),
        service_name=service_name or None,
        trace_id=extract_field(obj, "trace_id"),
        start_ms=start_ms,
        end_ms=end_ms,
        status=normalize_status(extract_field(obj, "status")),
        attributes=_attributes_to_dict(extract_field(obj, "attributes")),
    )


def _load_schema() -> dict[str, Any]:
    return json.loads(_SCHEMA_PATH.read_text(encoding="utf-8"))


def validate_records(records: Iterable[dict[str, Any]]) -> list[str]:
    """Validate raw records against the span schema. Returns errors (empty if valid)."""
    validator = Draft202012Validator(_load_schema())
    errors: list[str] = []
    for index, record in enumerate(records):
        for error in validator.iter_errors(record):
            errors.append(f"[{index}]{error.json_path[1:]}: {error.message}")
    return errors


def read_records(path: Path) -> list[dict[str, Any]]:
    """Read raw span records from a .json, .jsonl, .yaml or .yml file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file cannot be parsed or has the wrong shape
    """
    if not path.exists():
        raise FileNotFoundError(
            f"Spans file not found: {path}\n\n"
            f"Export a trace as JSON, JSONL or YAML and pass it with --spans."
        )

    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()

    if suffix == ".jsonl":
        records = []
        for line_num, line in enumerate(text.splitlines(), 1):
            line = line.strip()
            if not line:
                logger.debug("Skipping blank line %d in %s", line_num, path)
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON on line {line_num} of {path}: {e}") from e
        data: Any = records
    elif suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in spans file {path}:\n{e}") from e
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in spans file {path}: {e}") from e

    if data is None:
        return []
    if isinstance(data, dict):
        data = data.get("spans", [])
    if not isinstance(data, list):
        raise ValueError(
            f"Spans file {path} must contain a list of spans or an object with a 'spans' key"
        )
    return data


def load_spans(path: Path, trace_id: Optional[str] = None, validate: bool = True) -> list[Span]:
    """Load, validate and normalize spans from a file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is malformed
        SpanValidationError: If a record fails schema validation
    """
    records = read_records(path)
    if validate:
        errors = validate_records(records)
        if errors:
            shown = "\n  ".join(errors[:10])
            more = f"\n  ... and {len(errors) - 10} more" if len(errors) > 10 else ""
            raise SpanValidationError(f"Span schema validation failed for {path}:\n  {shown}{more}")

    spans = [normalize_record(r) for r in records]
    if trace_id is not None:
        spans = filter_trace(spans, trace_id)
    return spans


def filter_trace(spans: list[Span], trace_id: str) -> list[Span]:
    """Keep only the spans belonging to one trace."""
    return [s for s in spans if s.trace_id == trace_id]
