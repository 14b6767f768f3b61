import json
import logging
import os
from enum import Enum
from typing import Any

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"

# free-text fields are logged as their size only
_REDACTED_KEYS = {"text", "transcript", "transcription", "reply", "prompt", "analysis", "agent_text", "human_text"}


def configure_logging(level: str | None = None) -> None:
	name = str(level or os.getenv("LOG_LEVEL") or "INFO").strip().upper()
	logging.basicConfig(format=LOG_FORMAT, level=getattr(logging, name, logging.INFO))


def _redact(value: Any) -> dict:
	text = str(value or "")
	return {
		"redacted": True,
		"length": len(text),
		"words": len(text.split()),
	}


def _sanitize_value(key: str, value: Any) -> Any:
	if str(key or "").lower() in _REDACTED_KEYS:
		return _redact(value)
	if isinstance(value, Enum):
		return value.value
	if isinstance(value, float):
		return round(value, 3)
	if isinstance(value, (str, int, bool)) or value is None:
		return value
	if isinstance(value, dict):
		return {str(k): _sanitize_value(str(k), v) for k, v in value.items()}
	if isinstance(value, (list, tuple, set)):
		return [_sanitize_value(key, item) for item in value]
	return str(value)


def event_payload(component: str, event: str, session_id: str, **fields) -> dict:
	payload = {
		"component": str(component or "interview_room"),
		"event": str(event or "unknown"),
		"session_id": str(session_id or ""),
	}
	for key, value in fields.items():
		payload[str(key)] = _sanitize_value(str(key), value)
	return payload


def log_event(component: str, event: str, session_id: str, **fields) -> None:
	"""
	One JSON line per event on the "interview_room.<component>" logger.
	Transcript-like fields never reach the log, only their size.
	"""
	payload = event_payload(component, event, session_id, **fields)
	logging.getLogger(f"interview_room.{payload['component']}").info(json.dumps(payload, ensure_ascii=False, default=str))
