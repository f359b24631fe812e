"""Tolerant numeric parsing for catalog cells and sensor values."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any

_NON_NUMERIC = re.compile(r"[^\d.\-]")
_LEADING_NUMBER = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_DASHES = str.maketrans({"–": "-", "—": "-"})


@dataclass(frozen=True, slots=True)
class Range:
	"""Closed numeric interval ``[low, high]``."""

	low: float
	high: float

	def contains(self, value: float) -> bool:
		return self.low <= value <= self.high


def _finite(value: float) -> float | None:
	return value if math.isfinite(value) else None


def parse_number(value: Any) -> float | None:
	"""Normalize a sensor-style value (``"45%"``, ``"28°C"``, ``6.5``) to a float.

	Everything except digits, ``.`` and ``-`` is stripped from strings before
	conversion. Anything that still fails to convert, or is not finite, is
	reported as ``None`` rather than raising.
	"""
	if value is None or isinstance(value, bool):
		return None
	if isinstance(value, (int, float)):
		return _finite(float(value))

	cleaned = _NON_NUMERIC.sub("", str(value))
	if not cleaned:
		return None
	try:
		return _finite(float(cleaned))
	except ValueError:
		return None


def parse_leading_number(token: str) -> float | None:
	"""Parse the numeric prefix of ``token`` (``"20°C"`` -> ``20.0``)."""
	match = _LEADING_NUMBER.match(token.strip())
	if match is None:
		return None
	return _finite(float(match.group(0)))


def parse_range(value: Any) -> Range | None:
	"""Parse ``"6.0 - 7.5"`` / ``"6.0–7.5"`` style cells into a :class:`Range`."""
	if value is None or isinstance(value, bool):
		return None
	text = str(value).translate(_DASHES)
	parts = [part.strip() for part in text.split("-")]
	if len(parts) < 2:
		return None

	low = parse_leading_number(parts[0])
	high = parse_leading_number(parts[1])
	if low is None or high is None or low > high:
		return None
	return Range(low=low, high=high)


def parse_dose(value: Any) -> float:
	"""Base dose cell as a float; empty or unparsable cells count as zero."""
	if value is None or isinstance(value, bool):
		return 0.0
	if isinstance(value, (int, float)):
		return _finite(float(value)) or 0.0
	text = str(value).strip()
	if not text:
		return 0.0
	try:
		return _finite(float(text)) or 0.0
	except ValueError:
		return 0.0
