"""NPK dose adjustment from live soil pH and moisture readings.

Rules (multiplicative, applied in this order onto the same N):

    pH below optimal low        N x 1.10, P x 1.05
    pH above optimal high       N x 0.90
    moisture below optimal low  N x 1.05
    moisture above optimal high N x 0.95

K is never adjusted. A rule is skipped when either the reading or the
optimal range it needs is absent.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from agrosense.services.parsing import Range, parse_dose, parse_number

ACIDIC_N_FACTOR = 1.10
ACIDIC_P_FACTOR = 1.05
ALKALINE_N_FACTOR = 0.90
DRY_N_FACTOR = 1.05
WET_N_FACTOR = 0.95


@dataclass(frozen=True, slots=True)
class AdjustedDoses:
	n: int
	p: int
	k: int
	ph: float | None
	moisture: float | None


def round_dose(value: float) -> int:
	"""Round half away from zero (``102.5`` -> ``103``, ``-0.5`` -> ``-1``)."""
	return int(math.copysign(math.floor(abs(value) + 0.5), value))


def adjust_doses(
	base_n: Any,
	base_p: Any,
	base_k: Any,
	*,
	optimal_ph: Range | None = None,
	optimal_moisture: Range | None = None,
	ph: Any = None,
	moisture: Any = None,
) -> AdjustedDoses:
	n = parse_dose(base_n)
	p = parse_dose(base_p)
	k = parse_dose(base_k)

	used_ph = parse_number(ph)
	used_moisture = parse_number(moisture)

	if used_ph is not None and optimal_ph is not None:
		if used_ph < optimal_ph.low:
			n *= ACIDIC_N_FACTOR
			p *= ACIDIC_P_FACTOR
		elif used_ph > optimal_ph.high:
			n *= ALKALINE_N_FACTOR

	if used_moisture is not None and optimal_moisture is not None:
		if used_moisture < optimal_moisture.low:
			n *= DRY_N_FACTOR
		elif used_moisture > optimal_moisture.high:
			n *= WET_N_FACTOR

	return AdjustedDoses(
		n=round_dose(n),
		p=round_dose(p),
		k=round_dose(k),
		ph=used_ph,
		moisture=used_moisture,
	)
