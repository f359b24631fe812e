"""Crop catalog access: spreadsheet reading and fuzzy-header crop lookup."""

from __future__ import annotations

import re
import zipfile
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from agrosense.services.parsing import Range, parse_range

CatalogRow = Mapping[str, Any]

# Ordered synonym fragments per field. Fragments are tried in listed order and
# the first header (left to right) containing the fragment wins.
FIELD_SYNONYMS: dict[str, tuple[str, ...]] = {
	"name": ("crop name", "crop", "name", "crop_name"),
	"n": ("n (kg/ha)", "n(kg/ha)", "n", "nitrogen"),
	"p": ("p (kg/ha)", "p(kg/ha)", "p", "phosphorus"),
	"k": ("k (kg/ha)", "k(kg/ha)", "k", "potassium"),
	"temperature": (
		"temperature range",
		"temperature range (in °c)",
		"temperature",
		"opt temp",
		"optimal temp",
	),
	"optimal_temperature": ("optimal temp", "optimal temperature", "optimal temp range"),
	"moisture": ("soil moisture", "soil moisture (in %)", "moisture"),
	"ph": ("soil ph", "ph"),
}

NAME_HEADER = re.compile(r"^(name|crop|crop name|crop_name)$", re.IGNORECASE)


class CatalogUnavailableError(RuntimeError):
	"""Raised when the catalog source is missing, unreadable or empty."""


class CropNotFoundError(LookupError):
	"""Raised when no catalog row matches the requested crop."""

	def __init__(self, crop: str):
		super().__init__(f"Crop {crop!r} not found in catalog")
		self.crop = crop


@dataclass(frozen=True, slots=True)
class CropRecord:
	name: str
	base_n: Any
	base_p: Any
	base_k: Any
	optimal_ph: Range | None = None
	optimal_moisture: Range | None = None
	optimal_temperature: Range | None = None


def find_column(headers: Sequence[str], field: str) -> str | None:
	"""Resolve the header for ``field`` using :data:`FIELD_SYNONYMS`."""
	lowered = [header.lower() for header in headers]
	for fragment in FIELD_SYNONYMS[field]:
		for header, lower in zip(headers, lowered):
			if fragment in lower:
				return header
	return None


def resolve_columns(headers: Sequence[str]) -> dict[str, str | None]:
	return {field: find_column(headers, field) for field in FIELD_SYNONYMS}


def _cell(row: CatalogRow, header: str | None) -> Any:
	if header is None:
		return None
	return row.get(header)


def _is_blank(value: Any) -> bool:
	return value is None or (isinstance(value, str) and not value.strip())


def find_crop(rows: Sequence[CatalogRow], crop_name: str) -> CropRecord:
	"""Locate ``crop_name`` in ``rows`` (trimmed, case-insensitive match)."""
	wanted = crop_name.strip().lower()
	headers: list[str] = list(rows[0].keys()) if rows else []
	columns = resolve_columns(headers)

	name_column = columns["name"]
	if name_column is None:
		raise CropNotFoundError(crop_name)

	for row in rows:
		value = row.get(name_column)
		if str(value if value is not None else "").strip().lower() != wanted:
			continue

		temperature = _cell(row, columns["temperature"])
		if _is_blank(temperature):
			temperature = _cell(row, columns["optimal_temperature"])

		return CropRecord(
			name=str(value).strip(),
			base_n=_cell(row, columns["n"]),
			base_p=_cell(row, columns["p"]),
			base_k=_cell(row, columns["k"]),
			optimal_ph=parse_range(_cell(row, columns["ph"])),
			optimal_moisture=parse_range(_cell(row, columns["moisture"])),
			optimal_temperature=parse_range(temperature),
		)

	raise CropNotFoundError(crop_name)


def list_crop_names(matrix: Sequence[Sequence[Any]]) -> list[str]:
	"""Sorted, de-duplicated first-column crop names from raw sheet rows.

	Names are compared and ordered by code point, so ``"Tomato"`` sorts before
	``"apple"``; no locale collation is applied.
	"""
	start = 0
	if matrix and matrix[0]:
		first = str(matrix[0][0] if matrix[0][0] is not None else "").strip()
		if NAME_HEADER.match(first):
			start = 1

	names: set[str] = set()
	for row in matrix[start:]:
		if not row or row[0] is None:
			continue
		cell = str(row[0]).strip()
		if cell:
			names.add(cell)
	return sorted(names)


def frame_to_rows(frame: pd.DataFrame) -> list[dict[str, Any]]:
	"""Convert a catalog frame to plain header -> value dicts.

	Fully blank rows are dropped, NaN becomes ``None`` and numpy scalars become
	Python ``int``/``float`` so cells echo unchanged through the API.
	"""
	frame = frame.dropna(how="all")
	frame.columns = [str(label) for label in frame.columns]
	return frame.astype(object).where(frame.notna(), None).to_dict(orient="records")


class CatalogSource:
	"""Read-only view over the catalog file; first sheet only.

	``.csv`` files go through :func:`pandas.read_csv`, anything else through
	:func:`pandas.read_excel` with the openpyxl engine.
	"""

	def __init__(self, path: str | Path):
		self.path = Path(path)

	def read_matrix(self) -> list[list[Any]]:
		"""Raw first-sheet rows, header row included, no type inference on CSV."""
		if self.path.suffix.lower() == ".csv":
			frame = self._read(header=None, dtype=str, keep_default_na=False)
		else:
			frame = self._read(header=None, dtype=object)

		matrix = frame.astype(object).where(frame.notna(), None).values.tolist()
		if not any(not _is_blank(value) for row in matrix for value in row):
			raise CatalogUnavailableError(f"Catalog file {self.path.name} has no rows")
		return matrix

	def read_rows(self) -> list[dict[str, Any]]:
		"""Data rows keyed by header; the first and crop-name columns stay text."""
		labels = list(self._read(nrows=0).columns)
		if not labels:
			raise CatalogUnavailableError(f"Catalog file {self.path.name} has no rows")

		by_header = {str(label): label for label in labels}
		name_column = find_column(list(by_header), "name")
		text_columns = {labels[0]}
		if name_column is not None:
			text_columns.add(by_header[name_column])

		rows = frame_to_rows(self._read(dtype={label: str for label in text_columns}))
		if not rows:
			raise CatalogUnavailableError(f"Catalog file {self.path.name} has no crop rows")
		return rows

	def _read(self, **options: Any) -> pd.DataFrame:
		if not self.path.is_file():
			raise CatalogUnavailableError(f"Catalog file {self.path.name} not found")

		try:
			if self.path.suffix.lower() == ".csv":
				return pd.read_csv(self.path, encoding="utf-8-sig", **options)
			return pd.read_excel(self.path, sheet_name=0, engine="openpyxl", **options)
		except pd.errors.EmptyDataError as exc:
			raise CatalogUnavailableError(f"Catalog file {self.path.name} has no rows") from exc
		except (OSError, ValueError, InvalidFileException, zipfile.BadZipFile, KeyError) as exc:
			raise CatalogUnavailableError(f"Failed to read catalog: {exc}") from exc
