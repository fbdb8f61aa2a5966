"""XLSX workbook reader.

Exposes sheet names and, per sheet, rows as lists of cell strings. The first
row of every sheet is the header row. Native cell values (dates, numbers) are
rendered to the text forms the value parsers understand.
"""
from __future__ import annotations

import io
import logging
from datetime import date, datetime, time
from xml.etree.ElementTree import ParseError
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

logger = logging.getLogger(__name__)


def cell_to_str(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


class Workbook:
    """Read-only view over an openpyxl workbook."""

    def __init__(self, wb):
        self._wb = wb

    @property
    def sheet_names(self) -> list[str]:
        return list(self._wb.sheetnames)

    def rows(self, sheet_name: str) -> list[list[str]]:
        """Return non-empty rows with trailing empty cells trimmed.

        Raises ValueError if the sheet cannot be read.
        """
        try:
            ws = self._wb[sheet_name]
            if hasattr(ws, "reset_dimensions"):
                # Some exporters write a stale <dimension>; read everything present
                ws.reset_dimensions()
            raw_rows = list(ws.iter_rows(values_only=True))
        except (KeyError, AttributeError, ValueError, OSError, ParseError) as e:
            raise ValueError(f"cannot read sheet {sheet_name!r}: {e}") from e

        rows: list[list[str]] = []
        for raw in raw_rows:
            cells = [cell_to_str(v) for v in raw]
            while cells and cells[-1] == "":
                cells.pop()
            if cells:
                rows.append(cells)
        return rows

    def close(self) -> None:
        self._wb.close()

    def __enter__(self) -> "Workbook":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def read_workbook(data: bytes) -> Workbook:
    """Open an XLSX workbook from raw bytes. Raises ValueError if it is not a readable workbook."""
    try:
        wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, ValueError, OSError, ParseError) as e:
        logger.warning("Cannot open workbook: %s", e)
        raise ValueError(f"error opening XLSX: {e}") from e
    return Workbook(wb)
