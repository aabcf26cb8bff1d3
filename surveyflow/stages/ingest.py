"""Stage 2: read the response table into one record per respondent row.

Excel workbooks (first sheet unless told otherwise) and CSV files are read
with pandas.  Cells keep the type the file gives them: text stays text ("001",
"N/A" and "None" are answers, not numbers or blanks).  Only empty cells are
left out of the record, so a missing key always means "no cell".
"""

from __future__ import annotations

import logging
import math
import zipfile
from collections.abc import Sequence
from datetime import date, datetime, time
from pathlib import Path

import numpy as np
import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from surveyflow.config import ID_COLUMN, METADATA_COLUMNS, REQUIRED_COLUMNS
from surveyflow.errors import FormatError
from surveyflow.models import Finding, FindingCode, RawResponseRecord

logger = logging.getLogger(__name__)

_CSV_SUFFIXES = (".csv", ".tsv")

# How many duplicated ids the duplicate finding names before eliding.
_MAX_NAMED_DUPLICATES = 5


def read_responses(
    source: Path | str,
    sheet: str | int | None = None,
    *,
    keep_blank_rows: bool = False,
) -> list[RawResponseRecord]:
    """Read a response table from an Excel workbook or a CSV file.

    Fully blank rows are dropped unless *keep_blank_rows* is set.
    Raises FormatError when the file cannot be opened or has no usable sheet.
    """
    path = Path(source)
    if path.suffix.lower() in _CSV_SUFFIXES:
        df = _read_csv(path)
    else:
        df = _read_sheet(path, sheet)

    records = records_from_frame(df)
    if not keep_blank_rows:
        kept = [r for r in records if r]
        if len(kept) != len(records):
            logger.info("Dropped %d blank row(s) from %s", len(records) - len(kept), path.name)
        records = kept

    logger.info("Read %d response row(s) from %s", len(records), path.name)
    return records


def _read_csv(path: Path) -> pd.DataFrame:
    sep = "\t" if path.suffix.lower() == ".tsv" else ","
    try:
        return pd.read_csv(
            path,
            sep=sep,
            dtype=object,
            keep_default_na=False,
            na_values=[""],
            encoding="utf-8-sig",
        )
    except pd.errors.EmptyDataError:
        return pd.DataFrame()
    except (OSError, UnicodeDecodeError, pd.errors.ParserError) as exc:
        raise FormatError(f"Could not read CSV file {path.name}: {exc}") from exc


def _read_sheet(path: Path, sheet: str | int | None) -> pd.DataFrame:
    try:
        xls = pd.ExcelFile(path, engine="openpyxl")
    except FileNotFoundError as exc:
        raise FormatError(f"Response file not found: {path}") from exc
    except (OSError, ValueError, KeyError, zipfile.BadZipFile, InvalidFileException) as exc:
        raise FormatError(
            f"{path.name} is not a valid Excel workbook (.xlsx). "
            f"Check that the file is not corrupt or password-protected."
        ) from exc

    with xls:
        if not xls.sheet_names:
            raise FormatError(f"The workbook {path.name} contains no worksheet")

        if sheet is None:
            sheet = xls.sheet_names[0]
        elif isinstance(sheet, str) and sheet not in xls.sheet_names:
            raise FormatError(f'The workbook {path.name} has no sheet named "{sheet}"')
        elif isinstance(sheet, int) and not 0 <= sheet < len(xls.sheet_names):
            raise FormatError(f"The workbook {path.name} has no sheet at index {sheet}")

        try:
            return xls.parse(sheet, dtype=object, keep_default_na=False, na_values=[""])
        except (ValueError, KeyError, TypeError, zipfile.BadZipFile) as exc:
            raise FormatError(f'The sheet "{sheet}" is empty or corrupt: {exc}') from exc


def _cell(value: object) -> str | int | float | None:
    """Convert one pandas cell to a record value; None means "no cell"."""
    if isinstance(value, np.generic):
        value = value.item()
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, bool):
        return str(value).upper()
    if isinstance(value, float):
        if math.isnan(value):
            return None
        # Integer columns with blanks come back as float64
        return int(value) if value.is_integer() else value
    if isinstance(value, int):
        return value
    if isinstance(value, (pd.Timestamp, datetime)):
        if (value.hour, value.minute, value.second, value.microsecond) == (0, 0, 0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, (date, time)):
        return value.isoformat()
    return str(value)


def records_from_frame(df: pd.DataFrame) -> list[RawResponseRecord]:
    """Convert each frame row to a record keyed by column name."""
    columns = [str(c) for c in df.columns]
    records: list[RawResponseRecord] = []
    for row in df.itertuples(index=False, name=None):
        record: RawResponseRecord = {}
        for column, raw in zip(columns, row):
            value = _cell(raw)
            if value is not None:
                record[column] = value
        records.append(record)
    return records


# -- Checks -----------------------------------------------------------------------


def has_required_columns(
    records: Sequence[RawResponseRecord],
    required: Sequence[str] = REQUIRED_COLUMNS,
) -> bool:
    """Whether the first row carries every required column."""
    if not records:
        return False
    first = records[0]
    return all(column in first for column in required)


def get_question_columns(
    records: Sequence[RawResponseRecord],
    metadata: Sequence[str] = METADATA_COLUMNS,
) -> list[str]:
    """Columns of the first row that are not respondent metadata."""
    if not records:
        return []
    return [column for column in records[0] if column not in metadata]


def get_unmatched_columns(
    records: Sequence[RawResponseRecord],
    question_ids: Sequence[str],
    metadata: Sequence[str] = METADATA_COLUMNS,
) -> list[str]:
    """Question columns of the first row that no question in the structure uses."""
    known = set(question_ids)
    return [column for column in get_question_columns(records, metadata) if column not in known]


def get_ingest_findings(
    records: Sequence[RawResponseRecord] | None,
    required: Sequence[str] = REQUIRED_COLUMNS,
) -> list[Finding]:
    """Check a response table for missing columns, blank rows and duplicate ids.

    The schema is taken from the first row.
    """
    if records is None:
        return [Finding(code=FindingCode.NO_DATA, message="No data found in the response file")]
    if not records:
        return [Finding(code=FindingCode.EMPTY_TABLE, message="The response file is empty")]
    if not isinstance(records[0], dict):
        return [Finding(
            code=FindingCode.INVALID_ROW,
            message="The first row of the response file is not in a valid format",
        )]

    findings: list[Finding] = []
    first = records[0]

    missing = [column for column in required if column not in first]
    if missing:
        findings.append(Finding(
            code=FindingCode.MISSING_COLUMNS,
            message=f"Missing columns in the response file: {', '.join(missing)}",
            count=len(missing),
        ))

    empty_rows = sum(1 for row in records if isinstance(row, dict) and not row)
    if empty_rows:
        findings.append(Finding(
            code=FindingCode.EMPTY_ROWS,
            message=f"{empty_rows} empty row(s) found in the response file",
            count=empty_rows,
        ))

    duplicates = _duplicate_ids(records)
    if duplicates:
        named = ", ".join(str(d) for d in duplicates[:_MAX_NAMED_DUPLICATES])
        more = "..." if len(duplicates) > _MAX_NAMED_DUPLICATES else ""
        findings.append(Finding(
            code=FindingCode.DUPLICATE_RESPONDENT_ID,
            message=(
                f"Duplicates found in the {ID_COLUMN} column. "
                f"{len(duplicates)} duplicated ID(s) found: {named}{more}"
            ),
            count=len(duplicates),
        ))

    return findings


def _duplicate_ids(records: Sequence[RawResponseRecord]) -> list[object]:
    """Distinct duplicated ``ID_questionnaire`` values, in order of first repeat."""
    seen: set[object] = set()
    duplicates: list[object] = []
    for row in records:
        if not isinstance(row, dict) or ID_COLUMN not in row:
            continue
        value = row[ID_COLUMN]
        if value in seen:
            if value not in duplicates:
                duplicates.append(value)
        else:
            seen.add(value)
    return duplicates
