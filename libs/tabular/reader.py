# =============================================================================
# Tabular Reader Module
# =============================================================================
# Decodes uploaded spreadsheet/CSV bytes into an ordered list of row dicts.
# One decoder per format, selected from the file extension:
# - .csv  → pyarrow.csv (all columns read as strings)
# - .xlsx → pandas.read_excel (openpyxl engine)
# - .xls  → pandas.read_excel (xlrd engine)
# =============================================================================

import io
import logging
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Callable, Dict, Iterable, List

import pandas as pd
import pyarrow as pa
import pyarrow.csv as pacsv

from libs.errors import EmptyInput, TabularParseError, UnsupportedFormat

__all__ = [
    "TabularFormat",
    "detect_format",
    "read_rows",
    "file_row_number",
    "HEADER_ROWS",
]

logger = logging.getLogger(__name__)

# Row 1 of the file is the header, so data row i (0-based) is file row i + 2.
HEADER_ROWS = 1

Row = Dict[str, Any]


class TabularFormat(str, Enum):
    CSV = ".csv"
    XLSX = ".xlsx"
    XLS = ".xls"


def file_row_number(index: int) -> int:
    """
    Map a 0-based data row index to its 1-based row number in the file.

    Examples:
        >>> file_row_number(0)
        2
    """
    return index + HEADER_ROWS + 1


def detect_format(
    file_name: str,
    allowed: Iterable[str] = tuple(f.value for f in TabularFormat),
) -> TabularFormat:
    """
    Select the decoder format from the file extension.

    Raises:
        UnsupportedFormat: If the extension is not in ``allowed``.

    Examples:
        >>> detect_format("job1_1737800000.XLSX")
        <TabularFormat.XLSX: '.xlsx'>
    """
    extension = PurePosixPath(file_name).suffix.lower()
    allowed_set = {ext.lower() for ext in allowed}
    if extension not in allowed_set:
        raise UnsupportedFormat(
            f"Unsupported file format '{extension or file_name}'. "
            f"Allowed: {', '.join(sorted(allowed_set))}"
        )
    return TabularFormat(extension)


def _clean_header(name: Any) -> str:
    return str(name).strip()


def _read_csv(data: bytes) -> List[Row]:
    buffer = pa.py_buffer(data)
    try:
        # First block only: column names for the string-typed second pass.
        names = pacsv.open_csv(pa.BufferReader(buffer)).schema.names
        table = pacsv.read_csv(
            pa.BufferReader(buffer),
            parse_options=pacsv.ParseOptions(delimiter=","),
            read_options=pacsv.ReadOptions(use_threads=True),
            convert_options=pacsv.ConvertOptions(
                column_types={name: pa.string() for name in names},
                null_values=[""],
                strings_can_be_null=True,
            ),
        )
    except (pa.ArrowInvalid, UnicodeDecodeError) as e:
        raise TabularParseError(f"Failed to parse CSV: {e}") from e

    table = table.rename_columns([_clean_header(name) for name in table.column_names])
    return table.to_pylist()


def _read_excel(data: bytes, engine: str) -> List[Row]:
    try:
        frame = pd.read_excel(io.BytesIO(data), sheet_name=0, dtype=object, engine=engine)
    except Exception as e:
        raise TabularParseError(f"Failed to parse spreadsheet: {e}") from e

    frame.columns = [_clean_header(name) for name in frame.columns]
    frame = frame.astype(object).where(pd.notna(frame), None)
    return frame.to_dict(orient="records")


_DECODERS: Dict[TabularFormat, Callable[[bytes], List[Row]]] = {
    TabularFormat.CSV: _read_csv,
    TabularFormat.XLSX: lambda data: _read_excel(data, engine="openpyxl"),
    TabularFormat.XLS: lambda data: _read_excel(data, engine="xlrd"),
}


def read_rows(
    data: bytes,
    file_name: str,
    allowed: Iterable[str] = tuple(f.value for f in TabularFormat),
) -> List[Row]:
    """
    Decode an uploaded file into an ordered list of ``{column: value}`` dicts.

    Rows are returned in file order; empty cells are ``None``. No row is
    dropped, so ``file_row_number(i)`` always points at the source line.

    Args:
        data: Raw file bytes
        file_name: Name used for format detection
        allowed: Accepted extensions

    Returns:
        List of row dicts

    Raises:
        UnsupportedFormat: Extension not allowed
        EmptyInput: File decodes to zero data rows
        TabularParseError: Content could not be decoded
    """
    fmt = detect_format(file_name, allowed)

    if not data or not data.strip():
        raise EmptyInput(f"File '{file_name}' is empty")

    rows = _DECODERS[fmt](data)
    logger.info(f"Read {len(rows)} rows from '{file_name}' ({fmt.name})")

    if not rows:
        raise EmptyInput(f"File '{file_name}' has no data rows")
    return rows
