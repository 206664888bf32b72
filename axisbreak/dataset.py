#!/usr/bin/env python3
"""
Dataset access for axisbreak.

Loads a tabular dataset (CSV) into a DataFrame, optionally restricted to a line
range, and prepares a single numeric column for gap analysis: missing and
non-finite entries are dropped and the overall min/max is recorded.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


class DatasetError(Exception):
    """Base exception for dataset and column access errors."""

    pass


class DatasetNotFoundError(DatasetError, FileNotFoundError):
    """Raised when the dataset handle does not resolve to a file."""

    pass


class FileAccessError(DatasetError):
    """Raised when the dataset exists but cannot be read."""

    pass


class InvalidRangeError(DatasetError):
    """Raised when an invalid line range is provided."""

    pass


class ColumnNotFoundError(DatasetError, LookupError):
    """Raised when the requested column is absent from the dataset."""

    pass


class ColumnTypeError(DatasetError, TypeError):
    """Raised when the requested column holds non-numeric data."""

    pass


class EmptyColumnError(DatasetError, ValueError):
    """Raised when every value of the column is missing."""

    pass


class InsufficientDataError(DatasetError, ValueError):
    """Raised when fewer than two observations remain, so no gap exists."""

    pass


@dataclass(frozen=True)
class OverallRange:
    """Global min/max of the clean observations."""

    min: float
    max: float

    @property
    def span(self) -> float:
        return self.max - self.min


@dataclass(frozen=True)
class PreparedColumn:
    """
    Clean observations of one column.

    Attributes:
        name: Column name as found in the dataset.
        values: Finite float observations in dataset order (not sorted).
        overall: OverallRange of values.
        missing_count: Number of rows dropped as missing or non-finite.
    """

    name: str
    values: np.ndarray
    overall: OverallRange
    missing_count: int = 0

    @property
    def count(self) -> int:
        return int(self.values.size)


class CSVDatasetReader:
    """
    Reads a CSV dataset, or a line range of it, into a DataFrame.

    Line numbers are 1-based and count data rows only (the header is excluded).
    """

    def __init__(self, file_path: Union[str, Path]) -> None:
        """
        Args:
            file_path: Path to the CSV file

        Raises:
            DatasetNotFoundError: If the file does not exist
            FileAccessError: If the path is not a regular file
        """
        self.file_path = Path(file_path)
        if not self.file_path.exists():
            raise DatasetNotFoundError(f"Dataset not found: {self.file_path}")
        if not self.file_path.is_file():
            raise FileAccessError(f"Path is not a file: {self.file_path}")
        if not self.file_path.suffix.lower() == ".csv":
            logger.warning(f"Dataset does not have .csv extension: {self.file_path}")

    def get_total_lines(self) -> int:
        """
        Total number of data rows (excluding header), counted in chunks.

        Raises:
            FileAccessError: If the file cannot be read
        """
        try:
            total_rows = 0
            for chunk in pd.read_csv(self.file_path, chunksize=10000):
                total_rows += len(chunk)
            return total_rows
        except pd.errors.EmptyDataError:
            return 0
        except Exception as e:
            raise FileAccessError(f"Error reading CSV file: {e}")

    def _validate_line_range(
        self,
        start_line: Optional[int],
        end_line: Optional[int] = None,
        total_lines: Optional[int] = None,
    ) -> Tuple[int, int]:
        """
        Validate and normalize line range parameters.

        None for start_line means the first data row; None for end_line means the
        last. An end_line past the end of the file is clamped. total_lines is counted
        from the file when not passed in.

        Raises:
            InvalidRangeError: If the range is invalid
        """
        if total_lines is None:
            total_lines = self.get_total_lines()

        if start_line is None:
            start_line = 1
        elif not isinstance(start_line, int) or start_line <= 0:
            raise InvalidRangeError(
                f"Start line must be a positive integer or None, got: {start_line}"
            )

        if end_line is None:
            end_line = total_lines
        elif not isinstance(end_line, int) or end_line <= 0:
            raise InvalidRangeError(
                f"End line must be a positive integer or None, got: {end_line}"
            )

        if start_line > total_lines:
            raise InvalidRangeError(
                f"Start line {start_line} exceeds total data rows {total_lines}"
            )

        if end_line < start_line:
            raise InvalidRangeError(
                f"End line {end_line} must be greater than or equal to start line {start_line}"
            )

        if end_line > total_lines:
            end_line = total_lines

        return start_line, end_line

    def read_range(
        self,
        start_line: Optional[int] = None,
        end_line: Optional[int] = None,
        include_header: bool = True,
    ) -> pd.DataFrame:
        """
        Read a range of data rows using pandas skiprows/nrows.

        Raises:
            InvalidRangeError: If the range parameters are invalid
            FileAccessError: If the file cannot be read
        """
        total_lines = self.get_total_lines()
        if total_lines == 0:
            return pd.DataFrame()

        start_line, end_line = self._validate_line_range(start_line, end_line, total_lines)
        n_rows = end_line - start_line + 1

        try:
            if include_header:
                # Keep the header (line 0); skip data rows 1..start_line-1.
                skiprows = None if start_line <= 1 else range(1, start_line)
                return pd.read_csv(
                    self.file_path, header=0, skiprows=skiprows, nrows=n_rows
                )
            # No header: columns are positional integers.
            return pd.read_csv(
                self.file_path,
                header=None,
                skiprows=range(0, start_line),
                nrows=n_rows,
            )
        except pd.errors.EmptyDataError:
            return pd.DataFrame()
        except Exception as e:
            raise FileAccessError(f"Error reading CSV range: {e}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        pass


def resolve_column_name(df: pd.DataFrame, column: str) -> str:
    """
    Return the dataset's own name for `column`.

    Exact match wins; otherwise a single case-insensitive, whitespace-trimmed
    match is accepted.

    Raises:
        ColumnNotFoundError: If no column (or more than one loose match) is found
    """
    if column in df.columns:
        return column
    wanted = str(column).strip().lower()
    matches = [c for c in df.columns if str(c).strip().lower() == wanted]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise ColumnNotFoundError(
            f"Column '{column}' is ambiguous; candidates: {matches}"
        )
    raise ColumnNotFoundError(
        f"Column '{column}' not found. Found columns: {list(df.columns)}"
    )


def prepare_column(
    df: Optional[pd.DataFrame], column: str, min_count: int = 2
) -> PreparedColumn:
    """
    Collect the non-missing numeric observations of `column`.

    Behavior:
    - The dataset and column are resolved before any computation.
    - Entries are coerced with pd.to_numeric(errors="coerce"); NaN and +/-inf
      are treated as missing.
    - A non-numeric column whose non-missing entries do not all coerce is
      rejected as categorical.
    - Fewer than `min_count` remaining observations is an error because no
      gap can be computed.

    Raises:
        DatasetNotFoundError, ColumnNotFoundError, ColumnTypeError,
        EmptyColumnError, InsufficientDataError
    """
    if df is None:
        raise DatasetNotFoundError("Dataset not found: no dataset was provided")

    name = resolve_column_name(df, column)
    series = df[name]
    if isinstance(series, pd.DataFrame):
        raise ColumnNotFoundError(f"Column '{column}' is duplicated in the dataset")

    if pd.api.types.is_bool_dtype(series):
        raise ColumnTypeError(f"Column '{name}' is boolean, not numeric")

    coerced = pd.to_numeric(series, errors="coerce")
    if not pd.api.types.is_numeric_dtype(series):
        # Strings that merely look numeric are accepted; anything else is categorical
        uncoercible = int((series.notna() & coerced.isna()).sum())
        if uncoercible > 0:
            raise ColumnTypeError(
                f"Column '{name}' is not numeric ({uncoercible} non-numeric entries)"
            )

    values = coerced.to_numpy(dtype=float, na_value=np.nan)
    finite_mask = np.isfinite(values)
    clean = values[finite_mask]
    missing_count = int(values.size - clean.size)

    if clean.size == 0:
        raise EmptyColumnError(
            f"Column '{name}' has no non-missing values ({missing_count} rows missing)"
        )
    if clean.size < min_count:
        raise InsufficientDataError(
            f"Column '{name}' has {clean.size} non-missing value(s); need at least {min_count}"
        )

    overall = OverallRange(min=float(clean.min()), max=float(clean.max()))
    logger.debug(
        "Prepared column %s: %d values, %d missing, range [%s, %s]",
        name,
        clean.size,
        missing_count,
        overall.min,
        overall.max,
    )
    return PreparedColumn(
        name=str(name), values=clean, overall=overall, missing_count=missing_count
    )
