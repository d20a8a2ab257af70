"""
Observation Sets

An observation set is an ordered table of records, each supplying the same
named numeric fields. Model specifications declare which fields they read;
the sampling driver checks the declared types against this table.

"""

from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .exceptions import ValidationError


class ObservationSet:
    """
    Validated, read-only table of observations.

    Parameters
    ----------
    frame : pd.DataFrame
        Source data. Only ``fields`` are kept, in the given order.
    fields : sequence of str, optional
        Field names to keep. Defaults to every column of ``frame``.

    Attributes
    ----------
    fields : List[str]
        Field names, in declaration order
    n_dropped : int
        Number of rows removed by ``drop_missing`` to obtain this set

    Raises
    ------
    ValidationError
        If the set is empty, a field is absent, a field is not numeric,
        or any value is missing.

    Examples
    --------
    >>> obs = ObservationSet.from_frame(df, ['x', 'y'])
    >>> len(obs)
    30
    >>> obs['x'][:3]
    array([...])
    """

    def __init__(
        self,
        frame: pd.DataFrame,
        fields: Optional[Sequence[str]] = None,
        n_dropped: int = 0
    ):
        if not isinstance(frame, pd.DataFrame):
            raise ValidationError(
                f"Observations must be a pandas DataFrame, got {type(frame).__name__}"
            )

        fields = list(frame.columns) if fields is None else list(fields)
        if len(fields) == 0:
            raise ValidationError("An observation set needs at least one field")
        if len(set(fields)) != len(fields):
            raise ValidationError(f"Duplicate field names: {fields}")

        missing_cols = [f for f in fields if f not in frame.columns]
        if missing_cols:
            raise ValidationError(
                f"Fields not found in data: {missing_cols}. "
                f"Available columns: {list(frame.columns)}"
            )

        frame = frame[fields].reset_index(drop=True)

        if len(frame) == 0:
            raise ValidationError(
                "Observation set is empty. At least one observation is "
                "required for the model to be identifiable."
            )

        for field in fields:
            dtype = frame[field].dtype
            if pd.api.types.is_bool_dtype(dtype) or not pd.api.types.is_numeric_dtype(dtype):
                raise ValidationError(
                    f"Field '{field}' must be numeric, got dtype {dtype}"
                )

        n_missing = int(frame.isna().sum().sum())
        if n_missing > 0:
            raise ValidationError(
                f"Observation set has {n_missing} missing values "
                f"({frame.isna().sum().to_dict()}). Rows with missing values "
                "must be dropped before fitting: use dropna=True or drop_missing()."
            )

        self._frame = frame
        self.fields = fields
        self.n_dropped = n_dropped

    @classmethod
    def from_frame(
        cls,
        frame: pd.DataFrame,
        fields: Optional[Sequence[str]] = None,
        dropna: bool = False,
        verbose: bool = False
    ) -> "ObservationSet":
        """
        Build an observation set from a DataFrame.

        With ``dropna=True`` rows missing any of ``fields`` are removed first
        (never imputed).
        """
        if not isinstance(frame, pd.DataFrame):
            raise ValidationError(
                f"Observations must be a pandas DataFrame, got {type(frame).__name__}"
            )

        n_dropped = 0
        if dropna:
            subset = list(frame.columns) if fields is None else list(fields)
            frame, n_dropped = drop_missing(frame, subset, verbose=verbose)

        return cls(frame, fields, n_dropped=n_dropped)

    @classmethod
    def from_records(
        cls,
        records: Iterable[Mapping[str, float]],
        fields: Sequence[str]
    ) -> "ObservationSet":
        """Build an observation set from an iterable of dict-like records."""
        records = list(records)
        for i, record in enumerate(records):
            absent = [f for f in fields if f not in record]
            if absent:
                raise ValidationError(f"Record {i} is missing fields {absent}")
        return cls(pd.DataFrame.from_records(records, columns=list(fields)), fields)

    def __len__(self) -> int:
        return len(self._frame)

    def __getitem__(self, field: str) -> np.ndarray:
        if field not in self.fields:
            raise KeyError(field)
        return self._frame[field].to_numpy()

    def __contains__(self, field: str) -> bool:
        return field in self.fields

    def __repr__(self) -> str:
        return f"ObservationSet(n={len(self)}, fields={self.fields})"

    def to_frame(self) -> pd.DataFrame:
        """Return a copy of the observations as a DataFrame."""
        return self._frame.copy()

    def to_dict(self) -> Dict[str, np.ndarray]:
        return {field: self[field] for field in self.fields}


def load_snapshot(
    path: Union[str, Path],
    predictor: str,
    response: str,
    dropna: bool = False,
    verbose: bool = True
) -> ObservationSet:
    """
    Load a two-column tabular snapshot from a CSV file.

    Parameters
    ----------
    path : str or Path
        CSV file with a header row
    predictor : str
        Predictor column name (e.g. 'x' or 'Temp')
    response : str
        Response column name (e.g. 'y' or 'Ozone')
    dropna : bool, optional (default=False)
        If True, drop rows missing the predictor or response
    verbose : bool, optional (default=True)
        If True, print a short load report

    Returns
    -------
    observations : ObservationSet
        Observation set with fields [predictor, response]

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ValidationError
        If the columns are absent, non-numeric, empty, or (with dropna=False)
        contain missing values
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Snapshot file not found: {path}")

    frame = pd.read_csv(path)
    observations = ObservationSet.from_frame(
        frame, [predictor, response], dropna=dropna, verbose=verbose
    )

    if verbose:
        print(f"✓ Loaded {len(observations)} observations from {path}")
        print(f"  Fields: {observations.fields}")

    return observations


def drop_missing(
    frame: pd.DataFrame,
    fields: Sequence[str],
    verbose: bool = False
) -> Tuple[pd.DataFrame, int]:
    """
    Drop rows missing any of ``fields``. Missing values are never imputed.

    Returns
    -------
    complete : pd.DataFrame
        Rows with every field present
    n_dropped : int
        Number of rows removed
    """
    absent = [f for f in fields if f not in frame.columns]
    if absent:
        raise ValidationError(
            f"Fields not found in data: {absent}. "
            f"Available columns: {list(frame.columns)}"
        )

    complete = frame.dropna(subset=list(fields))
    n_dropped = len(frame) - len(complete)

    if verbose and n_dropped > 0:
        print(f"  Dropped {n_dropped} of {len(frame)} rows with missing values")
        for field, n_missing in count_missing(frame, fields).items():
            if n_missing:
                print(f"    {field}: {n_missing} missing")

    return complete, n_dropped


def count_missing(frame: pd.DataFrame, fields: Sequence[str]) -> Dict[str, int]:
    """Number of missing values per field."""
    return {field: int(frame[field].isna().sum()) for field in fields}
