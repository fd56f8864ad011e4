# Typed loading of the case/death and vaccination CSVs; rows with an unreadable key are skipped.
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from covid_metrics.config import CASE_COLUMNS, VACCINATION_COLUMNS
from covid_metrics.csv_parser import custom_csv_parser, clean_integer, parse_date
from covid_metrics.dataframe import DataFrame

logger = logging.getLogger("covid_metrics.datasets")

CASE_COUNT_COLUMNS = ["population", "total_cases", "new_cases", "total_deaths", "new_deaths"]
VACCINATION_COUNT_COLUMNS = ["new_vaccinations"]


class MissingColumnsError(ValueError):
    """Raised when an input file lacks columns the metrics need."""

    def __init__(self, source: str, missing: List[str]):
        self.source = source
        self.missing = missing
        super().__init__(f"{source} is missing required columns: {', '.join(missing)}")


def _text_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_records(data: Dict[str, List[Any]], required: Iterable[str],
                      count_columns: Iterable[str], source: str = "dataset") -> DataFrame:
    """
    Type and clean a parsed column-major table.

    Rows with a blank ``location`` or an unparseable ``date`` are dropped and
    counted. Count columns are cleansed to integers, with unreadable values
    becoming None. Columns beyond the required ones are passed through.
    """
    required = list(required)
    missing = [c for c in required if c not in data]
    if missing:
        raise MissingColumnsError(source, missing)

    count_columns = [c for c in count_columns if c in data]
    columns = list(data.keys())
    num_rows = len(data[columns[0]]) if columns else 0

    out: Dict[str, List[Any]] = {c: [] for c in columns}
    skipped_location = 0
    skipped_date = 0
    for i in range(num_rows):
        location = _text_or_none(data["location"][i])
        if location is None:
            skipped_location += 1
            continue
        record_date = parse_date(data["date"][i])
        if record_date is None:
            skipped_date += 1
            continue

        for c in columns:
            value = data[c][i]
            if c == "location":
                value = location
            elif c == "date":
                value = record_date
            elif c == "continent":
                value = _text_or_none(value)
            elif c in count_columns:
                value = clean_integer(value)
            out[c].append(value)

    if skipped_location or skipped_date:
        logger.warning(
            f"{source}: skipped {skipped_location} rows without a location "
            f"and {skipped_date} rows with an unparseable date"
        )
    df = DataFrame(out)
    logger.info(f"{source}: loaded {df._num_rows:,} rows x {df._num_cols} columns")
    return df


def load_case_records(path: Union[str, Path], separator: str = ',') -> DataFrame:
    """Load the daily cases/deaths file."""
    path = Path(path)
    return normalize_records(custom_csv_parser(path, separator=separator),
                             CASE_COLUMNS, CASE_COUNT_COLUMNS, source=path.name)


def load_vaccination_records(path: Union[str, Path], separator: str = ',') -> DataFrame:
    """Load the daily vaccinations file."""
    path = Path(path)
    return normalize_records(custom_csv_parser(path, separator=separator),
                             VACCINATION_COLUMNS, VACCINATION_COUNT_COLUMNS, source=path.name)
