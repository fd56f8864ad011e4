import logging
import sqlite3
import time
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from covid_metrics.csv_parser import write_csv
from covid_metrics.dataframe import DataFrame
from covid_metrics import metrics

logger = logging.getLogger("covid_metrics.views")

ViewBuilder = Callable[[DataFrame, DataFrame], DataFrame]

VIEW_BUILDERS: Dict[str, ViewBuilder] = {
    "PercentPopulationVac": lambda c, v: metrics.percent_population_vac(c, v),
    "VaccinationCaseDeclineCanada": lambda c, v: metrics.vaccination_case_decline(c, v, location="Canada"),
    "G7_TimeTo50PercentVaccinated": lambda c, v: metrics.time_to_vaccination_threshold(
        c, v, threshold=0.5, died_column="pct_died_to_date"
    ),
    "G7_PeakDeathVaccinationOutcomes": lambda c, v: metrics.peak_death_outcomes(c, v, lowercase=True),
}


def refresh_views(cases: DataFrame, vaccinations: DataFrame,
                  names: Optional[Iterable[str]] = None) -> Dict[str, DataFrame]:
    """Recompute the named views (all of them by default) from the input frames."""
    names = list(VIEW_BUILDERS) if names is None else list(names)
    unknown = [n for n in names if n not in VIEW_BUILDERS]
    if unknown:
        raise KeyError(f"Unknown views: {unknown}. Available: {list(VIEW_BUILDERS)}")

    views = {}
    for name in names:
        start = time.time()
        views[name] = VIEW_BUILDERS[name](cases, vaccinations)
        elapsed_ms = (time.time() - start) * 1000
        logger.info(f"Refreshed view {name}: {views[name]._num_rows} rows in {elapsed_ms:.2f}ms")
    return views


def _sql_type(values: List[Any]) -> str:
    present = [v for v in values if v is not None]
    if not present:
        return "TEXT"
    if all(isinstance(v, (date, datetime)) for v in present):
        return "DATE"
    if all(isinstance(v, int) and not isinstance(v, bool) for v in present):
        return "INTEGER"
    if all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in present):
        return "REAL"
    return "TEXT"


def _sql_value(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class ViewStore:
    """SQLite database holding materialised views as plain tables."""

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def write_view(self, name: str, df: DataFrame) -> int:
        """Drop and recreate the table for ``name`` and load the frame's rows into it."""
        columns = df.columns
        if not columns:
            raise ValueError(f"View {name} has no columns to materialise.")

        table = _quote_identifier(name)
        column_sql = ", ".join(f"{_quote_identifier(c)} {_sql_type(df[c])}" for c in columns)
        placeholders = ", ".join("?" for _ in columns)
        rows = [
            tuple(_sql_value(df[c][i]) for c in columns)
            for i in range(df._num_rows)
        ]

        conn = self.connect()
        try:
            with conn:
                conn.execute(f"DROP TABLE IF EXISTS {table}")
                conn.execute(f"CREATE TABLE {table} ({column_sql})")
                conn.executemany(f"INSERT INTO {table} VALUES ({placeholders})", rows)
        finally:
            conn.close()
        return len(rows)

    def read_view(self, name: str) -> DataFrame:
        conn = self.connect()
        try:
            cursor = conn.execute(f"SELECT * FROM {_quote_identifier(name)}")
            columns = [d[0] for d in cursor.description]
            data = {c: [] for c in columns}
            for row in cursor:
                for c, v in zip(columns, row):
                    data[c].append(v)
        finally:
            conn.close()
        return DataFrame(data)

    def list_views(self) -> List[str]:
        conn = self.connect()
        try:
            rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name").fetchall()
        finally:
            conn.close()
        return [r[0] for r in rows]


def materialize_views(db_path: Union[str, Path], views: Dict[str, DataFrame]) -> Dict[str, int]:
    """Write every view into the SQLite database at ``db_path`` and return row counts per view."""
    store = ViewStore(db_path)
    counts = {}
    for name, df in views.items():
        counts[name] = store.write_view(name, df)
        logger.info(f"Materialised {name}: {counts[name]} rows into {store.db_path}")
    return counts


def export_views_csv(out_dir: Union[str, Path], views: Dict[str, DataFrame],
                     separator: str = ',') -> Dict[str, Path]:
    out_dir = Path(out_dir)
    paths = {}
    for name, df in views.items():
        path = out_dir / f"{name}.csv"
        count = write_csv(path, df._data, separator=separator)
        paths[name] = path
        logger.info(f"Exported {name}: {count} rows to {path}")
    return paths
