# Analytical queries over the case/death and vaccination frames.
# Percentages are rounded half away from zero; zero or null denominators give None.
import logging
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from covid_metrics.config import (
    DEFAULT_LOCATION,
    G7_COUNTRIES,
    MILESTONE_THRESHOLDS,
    ROLLING_WINDOW_DAYS,
)
from covid_metrics.csv_parser import clean_integer
from covid_metrics.dataframe import DataFrame
from covid_metrics.ratios import pct, per_100k, round_half_away

logger = logging.getLogger("covid_metrics.metrics")

JOIN_KEYS = ["location", "date"]


def _done(name: str, df: DataFrame) -> DataFrame:
    logger.debug(f"{name} -> {df._num_rows} rows")
    return df


def _project(df: DataFrame, mapping: Dict[str, str]) -> DataFrame:
    """Select source columns in mapping order and rename them."""
    return DataFrame({out: df._data[src][:] for src, out in mapping.items()})


def country_rows(cases: DataFrame) -> DataFrame:
    return cases.filter([c is not None for c in cases["continent"]])


def aggregate_rows(cases: DataFrame) -> DataFrame:
    return cases.filter([c is None for c in cases["continent"]])


def in_locations(df: DataFrame, locations: Optional[Iterable[str]]) -> DataFrame:
    if locations is None:
        return df
    wanted = {locations} if isinstance(locations, str) else set(locations)
    return df.filter([loc in wanted for loc in df["location"]])


def joined_records(cases: DataFrame, vaccinations: DataFrame,
                   locations: Optional[Iterable[str]] = None) -> DataFrame:
    """
    Country-level case rows joined to vaccination rows on (location, date).

    Only exact key matches survive the join. ``new_vaccinations`` is
    cleansed to an integer here, so callers may pass raw frames.
    """
    base = in_locations(country_rows(cases), locations)
    joined = base.join(vaccinations, on=JOIN_KEYS, how="inner")
    return joined.with_column("new_vaccinations", [clean_integer(v) for v in joined["new_vaccinations"]])


def _with_running_totals(df: DataFrame, columns: Dict[str, str]) -> DataFrame:
    window = df.window("location", "date")
    for source, target in columns.items():
        df = df.with_column(target, window.cumulative_sum(source))
    return df


def threshold_label(threshold: float) -> str:
    return f"{threshold * 100:g}pct"


def first_crossing(frame: DataFrame, value_column: str, threshold: float,
                   population_column: str = "population", date_column: str = "date") -> DataFrame:
    """
    Earliest row per location at which ``value >= threshold * population``.

    Rows with a null value or population never qualify, and locations that
    never reach the threshold do not appear in the result.
    """
    values = frame[value_column]
    populations = frame[population_column]
    meets = [
        v is not None and p is not None and v >= p * threshold
        for v, p in zip(values, populations)
    ]
    qualifying = frame.filter(meets)
    if qualifying._num_rows == 0:
        return qualifying
    ranks = qualifying.window("location", date_column).row_number()
    return qualifying.filter([r == 1 for r in ranks])


# ---------------------------------------------------------------------------
# Case / death queries
# ---------------------------------------------------------------------------

def country_death_records(cases: DataFrame) -> DataFrame:
    """All country-level case rows, ordered by continent then location."""
    return _done("country_death_records", country_rows(cases).sort_values(["continent", "location"]))


def case_death_overview(cases: DataFrame) -> DataFrame:
    df = cases.sort_values(["location", "date"])
    return _done("case_death_overview", _project(df, {
        "location": "Location",
        "date": "RecordDate",
        "total_cases": "total_cases",
        "new_cases": "new_cases",
        "total_deaths": "total_deaths",
        "population": "population",
    }))


def case_fatality_by_date(cases: DataFrame, location: Optional[str] = DEFAULT_LOCATION) -> DataFrame:
    """Of confirmed cases on a given day, what share had died (``death_pct``)."""
    df = in_locations(cases, location).sort_values(["location", "date"])
    out = _project(df, {
        "location": "Location",
        "date": "RecordDate",
        "total_cases": "total_cases",
        "total_deaths": "total_deaths",
    })
    death_pct = [pct(d, c) for d, c in zip(df["total_deaths"], df["total_cases"])]
    return _done("case_fatality_by_date", out.with_column("death_pct", death_pct))


def infection_rate_by_date(cases: DataFrame, location: Optional[str] = DEFAULT_LOCATION) -> DataFrame:
    df = in_locations(cases, location).sort_values(["location", "date"])
    out = _project(df, {
        "location": "Location",
        "date": "RecordDate",
        "total_cases": "total_cases",
        "population": "population",
    })
    infected_pct = [pct(c, p) for c, p in zip(df["total_cases"], df["population"])]
    return _done("infection_rate_by_date", out.with_column("infected_pct", infected_pct))


def peak_infection_rates(cases: DataFrame, locations: Optional[Iterable[str]] = None) -> DataFrame:
    """Share of the population infected at each location's peak case count, highest first."""
    df = in_locations(cases, locations)
    columns = ["Location", "population", "max_infection_cnt", "infected_pct"]
    if df._num_rows == 0:
        return DataFrame.empty(columns)

    grouped = df.groupby(["location", "population"]).agg({"total_cases": ["max"]})
    infected_pct = [pct(m, p) for m, p in zip(grouped["max_total_cases"], grouped["population"])]
    out = DataFrame({
        "Location": grouped["location"],
        "population": grouped["population"],
        "max_infection_cnt": grouped["max_total_cases"],
        "infected_pct": infected_pct,
    })
    return _done("peak_infection_rates", out.sort_values("infected_pct", ascending=False))


def g7_peak_infection_rates(cases: DataFrame) -> DataFrame:
    return peak_infection_rates(cases, G7_COUNTRIES)


def aggregate_death_counts(cases: DataFrame) -> DataFrame:
    """Highest cumulative death count for aggregate rows (World, continents, income groups)."""
    df = aggregate_rows(cases)
    if df._num_rows == 0:
        return DataFrame.empty(["Location", "max_deaths"])
    grouped = df.groupby(["location"]).agg({"total_deaths": ["max"]})
    out = DataFrame({"Location": grouped["location"], "max_deaths": grouped["max_total_deaths"]})
    return _done("aggregate_death_counts", out.sort_values("max_deaths", ascending=False))


def global_daily_death_pct(cases: DataFrame) -> DataFrame:
    """Worldwide daily deaths as a share of daily new cases, over country-level rows."""
    df = country_rows(cases)
    columns = ["RecordDate", "daily_cases", "daily_deaths", "death_pct"]
    if df._num_rows == 0:
        return DataFrame.empty(columns)

    grouped = df.groupby(["date"]).agg({"new_cases": ["sum"], "new_deaths": ["sum"]})
    out = DataFrame({
        "RecordDate": grouped["date"],
        "daily_cases": grouped["sum_new_cases"],
        "daily_deaths": grouped["sum_new_deaths"],
        "death_pct": [pct(d, c) for d, c in zip(grouped["sum_new_deaths"], grouped["sum_new_cases"])],
    })
    return _done("global_daily_death_pct", out.sort_values("RecordDate"))


def rolling_incidence_per_100k(cases: DataFrame, locations: Optional[Iterable[str]] = G7_COUNTRIES,
                               window_days: int = ROLLING_WINDOW_DAYS) -> DataFrame:
    """
    Trailing 7-row average of new cases and new deaths per 100,000 people.

    Each row is normalised first and the normalised values are averaged;
    rows with a null count or population are left out of the average.
    """
    df = in_locations(country_rows(cases), locations).sort_values(["location", "date"])
    df = df.with_column("_cases_100k", [per_100k(c, p) for c, p in zip(df["new_cases"], df["population"])])
    df = df.with_column("_deaths_100k", [per_100k(d, p) for d, p in zip(df["new_deaths"], df["population"])])

    window = df.window("location", "date")
    avg_cases = window.rolling_avg("_cases_100k", window_days)
    avg_deaths = window.rolling_avg("_deaths_100k", window_days)

    out = DataFrame({
        "location": df["location"],
        "RecordDate": df["date"],
        "avg7_cases_per_100k": [round_half_away(v) for v in avg_cases],
        "avg7_deaths_per_100k": [round_half_away(v) for v in avg_deaths],
    })
    return _done("rolling_incidence_per_100k", out)


# ---------------------------------------------------------------------------
# Vaccination queries
# ---------------------------------------------------------------------------

def percent_population_vac(cases: DataFrame, vaccinations: DataFrame,
                           locations: Optional[Iterable[str]] = G7_COUNTRIES) -> DataFrame:
    """Daily vaccination status with the running sum of doses (``RollingPplVac``)."""
    df = joined_records(cases, vaccinations, locations)
    df = _with_running_totals(df, {"new_vaccinations": "RollingPplVac"}).sort_values(["location", "date"])
    return _done("percent_population_vac", _project(df, {
        "continent": "continent",
        "location": "location",
        "date": "ReportDate",
        "population": "population",
        "people_vaccinated": "people_vaccinated",
        "people_fully_vaccinated": "people_fully_vaccinated",
        "RollingPplVac": "RollingPplVac",
    }))


def rolling_vaccinations(cases: DataFrame, vaccinations: DataFrame,
                         location: Optional[str] = DEFAULT_LOCATION) -> DataFrame:
    df = joined_records(cases, vaccinations, location)
    df = _with_running_totals(df, {"new_vaccinations": "RollingPplVac"}).sort_values(["location", "date"])
    return _done("rolling_vaccinations", _project(df, {
        "continent": "continent",
        "location": "location",
        "date": "RecordDate",
        "population": "population",
        "new_vaccinations": "new_vaccinations",
        "RollingPplVac": "RollingPplVac",
    }))


def vaccination_case_decline(cases: DataFrame, vaccinations: DataFrame,
                             location: str = DEFAULT_LOCATION,
                             window_days: int = ROLLING_WINDOW_DAYS) -> DataFrame:
    """
    Share of the population dosed against the smoothed new-case trend.

    ``avg_weekly_cases`` is the trailing 7-row sum of raw new cases divided
    by 7, so leading rows with fewer than seven predecessors are still
    divided by 7.
    """
    df = joined_records(cases, vaccinations, location)
    df = _with_running_totals(df, {"new_vaccinations": "RollingPplVac"})
    weekly = df.window("location", "date").rolling_sum("new_cases", window_days)
    df = df.with_column("_weekly_cases", weekly).sort_values(["location", "date"])

    out = DataFrame({
        "ReportDate": df["date"],
        "pct_vaccinated": [pct(v, p) for v, p in zip(df["RollingPplVac"], df["population"])],
        "avg_weekly_cases": [
            round_half_away(s / float(window_days)) if s is not None else None
            for s in df["_weekly_cases"]
        ],
    })
    return _done("vaccination_case_decline", out)


def time_to_vaccination_threshold(cases: DataFrame, vaccinations: DataFrame,
                                  threshold: float = 0.5,
                                  locations: Optional[Iterable[str]] = G7_COUNTRIES,
                                  died_column: str = "Pct_Died_To_Date") -> DataFrame:
    """
    First date cumulative doses reached ``threshold`` of the population, and
    the share of the population that had died by then.
    """
    date_column = f"Date_{threshold_label(threshold)}_Vaccinated"
    df = joined_records(cases, vaccinations, locations)
    df = _with_running_totals(df, {"new_vaccinations": "RollingPplVac", "new_deaths": "RollingDeaths"})

    first = first_crossing(df, "RollingPplVac", threshold)
    if first._num_rows == 0:
        return DataFrame.empty(["Country", date_column, died_column])

    out = DataFrame({
        "Country": first["location"],
        date_column: first["date"],
        died_column: [pct(d, p) for d, p in zip(first["RollingDeaths"], first["population"])],
    })
    return _done("time_to_vaccination_threshold", out.sort_values([date_column, "Country"]))


PEAK_COLUMNS = [
    "Country", "Peak_Death_Date", "Peak_Death_Count",
    "Pct_At_Least_One_Dose", "Pct_Fully_Vaccinated",
    "Pct_Died_To_Date", "Pct_Cases_To_Date", "Case_Fatality_Ratio_Pct",
]


def peak_death_outcomes(cases: DataFrame, vaccinations: DataFrame,
                        locations: Optional[Iterable[str]] = G7_COUNTRIES,
                        lowercase: bool = False) -> DataFrame:
    """
    The single worst death day per location and the outcomes at that date.

    The peak is the highest ``new_deaths`` (null lowest), earliest date on
    ties. Vaccine coverage uses the cleansed cumulative people counts; deaths,
    cases and the case-fatality ratio use running sums of the daily counts.
    ``lowercase`` switches the percentage columns to the view's naming.
    """
    columns = PEAK_COLUMNS[:3] + [c.lower() for c in PEAK_COLUMNS[3:]] if lowercase else list(PEAK_COLUMNS)

    df = joined_records(cases, vaccinations, locations)
    if df._num_rows == 0:
        return DataFrame.empty(columns)
    df = _with_running_totals(df, {"new_deaths": "Cumulative_Deaths", "new_cases": "Cumulative_Cases"})
    df = df.with_column("_one_dose", [clean_integer(v) for v in df["people_vaccinated"]])
    df = df.with_column("_fully", [clean_integer(v) for v in df["people_fully_vaccinated"]])

    ranks = df.window("location", [("new_deaths", False), ("date", True)]).row_number()
    peak = df.filter([r == 1 for r in ranks]).sort_values("location")

    populations = peak["population"]
    values = [
        peak["location"],
        peak["date"],
        peak["new_deaths"],
        [pct(v, p) for v, p in zip(peak["_one_dose"], populations)],
        [pct(v, p) for v, p in zip(peak["_fully"], populations)],
        [pct(v, p) for v, p in zip(peak["Cumulative_Deaths"], populations)],
        [pct(v, p) for v, p in zip(peak["Cumulative_Cases"], populations)],
        [pct(d, c) for d, c in zip(peak["Cumulative_Deaths"], peak["Cumulative_Cases"])],
    ]
    return _done("peak_death_outcomes", DataFrame(dict(zip(columns, values))))


def vaccination_milestones(cases: DataFrame, vaccinations: DataFrame,
                           thresholds: Sequence[float] = MILESTONE_THRESHOLDS,
                           locations: Optional[Iterable[str]] = G7_COUNTRIES) -> DataFrame:
    """
    Dates each location first had ``people_vaccinated`` at or above each threshold.

    Built on PercentPopulationVac with the cumulative one-dose count cleansed
    to an integer. Every location in that view gets a row; a threshold it has
    not reached yet is None. Rows are ordered by the middle threshold's date,
    unreached (None) first.
    """
    if not thresholds:
        raise ValueError("At least one milestone threshold is required.")
    labels = [f"date_{threshold_label(t)}" for t in thresholds]

    base = percent_population_vac(cases, vaccinations, locations)
    base = base.with_column("pv", [clean_integer(v) for v in base["people_vaccinated"]])

    crossings: Dict[str, Dict[str, date]] = {loc: {} for loc in base["location"]}
    for threshold, label in zip(thresholds, labels):
        first = first_crossing(base, "pv", threshold, date_column="ReportDate")
        for loc, day in zip(first["location"], first["ReportDate"]):
            crossings[loc][label] = day

    out: Dict[str, List[Any]] = {"location": []}
    for label in labels:
        out[label] = []
    for loc in sorted(crossings):
        out["location"].append(loc)
        for label in labels:
            out[label].append(crossings[loc].get(label))

    df = DataFrame(out)
    sort_label = labels[len(labels) // 2]
    return _done("vaccination_milestones", df.sort_values([sort_label, "location"]))


QueryFn = Callable[[DataFrame, DataFrame], DataFrame]

ANALYTICAL_QUERIES: Dict[str, QueryFn] = {
    "Country-level death records": lambda c, v: country_death_records(c),
    "Case & death overview": lambda c, v: case_death_overview(c),
    "Case fatality % (Canada)": lambda c, v: case_fatality_by_date(c),
    "Infection rate vs population (Canada)": lambda c, v: infection_rate_by_date(c),
    "Peak infection rate by location": lambda c, v: peak_infection_rates(c),
    "Peak infection rate (G7)": lambda c, v: g7_peak_infection_rates(c),
    "Highest death counts (aggregate regions)": lambda c, v: aggregate_death_counts(c),
    "Global daily death % vs cases": lambda c, v: global_daily_death_pct(c),
    "Rolling vaccinations (Canada)": lambda c, v: rolling_vaccinations(c, v),
    "Vaccination vs case decline (Canada)": lambda c, v: vaccination_case_decline(c, v),
    "Time to 50% vaccinated (G7)": lambda c, v: time_to_vaccination_threshold(c, v),
    "Peak death day outcomes (G7)": lambda c, v: peak_death_outcomes(c, v),
    "7-day cases & deaths per 100k (G7)": lambda c, v: rolling_incidence_per_100k(c),
    "Vaccination milestones (G7)": lambda c, v: vaccination_milestones(c, v),
}
