import sqlite3

import pytest

from covid_metrics.csv_parser import custom_csv_parser
from covid_metrics.views import (
    VIEW_BUILDERS,
    ViewStore,
    export_views_csv,
    materialize_views,
    refresh_views,
)

from conftest import day


def test_refresh_all_views(cases, vaccinations):
    views = refresh_views(cases, vaccinations)
    assert list(views) == list(VIEW_BUILDERS)
    assert views["PercentPopulationVac"].columns == [
        "continent", "location", "ReportDate", "population",
        "people_vaccinated", "people_fully_vaccinated", "RollingPplVac",
    ]
    assert views["G7_TimeTo50PercentVaccinated"].columns == [
        "Country", "Date_50pct_Vaccinated", "pct_died_to_date",
    ]
    assert views["VaccinationCaseDeclineCanada"]._num_rows == 10
    assert views["G7_PeakDeathVaccinationOutcomes"]["case_fatality_ratio_pct"] == [13.33, 1.0]


def test_refresh_named_views(cases, vaccinations):
    views = refresh_views(cases, vaccinations, ["G7_TimeTo50PercentVaccinated"])
    assert list(views) == ["G7_TimeTo50PercentVaccinated"]
    with pytest.raises(KeyError):
        refresh_views(cases, vaccinations, ["NoSuchView"])


def test_materialize_views_roundtrip(tmp_path, cases, vaccinations):
    db_path = tmp_path / "db" / "views.db"
    views = refresh_views(cases, vaccinations)
    counts = materialize_views(db_path, views)
    assert counts["PercentPopulationVac"] == 15
    assert counts["G7_TimeTo50PercentVaccinated"] == 1

    store = ViewStore(db_path)
    assert sorted(store.list_views()) == sorted(VIEW_BUILDERS)
    stored = store.read_view("G7_TimeTo50PercentVaccinated")
    assert stored.to_records() == [
        {"Country": "Canada", "Date_50pct_Vaccinated": day(9).isoformat(), "pct_died_to_date": 1.9},
    ]


def test_materialize_replaces_previous_contents(tmp_path, cases, vaccinations):
    db_path = tmp_path / "views.db"
    views = refresh_views(cases, vaccinations, ["PercentPopulationVac"])
    materialize_views(db_path, views)
    materialize_views(db_path, views)

    conn = sqlite3.connect(db_path)
    try:
        count = conn.execute('SELECT COUNT(*) FROM "PercentPopulationVac"').fetchone()[0]
        types = {row[1]: row[2] for row in conn.execute('PRAGMA table_info("PercentPopulationVac")')}
    finally:
        conn.close()
    assert count == 15
    assert types["ReportDate"] == "DATE"
    assert types["RollingPplVac"] == "INTEGER"
    assert types["people_vaccinated"] == "TEXT"


def test_export_views_csv(tmp_path, cases, vaccinations):
    views = refresh_views(cases, vaccinations, ["VaccinationCaseDeclineCanada"])
    paths = export_views_csv(tmp_path / "csv", views)
    data = custom_csv_parser(paths["VaccinationCaseDeclineCanada"])
    assert list(data) == ["ReportDate", "pct_vaccinated", "avg_weekly_cases"]
    assert data["ReportDate"][0] == "2021-01-01"
    assert data["avg_weekly_cases"][0] == 1.43
