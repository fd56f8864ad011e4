from datetime import date, timedelta
from typing import Any, Dict, List

import pytest

from covid_metrics.dataframe import DataFrame

START = date(2021, 1, 1)


def day(i: int) -> date:
    return START + timedelta(days=i)


def frame_from_rows(rows: List[Dict[str, Any]]) -> DataFrame:
    columns = list(rows[0].keys())
    return DataFrame({c: [r[c] for r in rows] for c in columns})


def _case_rows(location, continent, population, new_cases, new_deaths, total_cases, total_deaths):
    return [
        {
            "location": location,
            "continent": continent,
            "date": day(i),
            "population": population,
            "total_cases": total_cases[i],
            "new_cases": new_cases[i],
            "total_deaths": total_deaths[i],
            "new_deaths": new_deaths[i],
        }
        for i in range(len(new_cases))
    ]


@pytest.fixture
def cases() -> DataFrame:
    rows = []
    rows += _case_rows(
        "Canada", "North America", 1000,
        new_cases=[10, 20, None, 30, 40, 50, 60, 70, 80, 90],
        new_deaths=[1, 0, 2, 5, 3, 5, 1, 0, None, 2],
        total_cases=[10, 30, 30, 60, 100, 150, 210, 280, 360, 450],
        total_deaths=[1, 1, 3, 8, 11, 16, 17, 17, 17, 19],
    )
    rows += _case_rows(
        "Japan", "Asia", 2000,
        new_cases=[0, 100, 100, 100, 100],
        new_deaths=[0, 1, 1, 1, 1],
        total_cases=[0, 100, 200, 300, 400],
        total_deaths=[0, 1, 2, 3, 4],
    )
    rows += _case_rows(
        "World", None, 10000,
        new_cases=[500, 500, 500],
        new_deaths=[50, 50, 50],
        total_cases=[500, 1000, 1500],
        total_deaths=[5, 10, 7],
    )
    return frame_from_rows(rows)


@pytest.fixture
def vaccinations() -> DataFrame:
    rows = []
    for i in range(10):
        rows.append({
            "location": "Canada",
            "date": day(i),
            "new_vaccinations": "50" if i == 2 else 50,
            "people_vaccinated": str((i + 1) * 60),
            "people_fully_vaccinated": str((i + 1) * 30),
        })
    japan_pv = ["0", "600", "1,200", "1,600", "1,700"]
    for i in range(5):
        rows.append({
            "location": "Japan",
            "date": day(i),
            "new_vaccinations": 100,
            "people_vaccinated": japan_pv[i],
            "people_fully_vaccinated": None,
        })
    return frame_from_rows(rows)
