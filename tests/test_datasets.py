import logging
from datetime import date

import pytest

from covid_metrics.datasets import MissingColumnsError, load_case_records, load_vaccination_records

CASES_CSV = (
    "iso_code,continent,location,date,population,total_cases,new_cases,total_deaths,new_deaths\n"
    "CAN,North America,Canada,2021-01-01,38067913.0,100,100,1,1\n"
    "CAN,North America,Canada,2021-01-02 00:00:00,38067913.0,\"1,150\",\"1,050\",3,2\n"
    "CAN,North America,Canada,yesterday,38067913.0,5,5,0,0\n"
    "OWID_WRL,,World,2021-01-01,7800000000,500,500,50,50\n"
    ",,,2021-01-01,1,1,1,1,1\n"
    "JPN,Asia,Japan,2021-01-01,126000000,abc,0,0,0\n"
)

VACCINATIONS_CSV = (
    "location,date,new_vaccinations,people_vaccinated,people_fully_vaccinated\n"
    "Canada,2021-01-01,\"2,500\",\"10,000\",\n"
    "Canada,2021-01-02,,\"12,500\",\"1,000\"\n"
)


def test_load_case_records_types_and_skips(tmp_path, caplog):
    path = tmp_path / "CovidDeaths.csv"
    path.write_text(CASES_CSV)

    with caplog.at_level(logging.WARNING, logger="covid_metrics.datasets"):
        df = load_case_records(path)

    assert df["location"] == ["Canada", "Canada", "World", "Japan"]
    assert df["date"] == [date(2021, 1, 1), date(2021, 1, 2), date(2021, 1, 1), date(2021, 1, 1)]
    assert df["continent"] == ["North America", "North America", None, "Asia"]
    assert df["population"][0] == 38067913
    assert df["total_cases"] == [100, 1150, 500, None]
    assert df["new_cases"][1] == 1050
    # extra columns pass through
    assert df["iso_code"][2] == "OWID_WRL"
    assert "skipped 1 rows without a location and 1 rows with an unparseable date" in caplog.text


def test_load_vaccination_records_keeps_text_cumulatives(tmp_path):
    path = tmp_path / "CovidVaccinations.csv"
    path.write_text(VACCINATIONS_CSV)
    df = load_vaccination_records(path)
    assert df["new_vaccinations"] == [2500, None]
    assert df["people_vaccinated"] == ["10,000", "12,500"]
    assert df["people_fully_vaccinated"] == [None, "1,000"]


def test_missing_columns_raise(tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text("location,date\nCanada,2021-01-01\n")
    with pytest.raises(MissingColumnsError) as excinfo:
        load_vaccination_records(path)
    assert excinfo.value.missing == ["new_vaccinations", "people_vaccinated", "people_fully_vaccinated"]
    assert isinstance(excinfo.value, ValueError)


def test_empty_file_reports_missing_columns(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text("")
    with pytest.raises(MissingColumnsError):
        load_case_records(path)
