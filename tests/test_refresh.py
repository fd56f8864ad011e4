import pytest

from covid_metrics.refresh import main
from covid_metrics.views import ViewStore

CASES_CSV = (
    "continent,location,date,population,total_cases,new_cases,total_deaths,new_deaths\n"
    "North America,Canada,2021-01-01,100,10,10,1,1\n"
    "North America,Canada,2021-01-02,100,30,20,3,2\n"
)

VACCINATIONS_CSV = (
    "location,date,new_vaccinations,people_vaccinated,people_fully_vaccinated\n"
    "Canada,2021-01-01,30,30,\n"
    "Canada,2021-01-02,30,55,20\n"
)


@pytest.fixture
def inputs(tmp_path):
    cases = tmp_path / "CovidDeaths.csv"
    cases.write_text(CASES_CSV)
    vaccinations = tmp_path / "CovidVaccinations.csv"
    vaccinations.write_text(VACCINATIONS_CSV)
    return cases, vaccinations


def test_refresh_materializes_views(tmp_path, inputs):
    cases, vaccinations = inputs
    db_path = tmp_path / "out" / "views.db"
    csv_dir = tmp_path / "csv"

    code = main([
        "--cases", str(cases),
        "--vaccinations", str(vaccinations),
        "--db", str(db_path),
        "--csv-dir", str(csv_dir),
    ])

    assert code == 0
    stored = ViewStore(db_path).read_view("G7_TimeTo50PercentVaccinated")
    assert stored["Country"] == ["Canada"]
    assert stored["Date_50pct_Vaccinated"] == ["2021-01-02"]
    assert stored["pct_died_to_date"] == [3.0]
    assert (csv_dir / "PercentPopulationVac.csv").exists()


def test_refresh_single_view(tmp_path, inputs):
    cases, vaccinations = inputs
    db_path = tmp_path / "views.db"
    code = main([
        "--cases", str(cases),
        "--vaccinations", str(vaccinations),
        "--db", str(db_path),
        "--view", "PercentPopulationVac",
    ])
    assert code == 0
    assert ViewStore(db_path).list_views() == ["PercentPopulationVac"]


def test_refresh_missing_input(tmp_path, inputs):
    _, vaccinations = inputs
    code = main([
        "--cases", str(tmp_path / "missing.csv"),
        "--vaccinations", str(vaccinations),
        "--db", str(tmp_path / "views.db"),
    ])
    assert code == 2


def test_refresh_missing_columns(tmp_path, inputs):
    cases, _ = inputs
    bad = tmp_path / "bad.csv"
    bad.write_text("location,date\nCanada,2021-01-01\n")
    code = main([
        "--cases", str(cases),
        "--vaccinations", str(bad),
        "--db", str(tmp_path / "views.db"),
    ])
    assert code == 3
