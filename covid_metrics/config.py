# covid_metrics/config.py
# Paths, dataset names and analysis constants.

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

PROJECT_DIR = Path(__file__).parent.parent.resolve()
DATA_DIR = Path(os.getenv("COVID_DATA_DIR", str(PROJECT_DIR / "data")))
CASES_FILE = os.getenv("COVID_CASES_FILE", "CovidDeaths.csv")
VACCINATIONS_FILE = os.getenv("COVID_VACCINATIONS_FILE", "CovidVaccinations.csv")
VIEWS_DB = Path(os.getenv("COVID_VIEWS_DB", str(DATA_DIR / "covid_views.db")))

LOG_LEVEL = os.getenv("COVID_LOG_LEVEL", "INFO").upper()
LOG_DIR = os.getenv("COVID_LOG_DIR") or None

G7_COUNTRIES = [
    'Canada', 'United States', 'United Kingdom',
    'France', 'Germany', 'Italy', 'Japan',
]
DEFAULT_LOCATION = 'Canada'
MILESTONE_THRESHOLDS = (0.25, 0.50, 0.75)
ROLLING_WINDOW_DAYS = 7
PER_POPULATION = 100000
PERCENT_PLACES = 2

DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%d.%m.%Y")
THOUSANDS_SEPARATORS = (",", "_", " ", "\u00a0")

CASE_COLUMNS = [
    "location", "continent", "date", "population",
    "total_cases", "new_cases", "total_deaths", "new_deaths",
]
VACCINATION_COLUMNS = [
    "location", "date", "new_vaccinations",
    "people_vaccinated", "people_fully_vaccinated",
]
