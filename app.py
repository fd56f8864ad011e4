import time
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import plotly.graph_objects as go
import streamlit as st

from covid_metrics import config
from covid_metrics.dataframe import DataFrame
from covid_metrics.datasets import MissingColumnsError, load_case_records, load_vaccination_records
from covid_metrics.logger import setup_logger
from covid_metrics import metrics
from covid_metrics.ratios import pct
from covid_metrics.views import materialize_views, refresh_views

DEFAULT_COUNTRIES = config.G7_COUNTRIES
MAX_DISPLAY_ROWS = 100
PERFORMANCE_WARNING_MS = 1000

logger = setup_logger("covid_metrics", level=config.LOG_LEVEL, log_dir=config.LOG_DIR)

st.set_page_config(
    page_title="COVID-19 Metrics Dashboard",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.markdown("""
<style>
    .main-header {
        font-size: 2rem;
        font-weight: 600;
        text-align: center;
        margin-bottom: 1rem;
    }

    .section-header {
        font-size: 1.5rem;
        font-weight: 600;
        margin-top: 1.5rem;
        margin-bottom: 1rem;
    }

    .subsection-header {
        font-size: 1.2rem;
        font-weight: 600;
        margin-top: 1rem;
        margin-bottom: 0.5rem;
    }
</style>
""", unsafe_allow_html=True)

PRETTY = {
    "RecordDate": "Date",
    "ReportDate": "Date",
    "total_cases": "Total Cases (Cumulative)",
    "total_deaths": "Total Deaths (Cumulative)",
    "death_pct": "Death %",
    "infected_pct": "Infected % of Population",
    "max_infection_cnt": "Peak Case Count",
    "max_deaths": "Peak Death Count",
    "daily_cases": "Daily New Cases",
    "daily_deaths": "Daily New Deaths",
    "RollingPplVac": "Doses Administered (Cumulative)",
    "pct_vaccinated": "Doses per Person (%)",
    "avg_weekly_cases": "Daily New Cases (7-Day Avg)",
    "avg7_cases_per_100k": "New Cases per 100k (7-Day Avg)",
    "avg7_deaths_per_100k": "New Deaths per 100k (7-Day Avg)",
    "Date_50pct_Vaccinated": "Date 50% Dosed",
    "Pct_Died_To_Date": "Died % of Population",
    "Peak_Death_Date": "Peak Death Date",
    "Peak_Death_Count": "Peak Daily Deaths",
    "Pct_At_Least_One_Dose": "At Least One Dose (%)",
    "Pct_Fully_Vaccinated": "Fully Vaccinated (%)",
    "Pct_Cases_To_Date": "Cases % of Population",
    "Case_Fatality_Ratio_Pct": "Case Fatality Ratio (%)",
    "date_25pct": "25% Vaccinated",
    "date_50pct": "50% Vaccinated",
    "date_75pct": "75% Vaccinated",
}

SEPARATORS = {
    "Comma (,)": ",",
    "Tab (\\t)": "\t",
    "Semicolon (;)": ";",
}


@st.cache_resource
def _load_data_once(cases_path: Path, vaccinations_path: Path,
                    delimiter: str = ',') -> Tuple[Optional[DataFrame], Optional[DataFrame]]:
    try:
        with st.spinner(f"Loading and parsing {cases_path.name} and {vaccinations_path.name}..."):
            cases = load_case_records(cases_path, separator=delimiter)
            vaccinations = load_vaccination_records(vaccinations_path, separator=delimiter)
    except FileNotFoundError as e:
        st.error(f"File not found. Please check the name. ({e})")
        return (None, None)
    except MissingColumnsError as e:
        st.error(
            f"{e}\n\nFix: export the deaths and vaccinations sheets with the "
            "columns named above."
        )
        return (None, None)
    except Exception as e:
        logger.exception("Failed to load input data")
        st.error(f"Failed to load or process data: {e}")
        return (None, None)
    return cases, vaccinations


def _convert_df_to_st_format(df: Optional[DataFrame]) -> Dict[str, Any]:
    if df is None or not isinstance(df._data, dict):
        return {}
    return {PRETTY.get(col_name, col_name): values for col_name, values in df._data.items()}


def _fmt2(x):
    try:
        return f"{float(x):.2f}"
    except (TypeError, ValueError):
        return "N/A"


def _in_range(df: DataFrame, date_col: str, start: date, end: date) -> DataFrame:
    if date_col not in df.columns:
        return df
    return df.filter([d is not None and start <= d <= end for d in df[date_col]])


def _timed(label: str, fn, execution_log: List[str]):
    start = time.time()
    result = fn()
    elapsed_ms = (time.time() - start) * 1000
    rows = result._num_rows if isinstance(result, DataFrame) else "-"
    execution_log.append(f"{label} -> {rows} rows in {elapsed_ms:.2f}ms")
    return result, elapsed_ms


def _line_chart(df: DataFrame, y_col: str, title: str, y_title: str,
                countries: List[str], x_col: str = "RecordDate") -> Optional[go.Figure]:
    fig = go.Figure()
    for country in countries:
        mask = [loc == country for loc in df["location"]]
        part = df.filter(mask)
        if part._num_rows == 0:
            continue
        fig.add_trace(go.Scatter(
            x=part[x_col],
            y=part[y_col],
            mode='lines',
            name=country,
            line=dict(width=2)
        ))
    if not fig.data:
        return None
    fig.update_layout(
        title=title,
        xaxis_title="Date",
        yaxis_title=y_title,
        hovermode='x unified',
        height=400,
        showlegend=True
    )
    return fig


st.markdown('<h1 class="main-header">COVID-19 Metrics Dashboard</h1>', unsafe_allow_html=True)

with st.sidebar:
    st.header("Data Settings")

    cases_file = st.text_input("Cases/Deaths CSV", value=config.CASES_FILE)
    vaccinations_file = st.text_input("Vaccinations CSV", value=config.VACCINATIONS_FILE)

    sep_mode = st.selectbox("Separator Style", list(SEPARATORS) + ["Custom"])
    if sep_mode in SEPARATORS:
        sep_input = SEPARATORS[sep_mode]
    else:
        sep_input = st.text_input("Enter Custom Separator", value="|", max_chars=1)

    st.markdown("---")
    st.header("Country Selection")

CASES, VACCINATIONS = _load_data_once(
    config.DATA_DIR / cases_file,
    config.DATA_DIR / vaccinations_file,
    delimiter=sep_input,
)

if CASES is None or VACCINATIONS is None:
    st.stop()

all_countries = sorted(set(metrics.country_rows(CASES)["location"]))

with st.sidebar:
    selected_countries = st.multiselect(
        "Select Countries",
        options=all_countries,
        default=[c for c in DEFAULT_COUNTRIES if c in all_countries],
        key="selected_countries"
    )

    if not selected_countries:
        st.warning("Please select at least one country.")
        st.stop()

    st.markdown("---")
    st.header("Time Period")

    valid_dates = [d for d in CASES["date"] if d is not None]
    min_date = min(valid_dates) if valid_dates else date(2020, 1, 1)
    max_date = max(valid_dates) if valid_dates else date(2024, 1, 1)

    date_range = st.date_input(
        "Filter Data Range",
        value=(min_date, max_date),
        min_value=min_date,
        max_value=max_date,
        key="date_range"
    )
    if isinstance(date_range, tuple) and len(date_range) == 2:
        start_date, end_date = date_range
    else:
        start_date, end_date = min_date, max_date

    st.markdown("---")
    show_execution_log = st.checkbox("Show Execution Log", value=True,
                                     help="Display the engine operations behind each table and chart")

execution_log: List[str] = []

tab_queries, tab_dash = st.tabs([
    "Analytical Queries",
    "Dashboard"
])

with tab_queries:
    st.markdown('<h2 class="section-header">Analytical Queries</h2>', unsafe_allow_html=True)
    st.markdown(f"""
    **Cases/deaths:** {cases_file} ({CASES._num_rows:,} rows × {CASES._num_cols} columns)
    **Vaccinations:** {vaccinations_file} ({VACCINATIONS._num_rows:,} rows × {VACCINATIONS._num_cols} columns)

    Running totals are partitioned by location and ordered by date; 7-day averages use the
    current row and the six preceding rows. Percentages are rounded to 2 places and are blank
    wherever the denominator is zero or missing.
    """)

    query_name = st.selectbox("Query", list(metrics.ANALYTICAL_QUERIES))
    result, elapsed_ms = _timed(
        query_name,
        lambda: metrics.ANALYTICAL_QUERIES[query_name](CASES, VACCINATIONS),
        execution_log,
    )

    date_col = next((c for c in result.columns if c in ("RecordDate", "ReportDate")), None)
    if date_col:
        result = _in_range(result, date_col, start_date, end_date)

    st.markdown(f"""
    **Result:**
    - **{result._num_rows:,} rows** × **{result._num_cols} columns**
    - Columns: `{', '.join(result.columns)}`
    - **Execution Time:** {elapsed_ms:.2f}ms
    """)
    if elapsed_ms > PERFORMANCE_WARNING_MS:
        st.warning(f"Query took {elapsed_ms:.0f}ms; narrow the input files for faster iteration.")

    if result._num_rows > 0:
        st.dataframe(result.head(MAX_DISPLAY_ROWS)._data, width='stretch')
        if result._num_rows > MAX_DISPLAY_ROWS:
            st.caption(f"Showing the first {MAX_DISPLAY_ROWS} of {result._num_rows:,} rows.")
    else:
        st.info("The query returned no rows for the loaded data.")

with tab_dash:
    st.markdown('<h2 class="section-header">Dashboard Overview</h2>', unsafe_allow_html=True)

    peak_rates, _ = _timed("peak_infection_rates(selected)",
                           lambda: metrics.peak_infection_rates(CASES, selected_countries), execution_log)
    global_daily, _ = _timed("global_daily_death_pct()",
                             lambda: metrics.global_daily_death_pct(CASES), execution_log)
    global_daily = _in_range(global_daily, "RecordDate", start_date, end_date)
    time_to_50, _ = _timed("time_to_vaccination_threshold(0.5, selected)",
                           lambda: metrics.time_to_vaccination_threshold(CASES, VACCINATIONS,
                                                                         locations=selected_countries),
                           execution_log)

    st.markdown("### Key Metrics Summary")
    col1, col2, col3, col4 = st.columns(4)

    with col1:
        st.metric("Countries Selected", len(selected_countries))

    with col2:
        infected = [v for v in peak_rates["infected_pct"] if v is not None]
        avg_infected = sum(infected) / len(infected) if infected else None
        st.metric("Avg Peak Infected %", _fmt2(avg_infected))

    with col3:
        total_cases = sum(v for v in global_daily["daily_cases"] if v is not None)
        total_deaths = sum(v for v in global_daily["daily_deaths"] if v is not None)
        st.metric("Deaths per 100 New Cases", _fmt2(pct(total_deaths, total_cases)))

    with col4:
        if time_to_50._num_rows > 0:
            st.metric("First to 50% Dosed", time_to_50["Country"][0],
                      help=str(time_to_50["Date_50pct_Vaccinated"][0]))
        else:
            st.metric("First to 50% Dosed", "N/A")

    st.markdown("---")
    st.markdown('<h3 class="subsection-header">Data Visualizations</h3>', unsafe_allow_html=True)

    incidence, _ = _timed("rolling_incidence_per_100k(selected)",
                          lambda: metrics.rolling_incidence_per_100k(CASES, selected_countries), execution_log)
    incidence = _in_range(incidence, "RecordDate", start_date, end_date)

    fig = _line_chart(incidence, "avg7_cases_per_100k", "New Cases per 100k (7-Day Average)",
                      "Cases per 100k", selected_countries)
    if fig:
        st.plotly_chart(fig, width='stretch')

    fig = _line_chart(incidence, "avg7_deaths_per_100k", "New Deaths per 100k (7-Day Average)",
                      "Deaths per 100k", selected_countries)
    if fig:
        st.plotly_chart(fig, width='stretch')

    if global_daily._num_rows > 0:
        fig = go.Figure()
        fig.add_trace(go.Scatter(
            x=global_daily["RecordDate"],
            y=global_daily["death_pct"],
            mode='lines',
            name="Death %",
            line=dict(width=2)
        ))
        fig.update_layout(
            title="Global Daily Deaths as % of New Cases",
            xaxis_title="Date",
            yaxis_title="Death %",
            hovermode='x unified',
            height=400
        )
        st.plotly_chart(fig, width='stretch')

    decline, _ = _timed(f"vaccination_case_decline({config.DEFAULT_LOCATION})",
                        lambda: metrics.vaccination_case_decline(CASES, VACCINATIONS), execution_log)
    decline = _in_range(decline, "ReportDate", start_date, end_date)
    if decline._num_rows > 0:
        st.markdown(f"#### Vaccination vs Case Decline ({config.DEFAULT_LOCATION})")
        fig = go.Figure()
        fig.add_trace(go.Scatter(
            x=decline["ReportDate"],
            y=decline["avg_weekly_cases"],
            mode='lines',
            name=PRETTY["avg_weekly_cases"],
            line=dict(width=2)
        ))
        fig.add_trace(go.Scatter(
            x=decline["ReportDate"],
            y=decline["pct_vaccinated"],
            mode='lines',
            name=PRETTY["pct_vaccinated"],
            yaxis="y2",
            line=dict(width=2, dash="dot")
        ))
        fig.update_layout(
            xaxis_title="Date",
            yaxis=dict(title="New Cases (7-Day Avg)"),
            yaxis2=dict(title="Doses per Person (%)", overlaying="y", side="right"),
            hovermode='x unified',
            height=400
        )
        st.plotly_chart(fig, width='stretch')

    st.markdown("---")
    st.markdown('<h3 class="subsection-header">Vaccination Milestones</h3>', unsafe_allow_html=True)
    milestones, _ = _timed("vaccination_milestones(selected)",
                           lambda: metrics.vaccination_milestones(CASES, VACCINATIONS,
                                                                  locations=selected_countries),
                           execution_log)
    if milestones._num_rows > 0:
        st.dataframe(_convert_df_to_st_format(milestones), width='stretch', hide_index=True)
    else:
        st.info("None of the selected countries reached a vaccination milestone in the loaded data.")

    st.markdown('<h3 class="subsection-header">Peak Death Day Outcomes</h3>', unsafe_allow_html=True)
    peaks, _ = _timed("peak_death_outcomes(selected)",
                      lambda: metrics.peak_death_outcomes(CASES, VACCINATIONS, locations=selected_countries),
                      execution_log)
    if peaks._num_rows > 0:
        st.dataframe(
            _convert_df_to_st_format(peaks),
            width='stretch',
            hide_index=True,
            column_config={
                PRETTY["Peak_Death_Count"]: st.column_config.NumberColumn(PRETTY["Peak_Death_Count"], format="%d"),
                PRETTY["Case_Fatality_Ratio_Pct"]: st.column_config.NumberColumn(
                    PRETTY["Case_Fatality_Ratio_Pct"], format="%.2f %%"
                ),
            }
        )

    st.markdown('<h3 class="subsection-header">Peak Infection Rates</h3>', unsafe_allow_html=True)
    if peak_rates._num_rows > 0:
        st.bar_chart(
            {loc: v for loc, v in zip(peak_rates["Location"], peak_rates["infected_pct"]) if v is not None},
            width='stretch'
        )

    st.markdown("---")
    st.markdown('<h3 class="subsection-header">Materialised Views</h3>', unsafe_allow_html=True)
    st.markdown(f"Writes every derived view into `{config.VIEWS_DB}` for downstream reporting tools.")
    if st.button("Refresh Views"):
        try:
            views, _ = _timed("refresh_views()", lambda: refresh_views(CASES, VACCINATIONS), execution_log)
            counts = materialize_views(config.VIEWS_DB, views)
            st.success(", ".join(f"{name}: {count} rows" for name, count in counts.items()))
        except Exception as e:
            logger.exception("View materialisation failed")
            st.error(f"Failed to materialise views: {e}")

if show_execution_log and execution_log:
    st.markdown("---")
    with st.expander("Execution Log", expanded=True):
        for i, log_entry in enumerate(execution_log, 1):
            st.text(f"{i}. {log_entry}")
