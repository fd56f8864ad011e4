import pytest

from covid_metrics.dataframe import DataFrame


@pytest.fixture
def df():
    return DataFrame({
        "location": ["A", "A", "B", "A", "B"],
        "day": [2, 1, 1, 3, 2],
        "value": [20, 10, 5, None, 7],
    })


def test_constructor_validates_input():
    with pytest.raises(TypeError):
        DataFrame([1, 2])
    with pytest.raises(ValueError):
        DataFrame({"a": [1], "b": [1, 2]})


def test_select_filter_and_getitem(df):
    assert df.shape == (5, 3)
    assert df["day"] == [2, 1, 1, 3, 2]
    projected = df[["location", "value"]]
    assert projected.columns == ["location", "value"]
    filtered = df.filter([v is not None and v > 6 for v in df["value"]])
    assert filtered["value"] == [20, 10, 7]
    with pytest.raises(KeyError):
        df["missing"]
    with pytest.raises(ValueError):
        df.filter([True])


def test_filter_to_empty_keeps_columns(df):
    empty = df.filter([False] * 5)
    assert empty.columns == ["location", "day", "value"]
    assert len(empty) == 0


def test_sort_values_multiple_keys_nulls_low(df):
    out = df.sort_values(["location", "value"], ascending=[True, False])
    assert out["value"] == [20, 10, None, 7, 5]
    out = df.sort_values("value")
    assert out["value"][0] is None


def test_groupby_agg(df):
    out = df.groupby("location").agg({"value": ["sum", "avg", "max", "count"]})
    rows = {r["location"]: r for r in out.to_records()}
    assert rows["A"]["sum_value"] == 30
    assert rows["A"]["avg_value"] == 15
    assert rows["A"]["count_value"] == 3
    assert rows["B"]["max_value"] == 7


def test_groupby_rejects_unknown_aggregation(df):
    with pytest.raises(ValueError):
        df.groupby("location").agg({"value": ["median"]})


def test_groupby_min_max_on_dates():
    from datetime import date
    df = DataFrame({"k": ["x", "x"], "d": [date(2021, 2, 1), date(2021, 1, 1)]})
    out = df.groupby(["k"]).agg({"d": ["min", "max"]})
    assert out["min_d"] == [date(2021, 1, 1)]
    assert out["max_d"] == [date(2021, 2, 1)]


def test_join_multi_key_and_collisions():
    left = DataFrame({"location": ["A", "A", "B", None], "day": [1, 2, 1, 1], "population": [10, 10, 20, 5]})
    right = DataFrame({"location": ["A", "B", "B", None], "day": [1, 1, 1, 1],
                       "doses": [3, 4, 5, 6], "population": [11, 21, 21, 6]})
    inner = left.join(right, on=["location", "day"])
    assert inner.columns == ["location", "day", "population", "doses", "r_population"]
    assert inner["doses"] == [3, 4, 5]
    outer = left.join(right, on=["location", "day"], how="left")
    assert outer["doses"] == [3, None, 4, 5, None]


def test_join_tuple_keys():
    left = DataFrame({"country": ["A"], "x": [1]})
    right = DataFrame({"location": ["A"], "y": [2]})
    out = left.join(right, on=("country", "location"))
    assert out.to_records() == [{"country": "A", "x": 1, "location": "A", "y": 2}]
    with pytest.raises(NotImplementedError):
        left.join(right, on=("country", "location"), how="outer")


def test_window_cumulative_sum_is_partitioned(df):
    running = df.window("location", "day").cumulative_sum("value")
    # A: day1=10, day2=20, day3=None -> 10, 30, 30 ; B: 5, 12
    assert running == [30, 10, 5, 30, 12]


def test_window_cumulative_sum_shares_total_for_equal_keys():
    df = DataFrame({"location": ["A", "A", "A"], "day": [1, 1, 2], "value": [1, 2, 4]})
    assert df.window("location", "day").cumulative_sum("value") == [3, 3, 7]


def test_window_cumulative_sum_null_until_first_value():
    df = DataFrame({"location": ["A", "A", "A"], "day": [1, 2, 3], "value": [None, 2, None]})
    assert df.window("location", "day").cumulative_sum("value") == [None, 2, 2]


def test_window_rolling_sum_and_avg_skip_nulls():
    df = DataFrame({
        "location": ["A"] * 5,
        "day": [1, 2, 3, 4, 5],
        "value": [100, 200, None, 300, 400],
    })
    window = df.window("location", "day")
    assert window.rolling_sum("value", 3) == [100, 300, 300, 500, 700]
    assert window.rolling_avg("value", 3) == [100, 150, 150, 250, 350]
    with pytest.raises(ValueError):
        window.rolling_avg("value", 0)


def test_window_rolling_all_null_frame_is_none():
    df = DataFrame({"location": ["A", "A"], "day": [1, 2], "value": [None, None]})
    assert df.window("location", "day").rolling_avg("value", 7) == [None, None]


def test_window_row_number_descending_with_tiebreak():
    df = DataFrame({
        "location": ["A", "A", "A", "A"],
        "day": [1, 2, 3, 4],
        "deaths": [5, None, 9, 9],
    })
    ranks = df.window("location", [("deaths", False), ("day", True)]).row_number()
    assert ranks == [3, 4, 1, 2]


def test_window_missing_column(df):
    with pytest.raises(KeyError):
        df.window("nope", "day")
