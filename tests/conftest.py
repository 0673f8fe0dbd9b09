import numpy as np
import pandas as pd
import pytest

from watchdq.dataset import Dataset


@pytest.fixture
def watch_history() -> pd.DataFrame:
    # (u1, m1, 2024-01-01, tv) three times, (u2, m1, 2024-01-02, mobile) twice
    return pd.DataFrame(
        {
            "user_id": ["u1", "u1", "u1", "u2", "u2", "u3", "u4", "u5", "u6", "u7", "u8", "u9"],
            "movie_id": ["m1", "m1", "m1", "m1", "m1", "m2", "m3", "m2", "m4", "m5", "m1", "m2"],
            "watch_date": [
                "2024-01-01", "2024-01-01", "2024-01-01", "2024-01-02", "2024-01-02", "2024-01-03",
                "2024-01-03", "2024-01-04", "2024-01-05", "2024-01-05", "2024-01-06", "2024-01-07",
            ],
            "device_type": ["tv", "tv", "tv", "mobile", "mobile", "tv", "web", "tv", "tv", "mobile", "web", "tv"],
            "progress_percentage": [10.0, 90.0, 50.0, 70.0, 70.0, 100.0, 20.0, 35.0, 80.0, 55.0, 60.0, 45.0],
            "watch_duration_minutes": [12.0, 95.0, 40.0, 60.0, 65.0, 110.0, 20.0, 30.0, 900.0, 50.0, np.nan, 45.0],
        }
    )


@pytest.fixture
def users() -> pd.DataFrame:
    # 100 users, 8 null ages, 5 extreme ages among the 92 known
    ages = [5, 8, 101, 120, 3] + [30] * 87 + [None] * 8
    return pd.DataFrame(
        {
            "user_id": [f"u{i}" for i in range(100)],
            "country": ["DE"] * 90 + [None] * 10,
            "subscription_plan": ["basic"] * 75 + [None] * 25,
            "age": pd.array(ages, dtype="Int64"),
        }
    )


@pytest.fixture
def movies() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "movie_id": ["m1", "m2", "m3", "m4", "m5", "m6"],
            "duration_minutes": [120.0, 10.0, 500.0, 95.0, np.nan, 15.0],
        }
    )


@pytest.fixture
def tables(users, watch_history, movies):
    return {
        "users": Dataset("users", users),
        "watch_history": Dataset("watch_history", watch_history),
        "movies": Dataset("movies", movies),
    }


@pytest.fixture
def data_dir(tmp_path, users, watch_history, movies):
    d = tmp_path / "raw"
    d.mkdir()
    users.to_csv(d / "users.csv", index=False)
    watch_history.to_csv(d / "watch_history.csv", index=False)
    movies.to_csv(d / "movies.csv", index=False)
    return d
