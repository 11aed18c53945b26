import pytest
import pandas as pd
import numpy as np
from tip_estimator.aggregator import Aggregator
from tip_estimator.predictor import Predictor
from tip_estimator.table_store import AggregateTable


def _trip(pickup, zone, fare, tip, minutes=15, passengers=1.0, distance=2.0):
    pickup = pd.Timestamp(pickup)
    return {
        'tpep_pickup_datetime': pickup,
        'tpep_dropoff_datetime': pickup + pd.Timedelta(minutes=minutes),
        'passenger_count': passengers,
        'trip_distance': distance,
        'fare_amount': fare,
        'tip_amount': tip,
        'PULocationID': zone,
    }


@pytest.fixture
def zones():
    """Mimics taxi_zone_lookup.csv, including the two placeholder boroughs."""
    return pd.DataFrame({
        'LocationID': [1, 2, 3, 4, 264, 265],
        'Borough': ['Manhattan', 'Manhattan', 'Brooklyn', 'Staten Island', 'Unknown', 'N/A'],
    })


@pytest.fixture
def clean_trips():
    """Trips as they come out of the loader. 2024-01-01 is a Monday."""
    return pd.DataFrame([
        _trip('2024-01-01 08:15', 1, 10.0, 2.0),
        _trip('2024-01-01 09:30', 1, 20.0, 4.0),
        _trip('2024-01-01 10:00', 2, 12.0, 1.0),
        _trip('2024-01-01 13:00', 3, 8.0, 0.5),
        _trip('2024-01-02 23:00', 4, 30.0, 5.0),
        _trip('2024-01-06 02:00', 264, 9.0, 1.0),   # Unknown borough
        _trip('2024-01-07 05:59', 265, 9.0, 1.0),   # N/A borough
        _trip('2024-01-01 08:00', 999, 9.0, 1.0),   # zone not in lookup
        _trip('2024-01-05 06:00', 3, 15.0, 3.0),
    ])


@pytest.fixture
def raw_trips():
    """Raw rows with one violation of each loader rule."""
    rows = [
        _trip('2024-01-01 08:15', 1, 10.0, 2.0),
        _trip('2024-01-01 09:30', 1, 20.0, 4.0),
        _trip('2024-01-01 10:00', 2, 12.0, 1.0),
        _trip('2024-01-01 13:00', 3, -8.0, 0.5),              # negative fare
        _trip('2024-01-02 23:00', 4, 30.0, 5.0, distance=-1.0),  # negative distance
        _trip('2024-01-03 11:00', 4, 30.0, -2.0),             # negative tip
        _trip('2024-01-03 12:00', 2, 11.0, 1.5, minutes=-5),  # dropoff before pickup
        _trip('2008-12-31 12:00', 2, 11.0, 1.5),              # outside year range
        _trip('2024-01-04 12:00', 2, 11.0, 1.5, passengers=np.nan),  # null
    ]
    return pd.DataFrame(rows)


@pytest.fixture
def aggregate_frame(clean_trips, zones):
    return Aggregator().aggregate(clean_trips, zones)


@pytest.fixture(scope="session")
def bucket_frame():
    """Aggregate table with three Manhattan zones in (Monday, Morning)."""
    return pd.DataFrame({
        'PULocationID': [1, 2, 3, 4, 4, 5],
        'day_of_week': ['Monday', 'Monday', 'Monday', 'Monday', 'Sunday', 'Friday'],
        'period': ['Morning', 'Morning', 'Morning', 'Evening', 'Afternoon', 'Late Night'],
        'Borough': ['Manhattan', 'Manhattan', 'Manhattan', 'Brooklyn', 'Brooklyn', 'Queens'],
        'total_rides': [10, 4, 7, 3, 2, 1],
        'avg_fare': [15.0, 12.0, 18.0, 20.0, 22.0, 40.0],
        'avg_tip': [2.0, 4.0, 6.0, 3.5, 3.0, 7.25],
    })


@pytest.fixture(scope="session")
def bucket_table(bucket_frame):
    return AggregateTable(bucket_frame, name="test_table", version="v1")


@pytest.fixture(scope="session")
def predictor(bucket_table):
    return Predictor(bucket_table)
