"""pytest configuration and fixtures."""

import json
from datetime import datetime
from unittest.mock import Mock

import pytest

from space_weather_hq.data.database import Database
from space_weather_hq.data.persistence import HourlyStore

# fixed "now" used across pipeline tests; 35 minutes past the hour
NOW = datetime(2024, 5, 10, 12, 35, 0)


@pytest.fixture
def test_db(tmp_path):
    """sqlite database with all tables created."""
    db = Database(f"sqlite:///{tmp_path / 'space_weather_test.db'}")
    db.create_tables()
    yield db
    db.close()


@pytest.fixture
def store(test_db):
    return HourlyStore(db=test_db)


@pytest.fixture
def db_session(test_db):
    """session on the test database, rolled back after the test."""
    session = test_db.session_factory()
    yield session
    session.rollback()
    session.close()


def make_response(status=200, payload=None, body=None):
    """mock requests.Response with the attributes DonkiClient reads."""
    response = Mock()
    response.status_code = status
    response.ok = status < 400
    if body is None:
        body = json.dumps(payload).encode() if payload is not None else b""
    response.content = body
    response.json.return_value = payload
    return response


@pytest.fixture
def mock_donki_flares():
    """mock donki FLR events."""
    return [
        {
            "flrID": "2024-05-10T11:05:00-FLR-001",
            "beginTime": "2024-05-10T11:05Z",
            "peakTime": "2024-05-10T11:20Z",
            "classType": "M2.5",
        },
        {
            "flrID": "2024-05-10T11:40:00-FLR-002",
            "beginTime": "2024-05-10T11:40Z",
            "peakTime": "2024-05-10T11:52Z",
            "classType": "C3.4",
        },
        {
            "flrID": "2024-05-09T02:10:00-FLR-001",
            "beginTime": "2024-05-09T02:10Z",
            "classType": "X1.1",
        },
    ]


@pytest.fixture
def mock_donki_cmes():
    """mock donki CMEAnalysis entries."""
    return [
        {"time21_5": "2024-05-10T11:48Z", "speed": 650.0, "halfAngle": 30, "isMostAccurate": True},
        {"startTime": "2024-05-10T11:10Z", "speed": None},
        {"time21_5": "2024-05-08T07:00Z", "speed": 380.0},
    ]


@pytest.fixture
def mock_donki_storms():
    """mock donki GST events."""
    return [
        {
            "gstID": "2024-05-10T12:00:00-GST-001",
            "startTime": "2024-05-10T12:00Z",
            "allKpValues": [
                {"observedTime": "2024-05-10T12:00Z", "kpIndex": 6.33, "source": "NOAA"},
                {"observedTime": "2024-05-10T15:00Z", "kpIndex": 8.0, "source": "NOAA"},
            ],
        },
        {"startTime": "2024-05-07T03:00Z", "kpIndex": 4.0},
    ]


@pytest.fixture
def mock_payloads(mock_donki_flares, mock_donki_cmes, mock_donki_storms):
    return {"flares": mock_donki_flares, "cmes": mock_donki_cmes, "storms": mock_donki_storms}
