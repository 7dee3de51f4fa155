"""Shared fixtures for the country cache test suite."""
import copy
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from django.apps import apps
from rest_framework.test import APIClient

from countries.services import CountryService

REFRESH_TIME = datetime(2025, 10, 22, 12, 0, tzinfo=timezone.utc)


def make_session(payload=None, error=None, status_error=None):
    """Stand-in for the requests module whose get() returns ``payload`` as JSON."""
    response = Mock()
    response.json.return_value = payload
    if status_error is not None:
        response.raise_for_status.side_effect = status_error
    session = Mock()
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value = response
    return session


class StaticSource:
    """Stands in for a feed adapter: returns ``payload`` or raises ``error``."""

    def __init__(self, payload=None, error=None):
        self.payload = payload
        self.error = error
        self.calls = 0

    def fetch(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return copy.deepcopy(self.payload)


class FixedRandom:
    """random.Random replacement whose draws always give a 1500 multiplier."""

    def __init__(self, value=0.5):
        self.value = value

    def random(self):
        return self.value


class SummaryRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, total_countries, top5, timestamp):
        self.calls.append((total_countries, top5, timestamp))


@pytest.fixture
def catalogue():
    return [
        {
            "name": "Nigeria",
            "capital": "Abuja",
            "region": "Africa",
            "population": 206139589,
            "flag": "https://flagcdn.com/ng.svg",
            "currencies": [{"code": "NGN", "name": "Nigerian naira", "symbol": "₦"}],
        },
        {
            "name": "Germany",
            "capital": "Berlin",
            "region": "Europe",
            "population": 83240525,
            "flag": "https://flagcdn.com/de.svg",
            "currencies": [{"code": "EUR", "name": "Euro", "symbol": "€"}],
        },
        {
            "name": "France",
            "capital": "Paris",
            "region": "Europe",
            "population": 67391582,
            "flag": "https://flagcdn.com/fr.svg",
            "currencies": [{"code": "EUR", "name": "Euro", "symbol": "€"}],
        },
        {
            "name": "Antarctica",
            "region": "Polar",
            "population": 1000,
            "currencies": [],
        },
        {
            "name": "Atlantis",
            "region": "Europe",
            "population": 500,
            "currencies": [{"code": "ATL", "name": "Atlantean drachma", "symbol": "A"}],
        },
    ]


@pytest.fixture
def rates():
    return {"NGN": 1600.5, "EUR": 0.92, "USD": 1}


@pytest.fixture
def summary_recorder():
    return SummaryRecorder()


@pytest.fixture
def make_service(summary_recorder):
    def factory(catalogue=None, rates=None, catalogue_error=None, rates_error=None, **kwargs):
        kwargs.setdefault("rng", FixedRandom())
        kwargs.setdefault("clock", lambda: REFRESH_TIME)
        kwargs.setdefault("publish_summary", summary_recorder)
        return CountryService(
            StaticSource(catalogue, catalogue_error),
            StaticSource(rates, rates_error),
            **kwargs,
        )

    return factory


@pytest.fixture
def service(make_service, catalogue, rates):
    return make_service(catalogue, rates)


@pytest.fixture
def installed_service(monkeypatch, service):
    """Route the views to ``service`` instead of the app-wide instance."""
    monkeypatch.setattr(apps.get_app_config("countries"), "service", service)
    return service


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def image_cache(settings, tmp_path):
    """Point the summary image cache at a temporary directory."""
    settings.ENVIRONMENT = "development"
    settings.CACHE_DIR = str(tmp_path)
    return tmp_path
