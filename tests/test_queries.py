from datetime import datetime, timezone

import pytest

from countries.exceptions import CountryNotFound, SummaryImageNotFound, ValidationFailed
from countries.models import Country, RefreshStatus
from countries.utils import generate_summary_image

from .conftest import REFRESH_TIME

pytestmark = pytest.mark.django_db


@pytest.fixture
def refreshed(service):
    service.refresh()
    return service


def names(countries):
    return [c.name for c in countries]


class TestListCountries:

    def test_default_sort_is_name_ascending(self, refreshed):
        assert names(refreshed.list_countries()) == ["Antarctica", "Atlantis", "France", "Germany", "Nigeria"]

    def test_name_descending(self, refreshed):
        assert names(refreshed.list_countries(sort="name_desc")) == [
            "Nigeria", "Germany", "France", "Atlantis", "Antarctica",
        ]

    def test_population_descending_is_non_increasing(self, refreshed):
        populations = [c.population for c in refreshed.list_countries(sort="population_desc")]
        assert populations == sorted(populations, reverse=True)

    def test_population_ascending(self, refreshed):
        populations = [c.population for c in refreshed.list_countries(sort="population_asc")]
        assert populations == sorted(populations)

    def test_gdp_sorts_put_nulls_last(self, refreshed):
        descending = refreshed.list_countries(sort="gdp_desc")
        ascending = refreshed.list_countries(sort="gdp_asc")

        assert descending[-1].name == "Atlantis"
        assert ascending[-1].name == "Atlantis"
        gdps = [c.estimated_gdp for c in descending[:-1]]
        assert gdps == sorted(gdps, reverse=True)
        assert ascending[0].name == "Antarctica"

    def test_filter_by_region(self, refreshed):
        europe = refreshed.list_countries(region="Europe")

        assert names(europe) == ["Atlantis", "France", "Germany"]
        assert all(c.region == "Europe" for c in europe)

    def test_region_filter_is_exact(self, refreshed):
        assert refreshed.list_countries(region="europe") == []

    def test_filter_by_currency_and_region(self, refreshed):
        assert names(refreshed.list_countries(region="Europe", currency="EUR")) == ["France", "Germany"]

    def test_no_match_returns_empty_list(self, refreshed):
        assert refreshed.list_countries(currency="JPY") == []

    def test_unknown_sort_is_rejected(self, refreshed):
        with pytest.raises(ValidationFailed) as excinfo:
            refreshed.list_countries(sort="capital_asc")
        assert "sort" in excinfo.value.details

    def test_ties_break_by_name(self, service):
        for name in ["Beta", "Alpha", "Gamma"]:
            Country.objects.create(name=name, population=5, last_refreshed_at=REFRESH_TIME)

        assert names(service.list_countries(sort="population_desc")) == ["Alpha", "Beta", "Gamma"]


class TestGetAndDelete:

    def test_get_by_exact_name(self, refreshed):
        assert refreshed.get_by_name("Nigeria").capital == "Abuja"

    def test_get_is_case_sensitive(self, refreshed):
        with pytest.raises(CountryNotFound):
            refreshed.get_by_name("nigeria")

    def test_delete_decrements_status_by_one(self, refreshed, catalogue):
        refreshed.delete("France")

        status = RefreshStatus.objects.get(pk=RefreshStatus.SINGLETON_ID)
        assert status.total_countries == len(catalogue) - 1
        assert status.last_refreshed_at == REFRESH_TIME
        assert not Country.objects.filter(name="France").exists()

    def test_second_delete_is_not_found(self, refreshed):
        refreshed.delete("France")

        with pytest.raises(CountryNotFound):
            refreshed.delete("France")

    def test_delete_before_any_refresh_creates_status(self, service):
        Country.objects.create(name="Solo", population=1, last_refreshed_at=REFRESH_TIME)
        Country.objects.create(name="Duo", population=2, last_refreshed_at=REFRESH_TIME)

        service.delete("Solo")

        assert RefreshStatus.objects.get(pk=RefreshStatus.SINGLETON_ID).total_countries == 1


class TestStatus:

    def test_defaults_before_first_refresh(self, service):
        before = datetime.now(timezone.utc)

        status = service.get_status()

        assert status["total_countries"] == 0
        assert status["last_refreshed_at"] >= before
        assert not RefreshStatus.objects.exists()

    def test_reports_last_refresh(self, refreshed, catalogue):
        assert refreshed.get_status() == {
            "total_countries": len(catalogue),
            "last_refreshed_at": REFRESH_TIME,
        }


class TestSummaryImagePath:

    def test_missing_image(self, service, image_cache):
        with pytest.raises(SummaryImageNotFound):
            service.summary_image_path()

    def test_existing_image(self, service, image_cache):
        generate_summary_image(0, [], REFRESH_TIME.isoformat())

        assert service.summary_image_path() == str(image_cache / "summary.png")
