"""
Refresh pipeline and read operations over the cached country dataset.

A single ``CountryService`` is built when the app loads (see ``apps.py``)
and shared by the views. Its collaborators (feed adapters, random source,
clock, summary publisher) are injected so tests can substitute them.
"""
import functools
import logging
import os
import random
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F

from . import utils
from .exceptions import (
    CountryAPIError,
    CountryNotFound,
    InternalError,
    SummaryImageNotFound,
    ValidationFailed,
)
from .models import Country, RefreshStatus
from .sources import CatalogueSource, RateSource

logger = logging.getLogger(__name__)

# sort key -> (model field, descending)
SORT_FIELDS = {
    "name_asc": ("name", False),
    "name_desc": ("name", True),
    "gdp_asc": ("estimated_gdp", False),
    "gdp_desc": ("estimated_gdp", True),
    "population_asc": ("population", False),
    "population_desc": ("population", True),
}
DEFAULT_SORT = "name_asc"


@dataclass
class RefreshResult:
    inserted: int
    updated: int
    skipped: int
    last_refreshed_at: datetime

    @property
    def total(self):
        return self.inserted + self.updated


def translate_errors(action):
    """Let taxonomy errors through; log anything else and raise InternalError."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except CountryAPIError:
                raise
            except Exception as exc:
                logger.exception("Error %s", action)
                raise InternalError() from exc

        return wrapper

    return decorator


def _text_or_none(value):
    return value or None


def derive_country_fields(item, rates, rng=random):
    """
    Map one catalogue entry onto Country fields (everything except name and
    last_refreshed_at).

    estimated_gdp is 0 when the entry lists no currency, None when the
    currency has no usable rate, otherwise population * multiplier / rate.
    """
    currencies = item.get("currencies") or []
    first_currency = currencies[0] if currencies else None
    currency_code = _text_or_none((first_currency or {}).get("code"))

    exchange_rate = None
    if currency_code is not None:
        try:
            exchange_rate = float(rates.get(currency_code))
        except (TypeError, ValueError):
            exchange_rate = None

    try:
        population = max(int(item.get("population") or 0), 0)
    except (TypeError, ValueError):
        population = 0

    if currency_code is None:
        estimated_gdp = 0.0
    elif exchange_rate is None or exchange_rate <= 0:
        estimated_gdp = None
    else:
        estimated_gdp = population * utils.make_multiplier(rng) / exchange_rate

    return {
        "capital": _text_or_none(item.get("capital")),
        "region": _text_or_none(item.get("region")),
        "population": population,
        "currency_code": currency_code,
        "exchange_rate": exchange_rate,
        "estimated_gdp": estimated_gdp,
        "flag_url": _text_or_none(item.get("flag")),
    }


def batched(items, size):
    for start in range(0, len(items), size):
        yield items[start:start + size]


class StatusTracker:
    """Maintains the RefreshStatus singleton from the authoritative row count."""

    def record_refresh(self, refreshed_at):
        total = Country.objects.count()
        RefreshStatus.objects.update_or_create(
            pk=RefreshStatus.SINGLETON_ID,
            defaults={"total_countries": total, "last_refreshed_at": refreshed_at},
        )
        return total

    def recount(self):
        total = Country.objects.count()
        changed = RefreshStatus.objects.filter(pk=RefreshStatus.SINGLETON_ID).update(total_countries=total)
        if not changed:
            RefreshStatus.objects.create(
                pk=RefreshStatus.SINGLETON_ID,
                total_countries=total,
                last_refreshed_at=utils.get_now(),
            )
        return total

    def snapshot(self):
        status = RefreshStatus.objects.filter(pk=RefreshStatus.SINGLETON_ID).first()
        if status is None:
            return {"total_countries": 0, "last_refreshed_at": utils.get_now()}
        return {
            "total_countries": status.total_countries,
            "last_refreshed_at": status.last_refreshed_at,
        }


def publish_summary_image(total_countries, top5, timestamp):
    """Render the summary image in the background; returns the supervising thread."""
    return utils.run_detached(
        lambda: utils.generate_summary_image(total_countries, top5, timestamp),
        timeout=settings.SUMMARY_IMAGE_TIMEOUT,
        name="summary-image",
    )


class CountryService:

    def __init__(
        self,
        catalogue_source,
        rate_source,
        rng=None,
        batch_size=50,
        status_tracker=None,
        clock=utils.get_now,
        publish_summary=publish_summary_image,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.catalogue_source = catalogue_source
        self.rate_source = rate_source
        self.rng = rng or random.Random()
        self.batch_size = batch_size
        self.status = status_tracker or StatusTracker()
        self.clock = clock
        self.publish_summary = publish_summary

    @classmethod
    def from_settings(cls):
        return cls(
            CatalogueSource.from_settings(),
            RateSource.from_settings(),
            batch_size=settings.REFRESH_BATCH_SIZE,
        )

    # --- Refresh pipeline ---

    @translate_errors("refreshing countries")
    def refresh(self):
        """
        Fetch both feeds, upsert every catalogue entry by exact name and
        update the refresh status. Nothing is written if a feed fails.
        """
        now = self.clock()
        countries_data, rates = self._fetch_sources()

        inserted = updated = skipped = 0
        for batch in batched(countries_data, self.batch_size):
            with transaction.atomic():
                for item in batch:
                    name = item.get("name") if isinstance(item, dict) else None
                    if not name:
                        skipped += 1
                        logger.warning("Skipping catalogue entry without a name: %r", item)
                        continue
                    fields = derive_country_fields(item, rates, self.rng)
                    fields["last_refreshed_at"] = now
                    if self._upsert(name, fields):
                        inserted += 1
                    else:
                        updated += 1

        total = self.status.record_refresh(now)
        logger.info(
            "Refresh complete: %d inserted, %d updated, %d skipped, %d total",
            inserted, updated, skipped, total,
        )

        self._schedule_summary(total, now)
        return RefreshResult(inserted, updated, skipped, now)

    def _fetch_sources(self):
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="refresh-fetch") as pool:
            countries_future = pool.submit(self.catalogue_source.fetch)
            rates_future = pool.submit(self.rate_source.fetch)
            return countries_future.result(), rates_future.result()

    def _upsert(self, name, fields):
        """Write one record; returns True when it was inserted."""
        existing = Country.objects.select_for_update().filter(name=name).first()
        if existing is None:
            try:
                with transaction.atomic():
                    Country.objects.create(name=name, **fields)
                return True
            except IntegrityError:
                # inserted concurrently since the lookup
                existing = Country.objects.select_for_update().get(name=name)

        for field, value in fields.items():
            setattr(existing, field, value)
        existing.save(update_fields=list(fields))
        return False

    def _schedule_summary(self, total, refreshed_at):
        try:
            top5 = list(
                Country.objects.filter(estimated_gdp__isnull=False)
                .order_by("-estimated_gdp")
                .values_list("name", "estimated_gdp")[:5]
            )
            self.publish_summary(total, top5, refreshed_at.isoformat())
        except Exception:
            logger.exception("Could not schedule summary image generation")

    # --- Queries ---

    @translate_errors("listing countries")
    def list_countries(self, region=None, currency=None, sort=None):
        sort = sort or DEFAULT_SORT
        if sort not in SORT_FIELDS:
            raise ValidationFailed(details={"sort": f"must be one of {', '.join(SORT_FIELDS)}"})
        field, descending = SORT_FIELDS[sort]

        qs = Country.objects.all()
        if region:
            qs = qs.filter(region=region)
        if currency:
            qs = qs.filter(currency_code=currency)

        ordering = F(field).desc(nulls_last=True) if descending else F(field).asc(nulls_last=True)
        return list(qs.order_by(ordering, "name"))

    @translate_errors("getting country")
    def get_by_name(self, name):
        country = Country.objects.filter(name=name).first()
        if country is None:
            raise CountryNotFound()
        return country

    @translate_errors("deleting country")
    def delete(self, name):
        with transaction.atomic():
            deleted, _ = Country.objects.filter(name=name).delete()
            if not deleted:
                raise CountryNotFound()
            total = self.status.recount()
        logger.info("Deleted country %s (%d remaining)", name, total)

    @translate_errors("getting status")
    def get_status(self):
        return self.status.snapshot()

    def summary_image_path(self):
        path = utils.get_summary_image_path()
        if not os.path.exists(path):
            raise SummaryImageNotFound()
        return path
