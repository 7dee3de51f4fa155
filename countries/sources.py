"""
Adapters for the two external feeds consumed by a refresh.

Both adapters fail as a unit: any transport error, timeout, HTTP error
status or malformed payload is raised as ``UpstreamUnavailable``.
"""
import logging

import requests
from django.conf import settings
from requests.exceptions import RequestException

from .exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)


class JSONSource:
    """GET a JSON document from ``url`` with a bounded timeout."""

    label = "external API"

    def __init__(self, url, timeout=None, session=None):
        self.url = url
        self.timeout = timeout if timeout is not None else settings.API_TIMEOUT
        self.session = session or requests

    def _get_json(self):
        logger.info("Fetching %s from %s", self.label, self.url)
        try:
            resp = self.session.get(
                self.url,
                timeout=self.timeout,
                headers={"Accept": "application/json"},
            )
            resp.raise_for_status()
            return resp.json()
        except (RequestException, ValueError) as exc:
            logger.error("%s error: %s", self.label, exc)
            raise self.unavailable() from exc

    def unavailable(self):
        return UpstreamUnavailable(details=f"Could not fetch data from {self.label}")


class CatalogueSource(JSONSource):
    label = "Countries API"

    @classmethod
    def from_settings(cls):
        return cls(settings.COUNTRIES_API_URL)

    def fetch(self):
        """Return the list of catalogue entries."""
        data = self._get_json()
        if not isinstance(data, list):
            logger.error("%s returned %s instead of a list", self.label, type(data).__name__)
            raise self.unavailable()
        logger.info("Fetched %d countries", len(data))
        return data


class RateSource(JSONSource):
    label = "Exchange Rate API"

    @classmethod
    def from_settings(cls):
        return cls(settings.EXCHANGE_RATE_API_URL)

    def fetch(self):
        """Return a ``{currency_code: rate}`` mapping relative to the feed's base currency."""
        data = self._get_json()
        if not isinstance(data, dict) or data.get("result") != "success":
            result = data.get("result") if isinstance(data, dict) else None
            logger.error("%s returned unsuccessful result: %r", self.label, result)
            raise self.unavailable()
        rates = data.get("rates") or {}
        if not isinstance(rates, dict):
            logger.error("%s returned %s rates instead of a mapping", self.label, type(rates).__name__)
            raise self.unavailable()
        logger.info("Fetched %d exchange rates (base %s)", len(rates), data.get("base_code"))
        return rates
