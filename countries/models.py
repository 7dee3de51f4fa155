from django.db import models


class Country(models.Model):
    # name — business key, matched exactly (case-sensitive) during refresh
    name = models.CharField(max_length=200, unique=True)
    capital = models.CharField(max_length=200, null=True, blank=True)
    region = models.CharField(max_length=100, null=True, blank=True, db_index=True)
    population = models.PositiveBigIntegerField(default=0)
    # currency_code — first listed currency; null when the country lists none
    currency_code = models.CharField(max_length=10, null=True, blank=True, db_index=True)
    # exchange_rate — external-sourced; null when the rate feed has no entry
    exchange_rate = models.FloatField(null=True, blank=True)
    # estimated_gdp — computed on refresh only; 0 without currency, null without rate
    estimated_gdp = models.FloatField(null=True, blank=True)
    flag_url = models.URLField(max_length=500, null=True, blank=True)
    last_refreshed_at = models.DateTimeField()

    class Meta:
        verbose_name_plural = "countries"

    def __str__(self):
        return self.name


class RefreshStatus(models.Model):
    """Singleton row holding the aggregate state of the cached dataset."""

    SINGLETON_ID = 1

    total_countries = models.PositiveIntegerField(default=0)
    last_refreshed_at = models.DateTimeField()

    class Meta:
        verbose_name_plural = "refresh status"

    def __str__(self):
        return f"{self.total_countries} countries, last refreshed at {self.last_refreshed_at}"
