from django.contrib import admin

from .models import Country, RefreshStatus


@admin.register(Country)
class CountryAdmin(admin.ModelAdmin):
    list_display = ("name", "region", "population", "currency_code", "estimated_gdp", "last_refreshed_at")
    list_filter = ("region",)
    search_fields = ("name",)


admin.site.register(RefreshStatus)
