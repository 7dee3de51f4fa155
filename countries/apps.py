from django.apps import AppConfig


class CountriesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "countries"

    def ready(self):
        from .services import CountryService

        # shared by every request; see views.get_service
        self.service = CountryService.from_settings()
