"""
URL configuration for country_currency project.

The API itself lives in countries.urls; this module only mounts it and
replaces Django's HTML error pages with JSON.
"""
from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse

urlpatterns = [
    path('admin/', admin.site.urls),
    path('', include('countries.urls'))
]


def custom_404(request, exception):
    return JsonResponse({"error": "Endpoint not found"}, status=404)


def custom_500(request):
    return JsonResponse({"error": "Internal server error"}, status=500)


handler404 = "country_currency.urls.custom_404"
handler500 = "country_currency.urls.custom_500"
