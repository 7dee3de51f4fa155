import logging
import time

from django.apps import apps
from django.http import FileResponse
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from .serializers import CountryFilterSerializer, CountrySerializer, StatusSerializer

logger = logging.getLogger(__name__)


def get_service():
    return apps.get_app_config("countries").service


@api_view(['GET'])
def api_root(request):
    return Response({
        "message": "Country Currency & Exchange API",
        "endpoints": {
            "refresh": "POST /countries/refresh",
            "list": "GET /countries",
            "detail": "GET /countries/<name>",
            "delete": "DELETE /countries/<name>",
            "status": "GET /status",
            "image": "GET /countries/image",
        },
    })


@api_view(['POST'])
def refresh_countries(request):
    """
    POST /countries/refresh
    Fetch countries and exchange rates, then update or create cached data.
    Returns 503 without touching the cache when either feed is unavailable.
    """
    start_time = time.time()
    result = get_service().refresh()
    duration = round(time.time() - start_time, 2)

    return Response(
        {
            "message": "Countries refreshed successfully",
            "inserted": result.inserted,
            "updated": result.updated,
            "skipped": result.skipped,
            "total": result.total,
            "last_refreshed_at": result.last_refreshed_at.isoformat(),
            "duration_seconds": duration,
        },
        status=status.HTTP_200_OK,
    )


@api_view(['GET'])
def list_countries(request):
    """
    GET /countries
    Filters:
      - region, currency (exact match)
    Sorting:
      - ?sort=name_asc|name_desc|gdp_asc|gdp_desc|population_asc|population_desc
    Default:
      - name_asc; null values always sort last.
    """
    filters = CountryFilterSerializer(data=request.query_params)
    filters.is_valid(raise_exception=True)

    countries = get_service().list_countries(**filters.validated_data)
    return Response(CountrySerializer(countries, many=True).data)


@api_view(['GET', 'DELETE'])
def country_detail(request, name):
    """
    GET /countries/:name  -> return 404 JSON if not found
    DELETE /countries/:name -> delete, return 204 or 404
    """
    service = get_service()
    if request.method == 'GET':
        return Response(CountrySerializer(service.get_by_name(name)).data)

    service.delete(name)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
def get_status(request):
    """
    GET /status -> { total_countries, last_refreshed_at }
    """
    return Response(StatusSerializer(get_service().get_status()).data)


@api_view(['GET'])
def get_summary_image(request):
    """
    GET /countries/image
    Serve the summary image rendered after the last refresh.
    """
    path = get_service().summary_image_path()
    return FileResponse(open(path, 'rb'), content_type='image/png')
