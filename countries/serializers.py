from rest_framework import serializers

from .models import Country
from .services import SORT_FIELDS


class CountrySerializer(serializers.ModelSerializer):
    class Meta:
        model = Country
        fields = [
            'id', 'name', 'capital', 'region', 'population',
            'currency_code', 'exchange_rate', 'estimated_gdp',
            'flag_url', 'last_refreshed_at'
        ]
        read_only_fields = fields


class CountryFilterSerializer(serializers.Serializer):
    """
    Query parameters accepted by GET /countries.

    Unknown parameters and parameters given without a value are rejected,
    so typos do not silently return the unfiltered list.
    """
    region = serializers.CharField(required=False, trim_whitespace=False)
    currency = serializers.CharField(required=False, trim_whitespace=False)
    sort = serializers.ChoiceField(choices=list(SORT_FIELDS), required=False)

    def to_internal_value(self, data):
        errors = {}
        for key in data.keys():
            if key not in self.fields:
                errors[key] = "is not a valid filter"
            elif not data.get(key):
                errors[key] = "is required"
        if errors:
            raise serializers.ValidationError(errors)
        return super().to_internal_value(data)


class StatusSerializer(serializers.Serializer):
    total_countries = serializers.IntegerField()
    last_refreshed_at = serializers.DateTimeField()
