from rest_framework import serializers

from drivers.models import DriverStatus
from rides.models import PaymentMethod
from .models import Driver, Ride


class CoordinateField(serializers.Field):
    """
    Accepts [lat, lng] or {"lat": .., "lng": ..}. Range checks are left to
    routing.geo.validate_coordinate so there is one set of rules.
    """
    default_error_messages = {
        'invalid': 'Expected [lat, lng] or {{"lat": .., "lng": ..}}.',
    }

    def to_internal_value(self, data):
        if isinstance(data, dict):
            if 'lat' not in data or 'lng' not in data:
                self.fail('invalid')
            return (data['lat'], data['lng'])
        if isinstance(data, (list, tuple)) and len(data) == 2:
            return tuple(data)
        self.fail('invalid')

    def to_representation(self, value):
        return {'lat': value[0], 'lng': value[1]}


class FareEstimateRequestSerializer(serializers.Serializer):
    pickup = CoordinateField()
    dropoff = CoordinateField()
    car_category = serializers.CharField(max_length=50)


class RideCreateSerializer(serializers.Serializer):
    passenger_id = serializers.CharField(max_length=64, required=False, allow_null=True)
    pickup = CoordinateField()
    dropoff = CoordinateField()
    pickup_address = serializers.CharField(required=False, allow_blank=True, default='')
    dropoff_address = serializers.CharField(required=False, allow_blank=True, default='')
    car_category = serializers.CharField(max_length=50)
    payment_method = serializers.ChoiceField(
        choices=[m.value for m in PaymentMethod], default=PaymentMethod.CASH.value,
    )


class RideSerializer(serializers.ModelSerializer):
    driver = serializers.SerializerMethodField()

    class Meta:
        model = Ride
        fields = [
            'id', 'passenger_id', 'status',
            'pickup_lat', 'pickup_lng', 'pickup_address',
            'dropoff_lat', 'dropoff_lng', 'dropoff_address',
            'category', 'payment_method', 'estimated_fare', 'distance_km',
            'driver', 'created_at', 'updated_at', 'accepted_at',
        ]
        read_only_fields = fields

    def get_driver(self, obj):
        if obj.driver is None:
            return None
        return {
            'id': str(obj.driver.id),
            'name': obj.driver.name,
            'rating': float(obj.driver.rating),
            'car_model': obj.driver.car_model,
            'car_plate': obj.driver.car_plate,
        }


class DispatchRequestSerializer(serializers.Serializer):
    preferred_driver_id = serializers.CharField(required=False, allow_null=True, allow_blank=True)


class LocationReportSerializer(serializers.Serializer):
    # lat/lng stay raw, bad values are dropped by the ingestion layer
    lat = serializers.JSONField()
    lng = serializers.JSONField()
    heading = serializers.JSONField(required=False, allow_null=True)
    speed = serializers.JSONField(required=False, allow_null=True)
    accuracy = serializers.JSONField(required=False, allow_null=True)


class DriverStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[
        DriverStatus.AVAILABLE.value, DriverStatus.OFFLINE.value,
    ])


class DriverSerializer(serializers.ModelSerializer):
    class Meta:
        model = Driver
        fields = ['id', 'name', 'rating', 'total_trips', 'status', 'car_model', 'car_plate', 'category']
        read_only_fields = fields


class MatchingRequestSerializer(serializers.Serializer):
    pickup = CoordinateField()
    preferred_driver_id = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    max_distance_km = serializers.FloatField(required=False, min_value=0.1)
    min_rating = serializers.FloatField(required=False, min_value=0.0, max_value=5.0)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=50)


def candidate_payload(candidate):
    return {
        'driver_id': candidate.driver_id,
        'name': candidate.name,
        'rating': candidate.rating,
        'total_trips': candidate.total_trips,
        'location': {'lat': candidate.location[0], 'lng': candidate.location[1]},
        'distance_km': round(candidate.distance_km, 3),
        'eta_minutes': round(candidate.eta_minutes, 1),
        'match_score': round(candidate.match_score, 2),
        'is_preferred': candidate.is_preferred,
    }
