import logging

from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.response import Response

from dispatch.candidate_filter import find_candidates
from dispatch.dispatcher import DispatchInfrastructureError
from dispatch.repository import DriverNotFoundError, RideNotFoundError, StoreUnavailableError
from dispatch.scoring import rank_candidates
from dispatch.state_machines import DriverStateException, RideStateException
from drivers.models import DriverStatus
from rides.booking import InvalidPaymentMethodError, create_ride
from rides.fares import InvalidCarCategoryError, UnknownCarCategoryError, estimate_fare
from routing.eta_service import HaversineEtaEstimator
from routing.geo import InvalidCoordinateError
from tracking.ingestion import InvalidLocationReportError

from .models import Driver, Ride
from .serializers import (
    DispatchRequestSerializer,
    DriverSerializer,
    DriverStatusSerializer,
    FareEstimateRequestSerializer,
    LocationReportSerializer,
    MatchingRequestSerializer,
    RideCreateSerializer,
    RideSerializer,
    candidate_payload,
)
from .services import current_catalog, current_policy, get_services

logger = logging.getLogger(__name__)

VALIDATION_ERRORS = (
    InvalidCoordinateError,
    InvalidCarCategoryError,
    InvalidPaymentMethodError,
    InvalidLocationReportError,
    UnknownCarCategoryError,
)


def error_response(exc):
    """
    Maps dispatch-core exceptions onto HTTP. Anything else propagates to DRF.
    """
    if isinstance(exc, VALIDATION_ERRORS):
        return Response({"error": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, (RideNotFoundError, DriverNotFoundError)):
        return Response({"error": str(exc)}, status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, (RideStateException, DriverStateException)):
        return Response({"error": str(exc)}, status=status.HTTP_409_CONFLICT)
    if isinstance(exc, (DispatchInfrastructureError, StoreUnavailableError)):
        return Response({"error": str(exc), "retryable": True}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
    raise exc


@api_view(['POST'])
@permission_classes([permissions.AllowAny])
def estimate_fare_view(request):
    """
    Quote for the booking screen. Pure computation, nothing is stored.
    """
    serializer = FareEstimateRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        category = current_catalog().get(data['car_category'])
        quote = estimate_fare(data['pickup'], data['dropoff'], category)
    except (VALIDATION_ERRORS + (StoreUnavailableError,)) as exc:
        return error_response(exc)

    return Response({
        "car_category": category.id,
        "distance_km": round(quote.distance_km, 2),
        "estimated_fare": round(quote.fare),
    })


class RideViewSet(mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    - POST   rides/               book a ride (auto-dispatch is scheduled)
    - GET    rides/<id>/          passenger polling
    - POST   rides/<id>/dispatch/ manual dispatch trigger
    """
    queryset = Ride.objects.select_related('driver')
    serializer_class = RideSerializer
    permission_classes = [permissions.AllowAny]

    def create(self, request):
        serializer = RideCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        services = get_services()

        try:
            ride = create_ride(
                services.repository,
                current_catalog(),
                passenger_id=data.get('passenger_id'),
                pickup=data['pickup'],
                dropoff=data['dropoff'],
                category_id=data['car_category'],
                payment_method=data['payment_method'],
                pickup_address=data['pickup_address'],
                dropoff_address=data['dropoff_address'],
            )
        except (VALIDATION_ERRORS + (StoreUnavailableError,)) as exc:
            return error_response(exc)

        try:
            scheduled = services.scheduler.on_ride_created(ride)
        except StoreUnavailableError as exc:
            # the ride is booked, it can still be dispatched manually
            logger.error("Could not schedule auto-dispatch for ride %s: %s", ride.id, exc)
            scheduled = False

        row = self.get_queryset().get(pk=ride.id)
        payload = RideSerializer(row).data
        payload['auto_dispatch_scheduled'] = scheduled
        return Response(payload, status=status.HTTP_201_CREATED)

    # "dispatch" is taken by APIView, so the method gets another name
    @action(detail=True, methods=['post'], url_path='dispatch')
    def trigger_dispatch(self, request, pk=None):
        serializer = DispatchRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            outcome = get_services().dispatcher.dispatch(
                str(pk),
                preferred_driver_id=serializer.validated_data.get('preferred_driver_id') or None,
            )
        except (RideNotFoundError, DispatchInfrastructureError) as exc:
            return error_response(exc)

        return Response(outcome.to_dict())


class DriverViewSet(mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    queryset = Driver.objects.all()
    serializer_class = DriverSerializer
    permission_classes = [permissions.AllowAny]

    @action(detail=True, methods=['post'])
    def location(self, request, pk=None):
        """
        Fire-and-forget: always 202. Invalid reports are dropped and logged.
        """
        serializer = LocationReportSerializer(data=request.data)
        if not serializer.is_valid():
            logger.warning("Dropped malformed location report from driver %s: %s", pk, serializer.errors)
            return Response({"accepted": False}, status=status.HTTP_202_ACCEPTED)

        data = serializer.validated_data
        try:
            record = get_services().ingestion.report_location(
                str(pk),
                (data['lat'], data['lng']),
                heading=data.get('heading'),
                speed=data.get('speed'),
                accuracy=data.get('accuracy'),
            )
        except StoreUnavailableError as exc:
            # the location itself is stored in memory, only the status flip failed
            logger.error("Could not update status of driver %s after location report: %s", pk, exc)
            return Response({"accepted": True}, status=status.HTTP_202_ACCEPTED)

        return Response({"accepted": record is not None}, status=status.HTTP_202_ACCEPTED)

    @action(detail=True, methods=['post'], url_path='status')
    def change_status(self, request, pk=None):
        serializer = DriverStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        target = DriverStatus(serializer.validated_data['status'])
        services = get_services()

        try:
            if target == DriverStatus.OFFLINE:
                if services.repository.get_driver(str(pk)) is None:
                    raise DriverNotFoundError(f"Driver {pk} not found")
                services.ingestion.go_offline(str(pk))
                driver = services.repository.get_driver(str(pk))
            else:
                driver = services.repository.set_driver_status(str(pk), target)
        except (DriverNotFoundError, DriverStateException, StoreUnavailableError) as exc:
            return error_response(exc)

        return Response({"id": driver.id, "status": driver.status.value})


@api_view(['POST'])
@permission_classes([permissions.AllowAny])
def smart_matching_view(request):
    """
    Ranked preview of the drivers who would be considered for a pickup.
    Read-only: nobody is assigned.
    """
    serializer = MatchingRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    services = get_services()

    try:
        policy = current_policy()
        candidates = find_candidates(
            data['pickup'],
            location_store=services.location_store,
            driver_repository=services.repository,
            max_distance_km=data.get('max_distance_km', policy.matching_radius_km),
            min_rating=data.get('min_rating', policy.min_driver_rating),
            limit=data.get('limit', policy.max_candidates),
            eta_estimator=HaversineEtaEstimator(policy.average_speed_kmh),
            staleness_window_seconds=policy.staleness_window_seconds,
        )
    except (InvalidCoordinateError, StoreUnavailableError) as exc:
        return error_response(exc)

    ranked = rank_candidates(
        candidates,
        data.get('preferred_driver_id') or None,
        preferred_bonus=policy.preferred_driver_bonus,
    )
    return Response({
        "drivers": [candidate_payload(c) for c in ranked],
        "total_found": len(ranked),
        "best_match": candidate_payload(ranked[0]) if ranked else None,
    })
