import uuid

from django.db import models
from django.utils import timezone

from drivers.models import DriverProfile, DriverStatus, Vehicle
from rides.models import CarCategory as CarCategoryData
from rides.models import PaymentMethod, Ride as RideData, RideStatus


class CarCategory(models.Model):
    """
    Rate table for one class of vehicle (immutable reference data).
    """
    id = models.SlugField(primary_key=True, max_length=50)
    name = models.CharField(max_length=100, unique=True)
    base_fare = models.DecimalField(max_digits=10, decimal_places=2)
    price_per_km = models.DecimalField(max_digits=10, decimal_places=2)
    minimum_fare = models.DecimalField(max_digits=10, decimal_places=2)
    capacity = models.PositiveSmallIntegerField(default=4)
    is_active = models.BooleanField(default=True)

    def __str__(self):
        return self.name

    def to_domain(self) -> CarCategoryData:
        return CarCategoryData(
            id=self.id,
            name=self.name,
            base_fare=float(self.base_fare),
            price_per_km=float(self.price_per_km),
            minimum_fare=float(self.minimum_fare),
            capacity=int(self.capacity),
        )


class Driver(models.Model):
    """
    Driver profile as dispatch sees it.
    status is written by the driver's toggle and by dispatch on assignment,
    always through conditional updates in repositories.py.
    """
    class Status(models.TextChoices):
        OFFLINE = DriverStatus.OFFLINE.value, "Offline"
        AVAILABLE = DriverStatus.AVAILABLE.value, "Available"
        ON_TRIP = DriverStatus.ON_TRIP.value, "On trip"
        INACTIVE = DriverStatus.INACTIVE.value, "Inactive"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    rating = models.DecimalField(max_digits=3, decimal_places=2, default=5)
    total_trips = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.OFFLINE, db_index=True)

    car_model = models.CharField(max_length=100, blank=True)
    car_plate = models.CharField(max_length=15, blank=True)
    category = models.ForeignKey(CarCategory, on_delete=models.SET_NULL, null=True, blank=True, related_name='drivers')

    updated_at = models.DateTimeField(default=timezone.now)

    def __str__(self):
        return f"{self.name} ({self.status})"

    def to_domain(self) -> DriverProfile:
        return DriverProfile(
            id=str(self.id),
            name=self.name,
            rating=float(self.rating),
            total_trips=self.total_trips,
            status=DriverStatus(self.status),
            vehicle=Vehicle(model=self.car_model, plate=self.car_plate, category_id=self.category_id),
        )


class Ride(models.Model):
    """
    Tracks lifecycle: pending -> accepted -> in_progress -> completed,
    with cancelled reachable from pending and accepted. Never deleted.
    """
    class Status(models.TextChoices):
        PENDING = RideStatus.PENDING.value, "Pending"
        ACCEPTED = RideStatus.ACCEPTED.value, "Accepted"
        IN_PROGRESS = RideStatus.IN_PROGRESS.value, "In progress"
        COMPLETED = RideStatus.COMPLETED.value, "Completed"
        CANCELLED = RideStatus.CANCELLED.value, "Cancelled"

    class PaymentMethods(models.TextChoices):
        CASH = PaymentMethod.CASH.value, "Cash"
        MOBILE_MONEY = PaymentMethod.MOBILE_MONEY.value, "Mobile Money"
        CARD = PaymentMethod.CARD.value, "Card"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    passenger_id = models.CharField(max_length=64, blank=True, null=True)

    pickup_lat = models.FloatField()
    pickup_lng = models.FloatField()
    pickup_address = models.TextField(blank=True)
    dropoff_lat = models.FloatField()
    dropoff_lng = models.FloatField()
    dropoff_address = models.TextField(blank=True)

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    # Driver is attached only by the conditional assignment
    driver = models.ForeignKey(Driver, on_delete=models.SET_NULL, null=True, blank=True, related_name='rides')
    category = models.ForeignKey(CarCategory, on_delete=models.PROTECT, related_name='rides')
    payment_method = models.CharField(max_length=20, choices=PaymentMethods.choices, default=PaymentMethods.CASH)

    estimated_fare = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    distance_km = models.FloatField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)
    accepted_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"Ride #{self.id} - {self.status}"

    def to_domain(self) -> RideData:
        return RideData(
            id=str(self.id),
            passenger_id=self.passenger_id,
            pickup=(self.pickup_lat, self.pickup_lng),
            dropoff=(self.dropoff_lat, self.dropoff_lng),
            car_category_id=self.category_id,
            payment_method=PaymentMethod(self.payment_method),
            pickup_address=self.pickup_address,
            dropoff_address=self.dropoff_address,
            status=RideStatus(self.status),
            driver_id=str(self.driver_id) if self.driver_id else None,
            estimated_fare=float(self.estimated_fare) if self.estimated_fare is not None else None,
            distance_km=self.distance_km,
            created_at=self.created_at,
            updated_at=self.updated_at,
            accepted_at=self.accepted_at,
        )


class SystemSetting(models.Model):
    """
    Runtime-tunable dispatch knobs, re-read on every dispatch:
    auto_dispatch, driver_matching_radius, min_driver_rating, or any
    DispatchPolicy field name.
    """
    key = models.CharField(primary_key=True, max_length=100)
    value = models.JSONField(null=True)

    def __str__(self):
        return f"{self.key}={self.value!r}"
