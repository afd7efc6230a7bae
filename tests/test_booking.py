import pytest

from rides.booking import InvalidPaymentMethodError, create_ride, parse_payment_method
from rides.fares import UnknownCarCategoryError, estimate_fare
from rides.models import PaymentMethod, RideStatus
from routing.geo import InvalidCoordinateError
from conftest import DROPOFF, PICKUP


def test_create_ride_stores_a_priced_pending_ride(repository, catalog, now):
    ride = create_ride(
        repository, catalog,
        passenger_id="pax-7",
        pickup=PICKUP,
        dropoff=DROPOFF,
        category_id="comfort",
        payment_method="mobile_money",
        pickup_address="Kigali Convention Centre",
        now=now,
    )

    quote = estimate_fare(PICKUP, DROPOFF, catalog.get("comfort"))
    assert ride.status == RideStatus.PENDING
    assert ride.driver_id is None
    assert ride.payment_method == PaymentMethod.MOBILE_MONEY
    assert ride.estimated_fare == pytest.approx(quote.fare)
    assert ride.distance_km == pytest.approx(quote.distance_km)
    assert ride.created_at == now

    stored = repository.get_ride(ride.id)
    assert stored.pickup_address == "Kigali Convention Centre"
    assert stored.status == RideStatus.PENDING


def test_rides_get_distinct_ids(repository, catalog):
    first = create_ride(repository, catalog, pickup=PICKUP, dropoff=DROPOFF, category_id="standard")
    second = create_ride(repository, catalog, pickup=PICKUP, dropoff=DROPOFF, category_id="standard")
    assert first.id != second.id
    assert len(repository.list_rides()) == 2


@pytest.mark.parametrize("kwargs, error", [
    ({"pickup": (100.0, 30.0)}, InvalidCoordinateError),
    ({"dropoff": None}, InvalidCoordinateError),
    ({"category_id": "helicopter"}, UnknownCarCategoryError),
    ({"payment_method": "bitcoin"}, InvalidPaymentMethodError),
])
def test_invalid_requests_store_nothing(repository, catalog, kwargs, error):
    request = dict(pickup=PICKUP, dropoff=DROPOFF, category_id="standard")
    request.update(kwargs)

    with pytest.raises(error):
        create_ride(repository, catalog, **request)

    assert repository.list_rides() == []


def test_parse_payment_method():
    assert parse_payment_method("card") == PaymentMethod.CARD
    assert parse_payment_method(PaymentMethod.CASH) == PaymentMethod.CASH
    with pytest.raises(InvalidPaymentMethodError):
        parse_payment_method("cheque")
