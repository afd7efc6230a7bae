import csv
import os
import random
import time
from concurrent.futures import ThreadPoolExecutor
from typing import List

import pandas as pd

from dispatch.dispatcher import Dispatcher
from dispatch.repository import InMemoryRideRepository
from drivers.models import DriverProfile
from drivers.policy import DispatchPolicy
from rides.booking import create_ride
from rides.fares import default_catalog
from tracking.ingestion import LocationIngestion
from tracking.store import LocationStore

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def load_drivers(filepath="mock_drivers_100.csv"):
    drivers, locations = [], {}
    with open(os.path.join(BASE_DIR, filepath), 'r') as file:
        reader = csv.DictReader(file)
        for row in reader:
            drivers.append(
                DriverProfile.new(
                    row['driver_id'],
                    row['name'],
                    rating=float(row['rating']),
                    total_trips=int(row['total_trips']),
                    status=row['status'],
                    category_id=row['car_category'],
                )
            )
            locations[row['driver_id']] = (float(row['lat']), float(row['lon']))
    return drivers, locations


def load_ride_requests(filepath="raw_rides_generated.csv", limit=50) -> List[dict]:
    df = pd.read_csv(os.path.join(BASE_DIR, filepath))
    return df.head(limit).to_dict(orient="records")


def run_simulation(duplicate_triggers=3, workers=8):
    print("=== STARTING END-TO-END DISPATCH SIMULATION ===")

    # 1. Load Data
    drivers, locations = load_drivers()
    requests_ = load_ride_requests(limit=50)
    print(f"Loaded {len(requests_)} ride requests and {len(drivers)} drivers.\n")

    # 2. Configure System
    policy = DispatchPolicy(matching_radius_km=5.0, auto_dispatch_enabled=False)
    policy.validate()
    repository = InMemoryRideRepository(drivers)
    store = LocationStore(policy.staleness_window_seconds)
    ingestion = LocationIngestion(store)
    dispatcher = Dispatcher(repository, store, policy_provider=lambda: policy)

    # Only drivers on duty share their position
    for driver in drivers:
        if driver.is_available:
            ingestion.report_location(driver.id, locations[driver.id])
    print(f"{len(store)} drivers reporting locations.")

    # 3. Book the rides
    catalog = default_catalog()
    rides = [
        create_ride(
            repository, catalog,
            passenger_id=row['passenger_id'],
            pickup=(row['pickup_lat'], row['pickup_lon']),
            dropoff=(row['dropoff_lat'], row['dropoff_lon']),
            category_id=row['car_category'],
            payment_method=row['payment_method'],
            pickup_address=row['pickup_address'],
        )
        for row in requests_
    ]

    # 4. Dispatch concurrently, each ride triggered several times
    print(f"Dispatching {len(rides)} rides x{duplicate_triggers} triggers on {workers} threads...")
    triggers = [ride.id for ride in rides for _ in range(duplicate_triggers)]
    random.shuffle(triggers)

    start_time = time.time()
    with ThreadPoolExecutor(max_workers=workers) as pool:
        outcomes = list(pool.map(dispatcher.dispatch, triggers))
    print(f"Finished {len(outcomes)} dispatch calls in {time.time() - start_time:.2f}s.\n")

    # 5. Summarise
    df = pd.DataFrame([
        {
            "ride_id": o.ride_id,
            "result": o.result.value,
            "driver_id": o.driver.id if o.driver else None,
            "distance_km": round(o.driver.distance_km, 3) if o.driver else None,
            "eta_minutes": round(o.driver.eta_minutes, 1) if o.driver else None,
            "match_score": round(o.driver.match_score, 2) if o.driver else None,
            "total_candidates": o.total_candidates,
        }
        for o in outcomes
    ])

    print("--- Outcome counts ---")
    print(df["result"].value_counts().to_string())

    assigned = df[df["result"] == "assigned"]
    duplicates = assigned["ride_id"].duplicated().sum()
    double_booked = assigned["driver_id"].duplicated().sum()
    print(f"\nRides assigned: {assigned['ride_id'].nunique()} / {len(rides)}")
    print(f"Rides assigned more than once: {duplicates}")
    print(f"Drivers assigned more than once: {double_booked}")
    if not assigned.empty:
        print(f"Mean pickup distance: {assigned['distance_km'].mean():.2f} km, "
              f"mean ETA: {assigned['eta_minutes'].mean():.1f} min")

    output_path = os.path.join(BASE_DIR, "dispatch_results.csv")
    df.to_csv(output_path, index=False)

    print("\n=== SIMULATION COMPLETE ===")
    print(f"Results written to '{output_path}'.")

if __name__ == "__main__":
    run_simulation()
