import pandas as pd
import numpy as np
import uuid
from datetime import datetime, timezone, timedelta

from rides.fares import default_catalog, estimate_fare

def generate_mock_rides(num_rides=500, num_hotspots=15, output_file="raw_rides_generated.csv"):
    """
    Generates ride requests clustered around a handful of pickup hotspots
    (bus parks, markets, hotels) so several passengers compete for the same
    nearby drivers, which is what stresses the dispatcher.
    """
    CENTER_LAT = -1.9441
    CENTER_LON = 30.0619

    # 1. Hotspots within ~5km of the center (roughly 0.05 degrees)
    hotspots = []
    for hotspot_index in range(num_hotspots):
        hotspots.append({
            "name": f"Hotspot {hotspot_index+1}",
            "lat": CENTER_LAT + np.random.uniform(-0.05, 0.05),
            "lon": CENTER_LON + np.random.uniform(-0.05, 0.05),
        })

    catalog = default_catalog()
    category_ids = [c.id for c in catalog.all()]
    data = []
    now = datetime.now(timezone.utc)

    # 2. Ride requests
    for ride_index in range(num_rides):
        hotspot = hotspots[np.random.randint(0, len(hotspots))]

        # Passenger stands near the hotspot, destination 1-10km away
        pickup_lat = hotspot["lat"] + np.random.normal(0, 0.003)
        pickup_lon = hotspot["lon"] + np.random.normal(0, 0.003)
        dropoff_lat = pickup_lat + np.random.uniform(-0.08, 0.08)
        dropoff_lon = pickup_lon + np.random.uniform(-0.08, 0.08)

        category_id = np.random.choice(category_ids, p=[0.7, 0.2, 0.1])
        quote = estimate_fare((pickup_lat, pickup_lon), (dropoff_lat, dropoff_lon), catalog.get(category_id))

        data.append({
            "ride_id": str(uuid.uuid4()),
            "created_at": (now - timedelta(seconds=int(np.random.randint(0, 600)))).isoformat(),
            "passenger_id": f"p_{np.random.randint(1000, 9999)}",
            "pickup_lat": np.round(pickup_lat, 6),
            "pickup_lon": np.round(pickup_lon, 6),
            "dropoff_lat": np.round(dropoff_lat, 6),
            "dropoff_lon": np.round(dropoff_lon, 6),
            "car_category": category_id,
            "payment_method": np.random.choice(["cash", "mobile_money", "card"], p=[0.5, 0.4, 0.1]),
            "distance_km": np.round(quote.distance_km, 2),
            "estimated_fare": np.round(quote.fare),
            "pickup_address": hotspot["name"],
        })

    # 3. Save to CSV
    df = pd.DataFrame(data)
    df.to_csv(output_file, index=False)
    print(f"Generated {num_rides} ride requests and saved to '{output_file}'")

    # Quick preview of demand concentration
    print("\nBusiest pickup hotspots:")
    counts = df['pickup_address'].value_counts().head(5)
    for name, count in counts.items():
        print(f"  {name}: {count} rides")

    print("\nFare by category (RWF):")
    print(df.groupby("car_category")["estimated_fare"].describe()[["count", "mean", "min", "max"]].round(0))

if __name__ == "__main__":
    generate_mock_rides(num_rides=500, num_hotspots=15)
