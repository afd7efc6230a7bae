import csv
import random
import uuid

def generate_mock_drivers(filename="mock_drivers_100.csv", count=100):
    # Center of Kigali, where the rate tables are priced
    base_lat = -1.9441
    base_lon = 30.0619

    categories = ["standard", "standard", "standard", "comfort", "xl"]

    with open(filename, mode='w', newline='') as file:
        writer = csv.writer(file)
        writer.writerow(["driver_id", "name", "lat", "lon", "status", "rating", "total_trips", "car_category"])

        for i in range(count):
            driver_id = str(uuid.uuid4())

            # Scatter drivers randomly around the city center (roughly +/- 8km)
            lat = base_lat + (random.random() - 0.5) * 0.15
            lon = base_lon + (random.random() - 0.5) * 0.15

            # 80% chance of being available, 20% offline
            status = "available" if random.random() < 0.8 else "offline"

            # Most drivers are well rated, a few sit under the 3.5 floor
            rating = round(min(5.0, max(2.5, random.gauss(4.4, 0.5))), 2)
            total_trips = random.randint(0, 1500)

            writer.writerow([
                driver_id, f"Driver {i + 1}", round(lat, 6), round(lon, 6),
                status, rating, total_trips, random.choice(categories),
            ])

    print(f"Successfully generated {count} mock drivers into '{filename}'.")

if __name__ == "__main__":
    generate_mock_drivers()
