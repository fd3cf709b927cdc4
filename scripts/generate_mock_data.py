import pandas as pd
import numpy as np
import json
import uuid

# City centres the synthetic customers and riders are scattered around
CITIES = {
    "Harare": (-17.824858, 31.053028),
    "Bulawayo": (-20.132507, 28.626479),
}

PRODUCTS = [
    ("p_cig_red", "Cigarettes (red)", 5.50),
    ("p_cig_blue", "Cigarettes (blue)", 5.80),
    ("p_tobacco", "Rolling tobacco", 7.20),
    ("p_lighter", "Lighter", 1.50),
    ("p_papers", "Rolling papers", 0.90),
    ("p_snack", "Snack bar", 1.20),
]


def _scatter(center, radius_deg, size):
    lat = center[0] + np.random.uniform(-radius_deg, radius_deg, size)
    lon = center[1] + np.random.uniform(-radius_deg, radius_deg, size)
    return np.round(lat, 6), np.round(lon, 6)


def generate_mock_data(num_customers=60, num_riders=20, num_orders=40, prefix=""):
    """
    Generates customers, riders and pending baskets for the acceptance simulation.
    Customers and riders share a small set of cities so the same-city matching
    and the accept race both have something to chew on.
    """
    city_names = list(CITIES.keys())

    # 1. Customers
    customer_cities = np.random.choice(city_names, size=num_customers, p=[0.7, 0.3])
    customers = []
    for index, city in enumerate(customer_cities):
        lat, lon = _scatter(CITIES[city], 0.05, 1)
        customers.append({
            "uid": f"c_{str(index + 1).zfill(4)}",
            "city": city,
            "latitude": lat[0],
            "longitude": lon[0],
        })

    # 2. Riders (most approved and online, a few not)
    rider_cities = np.random.choice(city_names, size=num_riders, p=[0.7, 0.3])
    riders = []
    for index, city in enumerate(rider_cities):
        lat, lon = _scatter(CITIES[city], 0.08, 1)
        riders.append({
            "uid": f"r_{str(index + 1).zfill(3)}",
            "city": city,
            "latitude": lat[0],
            "longitude": lon[0],
            "active": bool(np.random.random() < 0.9),
            "online": bool(np.random.random() < 0.8),
            "fcm_token": f"tok_{uuid.uuid4().hex}",
        })

    # 3. Orders: 1-3 distinct products per basket
    orders = []
    for index in range(num_orders):
        customer = customers[np.random.randint(0, num_customers)]
        picks = np.random.choice(len(PRODUCTS), size=np.random.randint(1, 4), replace=False)
        items = [
            {
                "productId": PRODUCTS[p][0],
                "name": PRODUCTS[p][1],
                "price": PRODUCTS[p][2],
                "quantity": int(np.random.randint(1, 4)),
            }
            for p in picks
        ]
        orders.append({
            "order_ref": f"o_{str(index + 1).zfill(5)}",
            "client_id": customer["uid"],
            "items": json.dumps(items),
        })

    customers_df = pd.DataFrame(customers)
    riders_df = pd.DataFrame(riders)
    orders_df = pd.DataFrame(orders)

    customers_df.to_csv(f"{prefix}customers.csv", index=False)
    riders_df.to_csv(f"{prefix}riders.csv", index=False)
    orders_df.to_csv(f"{prefix}orders.csv", index=False)

    print(f"✅ Generated {num_customers} customers, {num_riders} riders and {num_orders} orders")

    print("\nOrders per city:")
    merged = orders_df.merge(customers_df, left_on="client_id", right_on="uid")
    for city, count in merged["city"].value_counts().items():
        print(f"  {city}: {count} orders")

    return customers_df, riders_df, orders_df


if __name__ == "__main__":
    generate_mock_data()
