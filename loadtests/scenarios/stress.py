"""Stress test scenarios for per-record locking.

OversellUser hammers a handful of scarce SKUs with concurrent reservations.
Every request must end as a 201 or a clean rejection (400 insufficient
stock, 422 lock timeout). Any other status, or a record whose reserved
quantity exceeds its stock, is a failure.
"""

import random

from locust import HttpUser, constant_pacing, task

from loadtests.data_generators import create_record_data, reserve_data
from loadtests.helpers.response import extract_error_detail, is_clean_rejection

HOT_SKUS = [f"LT-HOT-{n:02d}" for n in range(5)]
HOT_SKU_QUANTITY = 200


class OversellUser(HttpUser):
    """Concurrent reservations against a few SKUs.

    Monitor: 422 responses mean the per-record lock timed out; the
    record is left exactly as it was.
    """

    wait_time = constant_pacing(0.1)

    def on_start(self):
        # The first user to arrive creates each record; later ones get a 400
        for sku in HOT_SKUS:
            with self.client.post(
                "/inventory",
                json=create_record_data(initial_quantity=HOT_SKU_QUANTITY, sku=sku),
                catch_response=True,
                name="[SEED] POST /inventory",
            ) as resp:
                resp.success()

    @task(10)
    def reserve_hot_sku(self):
        sku = random.choice(HOT_SKUS)
        with self.client.post(
            "/reservations",
            json=reserve_data(sku, quantity=random.randint(1, 3), expires_in_minutes=1),
            catch_response=True,
            name="[STRESS] POST /reservations",
        ) as resp:
            if resp.status_code == 201 or is_clean_rejection(resp):
                resp.success()
            else:
                resp.failure(f"Unexpected {resp.status_code}: {extract_error_detail(resp)}")

    @task(2)
    def check_hot_sku(self):
        sku = random.choice(HOT_SKUS)
        with self.client.get(
            f"/inventory/sku/{sku}",
            catch_response=True,
            name="[STRESS] GET /inventory/sku/{sku}",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Read failed: {resp.status_code} — {extract_error_detail(resp)}")
                return
            body = resp.json()
            if body["reserved"] > body["quantity"] or body["available"] != body["quantity"] - body["reserved"]:
                resp.failure(f"Counters out of balance for {sku}: {body}")

    @task(1)
    def sweep(self):
        self.client.post(
            "/maintenance/inventory/expire-reservations",
            json={},
            name="[STRESS] POST /maintenance/inventory/expire-reservations",
        )
