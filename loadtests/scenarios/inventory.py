"""Inventory load test scenarios.

Stateful SequentialTaskSet journeys covering receiving and counting,
the reservation lifecycle through fulfillment, cancellations, and
write-offs.
"""

import random

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import (
    create_record_data,
    location_data,
    receive_data,
    reserve_data,
    write_off_data,
)
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import InventoryState


class _RecordJourney(SequentialTaskSet):
    """Base journey: every user starts by creating its own inventory record."""

    initial_quantity = 100

    def on_start(self):
        self.state = InventoryState()
        payload = create_record_data(initial_quantity=self.initial_quantity)
        with self.client.post(
            "/inventory",
            json=payload,
            catch_response=True,
            name="POST /inventory",
        ) as resp:
            if resp.status_code == 201:
                self.state.inventory_record_id = resp.json()["inventory_record_id"]
                self.state.sku = payload["sku"]
                self.state.current_quantity = self.initial_quantity
                self.state.current_available = self.initial_quantity
            else:
                resp.failure(f"Create record failed: {resp.status_code} — {extract_error_detail(resp)}")
                self.interrupt()

    def _reserve(self, quantity, **extra):
        with self.client.post(
            "/reservations",
            json=reserve_data(self.state.sku, quantity=quantity, **extra),
            catch_response=True,
            name="POST /reservations",
        ) as resp:
            if resp.status_code == 201:
                self.state.reservation_ids.append(resp.json()["reservation_id"])
                self.state.current_available -= quantity
            else:
                resp.failure(f"Reserve failed: {resp.status_code} — {extract_error_detail(resp)}")
                self.interrupt()


class ReceiveAndCountJourney(_RecordJourney):
    """Create -> Receive -> Locate -> Cycle Count -> Read.

    Models a warehouse manager receiving a shipment and reconciling the books.
    """

    @task
    def receive_stock(self):
        payload = receive_data()
        with self.client.put(
            f"/inventory/{self.state.inventory_record_id}/add",
            json=payload,
            catch_response=True,
            name="PUT /inventory/{id}/add",
        ) as resp:
            if resp.status_code == 200:
                self.state.current_quantity += payload["quantity"]
                self.state.current_available += payload["quantity"]
            else:
                resp.failure(f"Receive failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def update_location(self):
        with self.client.put(
            f"/inventory/{self.state.inventory_record_id}/location",
            json=location_data(),
            catch_response=True,
            name="PUT /inventory/{id}/location",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Update location failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def cycle_count(self):
        counted = self.state.current_quantity - random.randint(0, 3)
        with self.client.put(
            f"/inventory/{self.state.inventory_record_id}/adjust",
            json={"new_quantity": counted, "reason": "cycle count", "counted_by": "auditor-01"},
            catch_response=True,
            name="PUT /inventory/{id}/adjust",
        ) as resp:
            if resp.status_code == 200:
                self.state.current_quantity = counted
            else:
                resp.failure(f"Cycle count failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def read_record(self):
        with self.client.get(
            f"/inventory/{self.state.inventory_record_id}",
            catch_response=True,
            name="GET /inventory/{id}",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Read failed: {resp.status_code} — {extract_error_detail(resp)}")
            elif resp.json()["quantity"] != self.state.current_quantity:
                resp.failure(f"Quantity drifted: expected {self.state.current_quantity}, got {resp.json()['quantity']}")

    @task
    def done(self):
        self.interrupt()


class ReserveAndFulfillJourney(_RecordJourney):
    """Create -> Check -> Reserve -> Extend -> Fulfill -> Movements.

    Models a successful order: stock is held at checkout and shipped.
    """

    initial_quantity = 50

    @task
    def check_availability(self):
        self.quantity = random.randint(1, 5)
        with self.client.get(
            "/inventory/check-availability",
            params={"sku": self.state.sku, "quantity": self.quantity},
            catch_response=True,
            name="GET /inventory/check-availability",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Availability check failed: {resp.status_code} — {extract_error_detail(resp)}")
            elif not resp.json()["can_fulfill"]:
                resp.failure(f"Fresh record cannot fulfill {self.quantity} units")

    @task
    def reserve(self):
        self._reserve(self.quantity)

    @task
    def extend(self):
        reservation_id = self.state.reservation_ids[-1]
        with self.client.put(
            f"/reservations/{reservation_id}/extend",
            json={"expires_in_minutes": 30},
            catch_response=True,
            name="PUT /reservations/{id}/extend",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Extend failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def fulfill(self):
        reservation_id = self.state.reservation_ids[-1]
        with self.client.put(
            f"/reservations/{reservation_id}/fulfill",
            json={"created_by": "picker-01"},
            catch_response=True,
            name="PUT /reservations/{id}/fulfill",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Fulfill failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def movements(self):
        with self.client.get(
            f"/inventory/{self.state.inventory_record_id}/movements",
            catch_response=True,
            name="GET /inventory/{id}/movements",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Movements failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class ReserveAndCancelJourney(_RecordJourney):
    """Create -> Reserve x2 -> Release -> Cancel -> Cancel again.

    Models abandoned checkouts handing their holds back.
    """

    initial_quantity = 50

    @task
    def reserve_twice(self):
        self._reserve(3)
        self._reserve(2)

    @task
    def release(self):
        with self.client.put(
            f"/reservations/{self.state.reservation_ids[0]}/release",
            json={"reason": "payment failed"},
            catch_response=True,
            name="PUT /reservations/{id}/release",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Release failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def cancel_twice(self):
        for expected in ("ok", "unchanged"):
            with self.client.put(
                f"/reservations/{self.state.reservation_ids[1]}/cancel",
                json={"reason": "order cancelled"},
                catch_response=True,
                name="PUT /reservations/{id}/cancel",
            ) as resp:
                if resp.status_code != 200:
                    resp.failure(f"Cancel failed: {resp.status_code} — {extract_error_detail(resp)}")
                elif resp.json()["status"] != expected:
                    resp.failure(f"Cancel returned {resp.json()['status']}, expected {expected}")

    @task
    def done(self):
        self.interrupt()


class WriteOffJourney(_RecordJourney):
    """Create -> Write Off -> Return -> Low/Out-of-stock reports."""

    @task
    def write_off(self):
        with self.client.put(
            f"/inventory/{self.state.inventory_record_id}/write-off",
            json=write_off_data(quantity=random.randint(1, 5)),
            catch_response=True,
            name="PUT /inventory/{id}/write-off",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Write off failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def customer_return(self):
        with self.client.put(
            f"/inventory/{self.state.inventory_record_id}/return",
            json={"quantity": 1, "reason": "customer return"},
            catch_response=True,
            name="PUT /inventory/{id}/return",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Return failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def low_stock_report(self):
        for path in ("/inventory/low-stock", "/inventory/out-of-stock"):
            with self.client.get(path, catch_response=True, name=f"GET {path}") as resp:
                if resp.status_code != 200:
                    resp.failure(f"Report failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class InventoryUser(HttpUser):
    """Locust user simulating stock ledger interactions.

    Weighted distribution:
    - 35% Receive & count (most common warehouse operation)
    - 30% Reserve & fulfill (order flow)
    - 20% Reserve & cancel (abandoned checkouts)
    - 15% Write-offs (less frequent)
    """

    wait_time = between(0.5, 2.0)
    tasks = {
        ReceiveAndCountJourney: 7,
        ReserveAndFulfillJourney: 6,
        ReserveAndCancelJourney: 4,
        WriteOffJourney: 3,
    }
