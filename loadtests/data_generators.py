"""Faker-based data generators for Locust load test scenarios.

Each generator produces payloads that pass the ledger's validation rules
(positive quantities, ordered thresholds, known write-off types) and match
the field names expected by the API's Pydantic request schemas.
"""

import random
import uuid

from faker import Faker

fake = Faker()

WRITE_OFF_TYPES = ["Damage", "Expiry", "Promotion"]


def valid_sku(prefix: str = "LT") -> str:
    """Generate SKUs like 'LT-1A2B3C4D'; unique per call so records never collide."""
    suffix = uuid.uuid4().hex[:8].upper()
    return f"{prefix}-{suffix}"


def order_id() -> str:
    return f"ORD-LT-{uuid.uuid4().hex[:10]}"


def create_record_data(initial_quantity: int = 100, sku: str | None = None) -> dict:
    """Generate CreateInventoryRecordRequest payload.

    Thresholds respect reorder_point <= low_stock_threshold <= max_stock_level.
    """
    low = random.randint(5, 20)
    return {
        "product_id": f"prod-{uuid.uuid4().hex[:8]}",
        "variant_id": f"var-{uuid.uuid4().hex[:8]}",
        "sku": sku or valid_sku(),
        "initial_quantity": initial_quantity,
        "low_stock_threshold": low,
        "reorder_point": random.randint(1, low),
        "max_stock_level": random.randint(500, 2000),
        "unit_cost": round(random.uniform(1.0, 250.0), 2),
        "created_by": fake.user_name()[:50],
    }


def reserve_data(sku: str, quantity: int = 1, expires_in_minutes: int | None = 15) -> dict:
    return {
        "sku": sku,
        "order_id": order_id(),
        "quantity": quantity,
        "expires_in_minutes": expires_in_minutes,
    }


def receive_data() -> dict:
    return {
        "quantity": random.randint(10, 100),
        "reason": "restock",
        "reference": f"PO-{uuid.uuid4().hex[:6].upper()}",
        "supplier_id": f"sup-{random.randint(1, 20)}",
    }


def write_off_data(quantity: int = 1) -> dict:
    return {
        "quantity": quantity,
        "movement_type": random.choice(WRITE_OFF_TYPES),
        "reason": fake.sentence(nb_words=5)[:200],
        "created_by": "warehouse-mgr",
    }


def location_data() -> dict:
    return {
        "warehouse_id": f"wh-{random.randint(1, 5)}",
        "location": f"Aisle {random.randint(1, 40)}",
        "bin_code": f"B-{random.randint(1, 999):03d}",
    }
