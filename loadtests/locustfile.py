"""Stock Ledger Load Testing — Locust entry point.

Discovers all user classes from the scenarios package.
Run specific scenarios with Locust's class selection.

Usage:
    # All scenarios (web UI):
    locust -f loadtests/locustfile.py

    # Everyday inventory traffic only:
    locust -f loadtests/locustfile.py InventoryUser

    # Oversell stress test:
    locust -f loadtests/locustfile.py OversellUser

    # Headless (CI mode):
    locust -f loadtests/locustfile.py InventoryUser --headless \
           -u 50 -r 5 -t 300s --csv=results/loadtest
"""

import logging
import time

import requests
from locust import events

# Import all user classes so Locust discovers them
from loadtests.helpers.response import extract_error_detail
from loadtests.scenarios.inventory import InventoryUser  # noqa: F401
from loadtests.scenarios.stress import HOT_SKUS, OversellUser  # noqa: F401

logger = logging.getLogger("loadtest")


@events.request.add_listener
def on_request(request_type, name, response, exception, **_kw):
    """Log error details for every failed request.

    Fires globally for all scenarios, so no per-task wiring is needed.
    Extracts the API error body so you see "Insufficient stock: 2 available"
    instead of just "400".
    """
    if exception:
        logger.error("[EXCEPTION] %s %s: %s", request_type, name, exception)
    elif response is not None and response.status_code >= 400:
        detail = extract_error_detail(response)
        logger.error("[%s] %s %s: %s", response.status_code, request_type, name, detail)


@events.test_start.add_listener
def on_test_start(environment, **_kwargs):
    """Log a marker when load test begins."""
    print(f"\n[LOADTEST] Started at {time.strftime('%H:%M:%S')}")
    print(f"[LOADTEST] Target host: {environment.host}")
    print()


@events.test_stop.add_listener
def on_test_stop(environment, **_kwargs):
    """Print the final counters of the contended SKUs when the test ends."""
    print(f"\n[LOADTEST] Stopped at {time.strftime('%H:%M:%S')}")
    if not environment.host:
        return
    try:
        for sku in HOT_SKUS:
            resp = requests.get(f"{environment.host}/inventory/sku/{sku}", timeout=5)
            if resp.status_code != 200:
                continue
            body = resp.json()
            balanced = body["available"] == body["quantity"] - body["reserved"] and body["reserved"] <= body["quantity"]
            print(
                f"  {sku}: quantity={body['quantity']} reserved={body['reserved']} "
                f"available={body['available']} {'OK' if balanced else 'OUT OF BALANCE'}"
            )
        print()
    except requests.RequestException as e:
        print(f"[LOADTEST] Could not fetch final stock levels: {e}\n")
