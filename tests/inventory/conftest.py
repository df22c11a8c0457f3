from datetime import UTC, datetime

import pytest
from inventory.clock import reset_clock, set_clock
from inventory.clock.fake_clock import FakeClock
from inventory.stock.locking import reset_record_locks
from protean import current_domain
from protean.integrations.pytest import DomainFixture

CLOCK_START = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)


@pytest.fixture(scope="session")
def inventory_bed():
    from inventory.domain import inventory
    from inventory.utils.db import drop_db, setup_db

    bed = DomainFixture(inventory)
    bed.setup()
    setup_db(inventory)
    yield bed
    drop_db(inventory)
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(inventory_bed):
    with inventory_bed.domain_context():
        yield

        # Clear all databases and drain the event store
        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def clock():
    """Every test runs against a frozen clock it can advance explicitly."""
    fake = FakeClock(CLOCK_START)
    set_clock(fake)
    yield fake
    reset_clock()
    reset_record_locks()
