from decimal import Decimal
from unittest.mock import patch

import pytest

from societyledger.cli.services import Services, build_services
from societyledger.services.events import EventBus


@pytest.fixture()
def events() -> EventBus:
    return EventBus()


@pytest.fixture()
def services(db_connection, events) -> Services:
    with patch("societyledger.db.get_connection", return_value=db_connection):
        return build_services(events)


@pytest.fixture()
def society(services, sample_config):
    return services.tenants.create_tenant("Green Meadows CHS", sample_config())


@pytest.fixture()
def flat(services, society):
    return services.accounts.create_account(society.id, "101", Decimal("1000"), wing="A", owner_name="R. Sharma")


@pytest.fixture()
def billed_flat(services, society, flat):
    """A flat with its January 2025 bill generated."""
    services.bills.commit(society.id, "2025-01")
    return flat
