import pytest
from datetime import timedelta

from domain import ServiceGroup
from tests.factories import BASE_TIME


@pytest.fixture
def base_time():
    return BASE_TIME


@pytest.fixture
def core_group():
    return ServiceGroup(id='core', name='Core Services', order=0)


@pytest.fixture
def infra_group():
    return ServiceGroup(id='infra', name='Infrastructure', order=1)


@pytest.fixture
def minutes():
    """Timestamp factory relative to the shared base time."""
    return lambda n: BASE_TIME + timedelta(minutes=n)
