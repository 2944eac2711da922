import pytest
from typing import Any

from mimo_finance.business_calendar import week_containing
from mimo_finance.reconciler import build_service_index
from mimo_finance.testing.fixtures import build_sample_dataset


@pytest.fixture
def sample_dataset() -> dict[str, list[dict[str, Any]]]:
    """Payments, services and users covering the business week of 2024-06-12."""
    return build_sample_dataset()


@pytest.fixture
def sample_services(sample_dataset):
    return sample_dataset["services"]


@pytest.fixture
def sample_payments(sample_dataset):
    return sample_dataset["payments"]


@pytest.fixture
def service_index(sample_services):
    return build_service_index(sample_services)


@pytest.fixture
def june_week():
    """Wednesday 2024-06-12 through Tuesday 2024-06-18."""
    return week_containing("2024-06-12T10:00:00")
