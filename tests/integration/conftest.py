"""
Fixtures for API integration tests.

Each test gets an owner with one business and a bearer header for that
owner; the shared ``client`` fixture already routes the API to the test
database and the Twilio/SendGrid doubles.
"""

import pytest


@pytest.fixture
def owner(make_user):
    return make_user(email="owner@harborcafe.com", full_name="Olive Owner")


@pytest.fixture
def business(make_business, owner):
    return make_business(owner)


@pytest.fixture
def headers(auth_headers, owner):
    return auth_headers(owner)


@pytest.fixture
def outsider(make_user):
    """A registered user with no relation to the owner's business."""
    return make_user(email="stranger@elsewhere.com")
