"""Smoke test to verify the test infrastructure works."""


def test_imports():
    """Verify core dependencies can be imported."""
    import fastapi
    import httpx
    import icalendar
    import pydantic
    import pydantic_settings
    import sqlalchemy

    assert fastapi.__version__
    assert sqlalchemy.__version__
    assert httpx.__version__
    assert icalendar.__version__
    assert pydantic.__version__
    assert pydantic_settings.__version__


def test_app_routes_registered():
    from holiday_club.main import app

    paths = {route.path for route in app.routes}
    assert "/api/health" in paths
    assert "/api/clubs/{slug}/calendar" in paths
    assert "/api/checkout" in paths
    assert "/api/bookings/{booking_id}/add-days" in paths
    assert "/api/promo-code/validate" in paths
    assert "/api/stripe/webhook" in paths
    assert "/api/verify-payment" in paths
    assert "/api/bookings/{booking_id}/children" in paths
    assert "/api/bookings/{booking_id}/calendar.ics" in paths
