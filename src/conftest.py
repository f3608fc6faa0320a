"""Shared pytest fixtures for FieldOps tests."""

import pytest

from django.conf import settings

# Use local filesystem storage for tests
settings.STORAGES["default"] = {
    "BACKEND": "django.core.files.storage.FileSystemStorage",
}
settings.STORAGES["staticfiles"] = {
    "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
}

# Run Celery tasks synchronously in tests
settings.CELERY_TASK_ALWAYS_EAGER = True
settings.CELERY_TASK_EAGER_PROPAGATES = True

# Use in-memory cache for tests (avoids Redis connection errors)
settings.CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}


@pytest.fixture(autouse=True)
def _clear_cache():
    from django.core.cache import cache

    cache.clear()


from assets.factories import (  # noqa: E402
    AssetFactory,
    SiteFactory,
    SiteRightFactory,
    SLAPolicyFactory,
    SpareFactory,
    TicketFactory,
    UserFactory,
)

# --- User fixtures ---


@pytest.fixture
def password():
    return "testpass123!"


@pytest.fixture
def user(db, password):
    """L1 engineer with no site rights."""
    return UserFactory(
        username="engineer",
        email="engineer@example.com",
        password=password,
        display_name="Field Engineer",
        role="L1Engineer",
    )


@pytest.fixture
def supervisor(db, password):
    return UserFactory(
        username="supervisor",
        email="supervisor@example.com",
        password=password,
        display_name="Site Supervisor",
        role="Supervisor",
    )


@pytest.fixture
def admin_user(db, password):
    return UserFactory(
        username="admin",
        email="admin@example.com",
        password=password,
        role="Admin",
        is_staff=True,
        is_superuser=True,
    )


@pytest.fixture
def client_logged_in(client, user, password):
    client.login(username=user.username, password=password)
    return client


@pytest.fixture
def supervisor_client(db, supervisor, password):
    """Separate client so tests can act as two users at once."""
    from django.test import Client

    c = Client()
    c.login(username=supervisor.username, password=password)
    return c


# --- Core model fixtures ---


@pytest.fixture
def site(db):
    return SiteFactory(name="Central Station", code="CST")


@pytest.fixture
def other_site(db):
    return SiteFactory(name="North Depot", code="NDP")


@pytest.fixture
def head_office(db):
    return SiteFactory(name="Head Office", code="HO", is_head_office=True)


@pytest.fixture
def asset(site, user):
    return AssetFactory(
        asset_code="A001",
        asset_type="Camera",
        serial_number="SN-OLD-001",
        mac_address="AA:BB:CC:00:00:01",
        ip_address="10.1.1.10",
        site=site,
        status="Offline",
        created_by=user,
    )


@pytest.fixture
def spare(site, user):
    return SpareFactory(
        asset_code="A050",
        asset_type="Camera",
        serial_number="SN-NEW-050",
        mac_address="AA:BB:CC:00:00:50",
        make="Axis",
        model="P3245",
        site=site,
        created_by=user,
    )


@pytest.fixture
def ticket(site, asset, user):
    return TicketFactory(site=site, asset=asset, created_by=user)


@pytest.fixture
def sla_policies(db):
    return {
        p: SLAPolicyFactory(
            priority=p,
            response_time_minutes=response,
            restore_time_minutes=restore,
        )
        for p, response, restore in [
            ("P1", 15, 60),
            ("P2", 30, 240),
            ("P3", 60, 480),
            ("P4", 120, 1440),
        ]
    }


@pytest.fixture
def grant(db):
    """Give a user rights at a site: ``grant(user, site, "RIGHT", ...)``."""

    def _grant(u, s, *rights):
        return SiteRightFactory(user=u, site=s, rights=list(rights))

    return _grant
