"""Factory Boy factories for FieldOps test data generation."""

import factory
from factory.django import DjangoModelFactory

from django.utils import timezone


class UserFactory(DjangoModelFactory):
    """Factory for CustomUser model."""

    class Meta:
        model = "accounts.CustomUser"
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@example.com")
    display_name = factory.Faker("name")
    role = "L1Engineer"
    is_active = True

    @factory.post_generation
    def password(self, create, extracted, **kwargs):
        pwd = extracted or "testpass123!"
        self.set_password(pwd)
        if create:
            self.save(update_fields=["password"])


class SiteFactory(DjangoModelFactory):
    """Factory for Site model."""

    class Meta:
        model = "assets.Site"

    name = factory.Sequence(lambda n: f"Site {n}")
    code = factory.Sequence(lambda n: f"S{n:03d}")
    city = factory.Faker("city")


class SiteRightFactory(DjangoModelFactory):
    class Meta:
        model = "accounts.SiteRight"

    user = factory.SubFactory(UserFactory)
    site = factory.SubFactory(SiteFactory)
    rights = factory.LazyFunction(list)


class AssetFactory(DjangoModelFactory):
    """Factory for Asset model.

    Installed and Operational by default. ``asset_code`` is left to
    ``Asset.save()`` unless passed in.
    """

    class Meta:
        model = "assets.Asset"

    asset_code = factory.Sequence(lambda n: f"A{n:03d}")
    asset_type = "Camera"
    make = "Hikvision"
    model = "DS-2CD2143"
    serial_number = factory.Sequence(lambda n: f"SN{n:06d}")
    mac_address = factory.Sequence(
        lambda n: f"00:11:22:33:{n // 256 % 256:02X}:{n % 256:02X}"
    )
    ip_address = factory.Sequence(lambda n: f"10.0.{n // 250}.{n % 250 + 1}")
    site = factory.SubFactory(SiteFactory)
    criticality = 2
    status = "Operational"


class SpareFactory(AssetFactory):
    """Spare unit held in site stock."""

    asset_code = factory.Sequence(lambda n: f"SPR-{n:04d}")
    status = "Spare"
    ip_address = ""
    stock_location = "Store room"


class SLAPolicyFactory(DjangoModelFactory):
    class Meta:
        model = "tickets.SLAPolicy"
        django_get_or_create = ("priority", "is_active")

    name = factory.LazyAttribute(lambda o: f"{o.priority} policy")
    priority = "P3"
    response_time_minutes = 60
    restore_time_minutes = 480
    is_active = True


class TicketFactory(DjangoModelFactory):
    """Factory for Ticket model, bypassing numbering and scoring."""

    class Meta:
        model = "tickets.Ticket"

    ticket_number = factory.Sequence(lambda n: f"TKT-20260101-{n + 1:04d}")
    site = factory.SubFactory(SiteFactory)
    asset = factory.SubFactory(
        AssetFactory, site=factory.SelfAttribute("..site")
    )
    title = factory.Faker("sentence", nb_words=4)
    status = "InProgress"
    created_by = factory.SubFactory(UserFactory)
    created_at = factory.LazyFunction(timezone.now)
