"""Tests for the accounts models and work log task."""

import pytest

from django.db import IntegrityError

from accounts.models import SiteRight, WorkLogEntry
from assets.factories import UserFactory

# ============================================================
# USER
# ============================================================


class TestCustomUser:
    def test_display_name_preferred(self, user):
        assert user.get_display_name() == "Field Engineer"
        assert str(user) == "Field Engineer"

    def test_falls_back_to_full_name(self, db):
        u = UserFactory(
            display_name="", first_name="Asha", last_name="Rao"
        )
        assert u.get_display_name() == "Asha Rao"

    def test_falls_back_to_username(self, db):
        u = UserFactory(
            username="tech7", display_name="", first_name="", last_name=""
        )
        assert u.get_display_name() == "tech7"

    @pytest.mark.parametrize(
        "role,elevated",
        [
            ("Admin", True),
            ("Supervisor", True),
            ("L2Engineer", False),
            ("L1Engineer", False),
        ],
    )
    def test_is_elevated(self, db, role, elevated):
        assert UserFactory(role=role).is_elevated is elevated

    def test_superuser_is_elevated(self, admin_user):
        admin_user.role = "ClientViewer"
        assert admin_user.is_elevated

    def test_email_unique(self, user):
        with pytest.raises(IntegrityError):
            UserFactory(email=user.email)


class TestSiteRight:
    def test_one_row_per_user_and_site(self, user, site, grant):
        grant(user, site, "MANAGE_SITE_STOCK")
        with pytest.raises(IntegrityError):
            SiteRight.objects.create(
                user=user, site=site, rights=["APPROVE_REQUISITION"]
            )

    def test_str(self, user, site, grant):
        right = grant(user, site, "MANAGE_SITE_STOCK", "APPROVE_REQUISITION")
        assert str(right) == (
            "Field Engineer @ Central Station: "
            "MANAGE_SITE_STOCK, APPROVE_REQUISITION"
        )


# ============================================================
# WORK LOG
# ============================================================


class TestRecordWorkLog:
    def test_records_entry(self, user):
        from accounts.tasks import record_work_log

        entry_id = record_work_log(
            user.pk,
            "RMA",
            "Raised RMA-20260412-0001",
            ref_type="rma",
            ref_id=7,
            metadata={"ticket": "TKT-20260412-0001"},
        )
        entry = WorkLogEntry.objects.get(pk=entry_id)
        assert entry.user == user
        assert entry.category == "RMA"
        assert entry.ref_id == 7
        assert entry.metadata == {"ticket": "TKT-20260412-0001"}

    def test_description_truncated(self, user):
        from accounts.tasks import record_work_log

        entry_id = record_work_log(user.pk, "Note", "x" * 600)
        assert len(WorkLogEntry.objects.get(pk=entry_id).description) == 500

    def test_missing_user_skipped(self, db):
        from accounts.tasks import record_work_log

        assert record_work_log(424242, "RMA", "Orphan") is None
        assert not WorkLogEntry.objects.exists()
