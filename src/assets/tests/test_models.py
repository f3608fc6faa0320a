"""Tests for asset models and database layer."""

import pytest

from django.core.exceptions import ValidationError
from django.db import IntegrityError

from assets.factories import (
    AssetFactory,
    SiteFactory,
    SpareFactory,
    TicketFactory,
)
from assets.models import (
    Asset,
    RMARequest,
    RMATimelineEntry,
    Site,
    StockMovementLog,
    StockTransfer,
)

# ============================================================
# MODEL TESTS
# ============================================================


class TestSite:
    def test_str(self, site):
        assert str(site) == "Central Station"

    def test_display_label(self, site, head_office):
        assert site.display_label == "Central Station"
        assert head_office.display_label == "HO"

    def test_ordering(self, db):
        SiteFactory(name="Zulu")
        SiteFactory(name="Alpha")
        names = list(Site.objects.values_list("name", flat=True))
        assert names == sorted(names)


class TestAssetCode:
    def test_generated_when_blank(self, site):
        a = Asset.objects.create(asset_type="Camera", site=site)
        assert a.asset_code.startswith("SPR-")

    def test_generated_codes_are_unique(self, site):
        first = Asset.objects.create(asset_type="Camera", site=site)
        second = Asset.objects.create(asset_type="Camera", site=site)
        assert first.asset_code != second.asset_code

    def test_explicit_code_kept(self, asset):
        assert asset.asset_code == "A001"

    def test_code_cannot_change(self, asset):
        asset.asset_code = "A999"
        with pytest.raises(ValidationError, match="cannot be changed"):
            asset.save()

    def test_code_cannot_change_after_reload(self, asset):
        reloaded = Asset.objects.get(pk=asset.pk)
        reloaded.asset_code = "A999"
        with pytest.raises(ValidationError):
            reloaded.save()
        assert Asset.objects.get(pk=asset.pk).asset_code == "A001"

    def test_other_fields_still_editable(self, asset):
        asset.remark = "Lens cracked"
        asset.save()
        asset.refresh_from_db()
        assert asset.remark == "Lens cracked"

    def test_duplicate_explicit_code_rejected(self, asset, site):
        with pytest.raises(IntegrityError):
            AssetFactory(asset_code="A001", site=site)


class TestAssetTransitions:
    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            ("Spare", "Reserved"),
            ("Spare", "Operational"),
            ("Spare", "InTransit"),
            ("Reserved", "Spare"),
            ("Reserved", "Operational"),
            ("InTransit", "Spare"),
            ("Operational", "Damaged"),
            ("Offline", "Operational"),
            ("Damaged", "Spare"),
            ("Spare", "Damaged"),
            ("Spare", "Offline"),
            ("Reserved", "Damaged"),
            ("InTransit", "Damaged"),
        ],
    )
    def test_allowed(self, from_status, to_status):
        assert Asset.is_transition_allowed(from_status, to_status)

    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            ("Operational", "Reserved"),
            ("Operational", "InTransit"),
            ("InTransit", "Operational"),
            ("Reserved", "InTransit"),
            ("Decommissioned", "Spare"),
            ("Decommissioned", "Operational"),
            ("Damaged", "Reserved"),
            ("Offline", "InTransit"),
        ],
    )
    def test_forbidden(self, from_status, to_status):
        assert not Asset.is_transition_allowed(from_status, to_status)

    def test_same_status_is_allowed(self):
        assert Asset.is_transition_allowed("InTransit", "InTransit")

    def test_can_transition_to_uses_current_status(self, spare):
        assert spare.can_transition_to("Reserved")
        assert spare.can_transition_to("Damaged")

    def test_claim_only_statuses_need_spare(self, asset):
        assert asset.status == "Offline"
        assert not asset.can_transition_to("Reserved")
        assert asset.can_transition_to("Damaged")

    def test_snapshot(self, asset):
        snap = asset.snapshot()
        assert snap["asset_code"] == "A001"
        assert snap["serial_number"] == "SN-OLD-001"
        assert set(Asset.IDENTITY_FIELDS) <= set(snap)


class TestStockMovementLog:
    def test_entries_are_immutable(self, spare, user):
        from assets.services.ledger import log_movement

        entry = log_movement(spare, "StatusChange", user, to_status="Spare")
        entry.notes = "edited"
        with pytest.raises(ValidationError, match="immutable"):
            entry.save()

    def test_entries_cannot_be_deleted(self, spare, user):
        from assets.services.ledger import log_movement

        entry = log_movement(spare, "Added", user, to_status="Spare")
        with pytest.raises(ValidationError):
            entry.delete()
        assert StockMovementLog.objects.filter(pk=entry.pk).exists()

    def test_snapshot_recorded(self, asset, user):
        from assets.services.ledger import log_movement

        entry = log_movement(asset, "StatusChange", user)
        assert entry.asset_snapshot["serial_number"] == "SN-OLD-001"

    def test_asset_with_history_cannot_be_deleted(self, spare, user):
        from django.db.models import ProtectedError

        from assets.services.ledger import log_movement

        log_movement(spare, "Added", user, to_status="Spare")
        with pytest.raises(ProtectedError):
            spare.delete()


class TestRMARequestModel:
    def _rma(self, ticket, **kwargs):
        defaults = {
            "rma_number": f"RMA-20260101-{RMARequest.objects.count() + 1:04d}",
            "ticket": ticket,
            "site": ticket.site,
            "original_asset": ticket.asset,
            "request_reason": "Dead unit",
        }
        defaults.update(kwargs)
        return RMARequest.objects.create(**defaults)

    def test_one_active_rma_per_ticket(self, ticket):
        self._rma(ticket)
        with pytest.raises(IntegrityError):
            self._rma(ticket)

    def test_terminal_rmas_do_not_block(self, ticket):
        self._rma(ticket, status="Rejected")
        self._rma(ticket, status="Installed")
        assert self._rma(ticket).is_active

    def test_transition_table(self, ticket):
        rma = self._rma(ticket)
        assert rma.can_transition_to("Approved")
        assert rma.can_transition_to("Rejected")
        assert not rma.can_transition_to("Ordered")

    def test_timeline_entries_are_immutable(self, ticket, user):
        rma = self._rma(ticket)
        entry = RMATimelineEntry.objects.create(
            rma=rma, status="Requested", changed_by=user
        )
        entry.remarks = "changed"
        with pytest.raises(ValidationError):
            entry.save()


class TestStockTransferModel:
    def test_default_name_uses_site_labels(self, head_office, site, user):
        t = StockTransfer.objects.create(
            source_site=head_office, destination_site=site, initiated_by=user
        )
        assert t.transfer_name == "HO -> Central Station"
        assert str(t) == "HO -> Central Station"

    def test_explicit_name_kept(self, site, other_site, user):
        t = StockTransfer.objects.create(
            source_site=site,
            destination_site=other_site,
            initiated_by=user,
            transfer_name="Monsoon restock",
        )
        assert t.transfer_name == "Monsoon restock"


class TestTicketForeignKeys:
    def test_asset_on_ticket_is_protected(self, db):
        from django.db.models import ProtectedError

        t = TicketFactory()
        with pytest.raises(ProtectedError):
            t.asset.delete()

    def test_spare_factory_defaults(self, db):
        s = SpareFactory()
        assert s.status == "Spare"
        assert s.is_active
