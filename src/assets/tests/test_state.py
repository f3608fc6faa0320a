"""Tests for the asset state machine and conditional claims."""

from unittest.mock import patch

import pytest

from django.core.exceptions import ObjectDoesNotExist, ValidationError

from assets.exceptions import ConflictError, NotFoundError
from assets.models import Asset, StockMovementLog


class TestValidateStatusEdge:
    def test_unknown_status(self):
        from assets.services.state import validate_status_edge

        with pytest.raises(ValidationError, match="not a valid status"):
            validate_status_edge("Spare", "Bogus")

    def test_forbidden_edge_is_conflict(self):
        from assets.services.state import validate_status_edge

        with pytest.raises(ConflictError, match="Allowed transitions"):
            validate_status_edge("InTransit", "Operational")

    def test_claim_only_target_from_unguarded_status(self):
        from assets.services.state import validate_status_edge

        with pytest.raises(ConflictError, match="Only Spare assets"):
            validate_status_edge("Operational", "Reserved")

    def test_decommissioned_is_terminal(self):
        from assets.services.state import validate_status_edge

        with pytest.raises(ConflictError, match="none"):
            validate_status_edge("Decommissioned", "Spare")

    def test_validate_transition_uses_asset_status(self, spare):
        from assets.services.state import validate_transition

        validate_transition(spare, "Reserved")  # Should not raise


class TestGetAsset:
    def test_found(self, asset):
        from assets.services.state import get_asset

        assert get_asset(asset.pk) == asset

    def test_missing(self, db):
        from assets.services.state import get_asset

        with pytest.raises(NotFoundError, match="Asset not found"):
            get_asset(99999)

    def test_not_found_is_object_does_not_exist(self, db):
        from assets.services.state import get_asset

        with pytest.raises(ObjectDoesNotExist):
            get_asset("abc")


class TestMoveAsset:
    def test_claim_spare(self, spare, user):
        from assets.services.state import claim_spare

        result = claim_spare(spare, "Operational", user)
        assert result.status == "Operational"
        spare.refresh_from_db()
        assert spare.status == "Operational"

        entry = StockMovementLog.objects.get(asset=spare)
        assert entry.movement_type == "StatusChange"
        assert entry.from_status == "Spare"
        assert entry.to_status == "Operational"
        assert entry.performed_by == user

    def test_claim_non_spare_is_conflict(self, asset, user):
        from assets.services.state import claim_spare

        with pytest.raises(ConflictError, match="must be Spare status"):
            claim_spare(asset, "Operational", user)
        asset.refresh_from_db()
        assert asset.status == "Offline"
        assert not StockMovementLog.objects.filter(asset=asset).exists()

    def test_stale_instance_loses(self, spare, user, supervisor):
        from assets.services.state import claim_spare

        first = Asset.objects.get(pk=spare.pk)
        second = Asset.objects.get(pk=spare.pk)

        claim_spare(first, "Operational", user)
        with pytest.raises(ConflictError):
            claim_spare(second, "Reserved", supervisor)

        spare.refresh_from_db()
        assert spare.status == "Operational"
        assert StockMovementLog.objects.filter(asset=spare).count() == 1

    def test_expected_status_mismatch(self, asset, user):
        from assets.services.state import move_asset

        stale = Asset.objects.get(pk=asset.pk)
        Asset.objects.filter(pk=asset.pk).update(status="Damaged")
        with pytest.raises(ConflictError, match="no longer Offline"):
            move_asset(stale, "Operational", user)

    def test_custom_conflict_message(self, asset, user):
        from assets.services.state import claim_spare

        with pytest.raises(ConflictError, match="Pick another unit"):
            claim_spare(
                asset,
                "Operational",
                user,
                conflict_message="Pick another unit.",
            )

    def test_site_and_updates_written_together(self, spare, other_site, user):
        from assets.services.state import claim_spare

        claim_spare(
            spare,
            "Operational",
            user,
            to_site=other_site,
            updates={"stock_location": ""},
        )
        spare.refresh_from_db()
        assert spare.site == other_site
        assert spare.stock_location == ""

        entry = StockMovementLog.objects.get(asset=spare)
        assert entry.from_site.name == "Central Station"
        assert entry.to_site == other_site

    def test_ledger_failure_rolls_back_status(self, spare, user):
        from assets.services.state import claim_spare

        with patch(
            "assets.services.state.log_movement",
            side_effect=RuntimeError("disk full"),
        ):
            with pytest.raises(RuntimeError):
                claim_spare(spare, "Operational", user)

        spare.refresh_from_db()
        assert spare.status == "Spare"

    def test_ticket_reference_recorded(self, ticket, spare, user):
        from assets.services.state import claim_spare

        claim_spare(spare, "Operational", user, ticket=ticket)
        assert StockMovementLog.objects.get(asset=spare).ticket == ticket


class TestSetStatus:
    def test_set_status(self, asset, user):
        from assets.services.state import set_status

        set_status(asset, "Damaged", user, reason="Water ingress")
        asset.refresh_from_db()
        assert asset.status == "Damaged"
        entry = StockMovementLog.objects.get(asset=asset)
        assert entry.notes == "Water ingress"

    def test_noop_writes_nothing(self, asset, user):
        from assets.services.state import set_status

        set_status(asset, "Offline", user)
        assert not StockMovementLog.objects.filter(asset=asset).exists()

    def test_spare_can_be_marked_damaged(self, spare, user):
        from assets.services.state import set_status

        set_status(spare, "Damaged", user, reason="Dropped in transit")
        spare.refresh_from_db()
        assert spare.status == "Damaged"
        entry = StockMovementLog.objects.get(asset=spare)
        assert (entry.from_status, entry.to_status) == ("Spare", "Damaged")

    def test_invalid_edge(self, spare, user):
        from assets.services.state import claim_spare, set_status

        claim_spare(spare, "InTransit", user)
        with pytest.raises(ConflictError):
            set_status(spare, "Operational", user)


class TestLedgerHistory:
    def test_history_oldest_first(self, spare, user):
        from assets.services.ledger import asset_history
        from assets.services.state import claim_spare, move_asset

        claim_spare(spare, "Reserved", user, movement_type="Reserved")
        move_asset(spare, "Spare", user, movement_type="Released")
        types = [e.movement_type for e in asset_history(spare)]
        assert types == ["Reserved", "Released"]

    def test_bulk_movement(self, site, other_site, user):
        from assets.factories import SpareFactory
        from assets.services.ledger import log_bulk_movement

        spares = SpareFactory.create_batch(3, site=site)
        count = log_bulk_movement(
            spares,
            "Transfer",
            user,
            from_status="Spare",
            to_status="InTransit",
            from_site=site,
            to_site=other_site,
        )
        assert count == 3
        assert StockMovementLog.objects.filter(
            movement_type="Transfer"
        ).count() == 3
