"""Tests for the JSON workflow endpoints."""

import io
import json
from unittest.mock import patch

import openpyxl
import pytest

from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse

from assets.factories import SpareFactory
from assets.models import Asset, RMARequest, StockTransfer


def post_json(client, url, data=None):
    return client.post(
        url, data=json.dumps(data or {}), content_type="application/json"
    )


# ============================================================
# ERROR MAPPING
# ============================================================


class TestErrorMapping:
    def test_requires_login(self, client, db):
        response = post_json(client, reverse("assets:rma_create"))
        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "message": "Authentication required.",
        }

    def test_method_not_allowed(self, client_logged_in):
        response = client_logged_in.get(reverse("assets:rma_create"))
        assert response.status_code == 405

    def test_missing_fields_is_400(self, client_logged_in):
        response = post_json(
            client_logged_in, reverse("assets:rma_create"), {}
        )
        assert response.status_code == 400
        assert "ticket_id" in response.json()["message"]

    def test_bad_json_is_400(self, client_logged_in):
        response = client_logged_in.post(
            reverse("assets:rma_create"),
            data="{not json",
            content_type="application/json",
        )
        assert response.status_code == 400

    def test_not_found_is_404(self, client_logged_in):
        response = post_json(
            client_logged_in,
            reverse("assets:rma_create"),
            {"ticket_id": 98765, "request_reason": "Dead"},
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Ticket not found."

    def test_conflict_is_409(self, client_logged_in, ticket):
        url = reverse("assets:rma_create")
        payload = {"ticket_id": ticket.pk, "request_reason": "Dead"}
        assert post_json(client_logged_in, url, payload).status_code == 201
        response = post_json(client_logged_in, url, payload)
        assert response.status_code == 409
        assert response.json()["success"] is False

    def test_permission_is_403(self, client_logged_in, site, other_site):
        spare = SpareFactory(site=site)
        response = post_json(
            client_logged_in,
            reverse("assets:transfer_initiate"),
            {
                "source_site_id": site.pk,
                "destination_site_id": other_site.pk,
                "asset_ids": [spare.pk],
            },
        )
        assert response.status_code == 403

    def test_unexpected_error_is_generic_500(self, client_logged_in, ticket):
        with patch(
            "assets.services.rma.create_rma",
            side_effect=RuntimeError("db password is hunter2"),
        ):
            response = post_json(
                client_logged_in,
                reverse("assets:rma_create"),
                {"ticket_id": ticket.pk, "request_reason": "Dead"},
            )
        assert response.status_code == 500
        assert "hunter2" not in response.content.decode()
        assert response.json()["message"] == "An unexpected error occurred."


# ============================================================
# RMA ENDPOINTS
# ============================================================


class TestRMAEndpoints:
    def test_create_and_advance(self, supervisor_client, ticket):
        response = post_json(
            supervisor_client,
            reverse("assets:rma_create"),
            {"ticket_id": ticket.pk, "request_reason": "No video"},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["rma"]["status"] == "Approved"

        rma_id = body["rma"]["id"]
        response = post_json(
            supervisor_client,
            reverse("assets:rma_update_status", args=[rma_id]),
            {"status": "Ordered", "remarks": "PO 4411"},
        )
        assert response.status_code == 200
        assert response.json()["rma"]["status"] == "Ordered"
        assert response.json()["rma"]["timeline"][-1]["remarks"] == "PO 4411"

    def test_install_without_details_is_400(self, supervisor_client, ticket):
        rma_id = post_json(
            supervisor_client,
            reverse("assets:rma_create"),
            {"ticket_id": ticket.pk, "request_reason": "No video"},
        ).json()["rma"]["id"]
        response = post_json(
            supervisor_client,
            reverse("assets:rma_update_status", args=[rma_id]),
            {"status": "Installed"},
        )
        assert response.status_code == 400
        assert "Replacement details required" in response.json()["message"]

    def test_detail(self, client_logged_in, ticket):
        post_json(
            client_logged_in,
            reverse("assets:rma_create"),
            {"ticket_id": ticket.pk, "request_reason": "No video"},
        )
        rma = RMARequest.objects.get()
        response = client_logged_in.get(
            reverse("assets:rma_detail", args=[rma.pk])
        )
        assert response.status_code == 200
        assert response.json()["rma"]["rma_number"] == rma.rma_number

    def test_for_ticket(self, client_logged_in, ticket, user):
        from assets.services.rma import create_rma

        rma = create_rma(ticket.pk, user, "No video")
        response = client_logged_in.get(
            reverse("assets:rma_for_ticket", args=[ticket.pk])
        )
        assert response.status_code == 200
        assert response.json()["rma"]["id"] == rma.pk

    def test_for_ticket_without_rma_is_404(self, client_logged_in, ticket):
        response = client_logged_in.get(
            reverse("assets:rma_for_ticket", args=[ticket.pk])
        )
        assert response.status_code == 404
        assert response.json()["message"] == "No RMA found for this ticket."

    def test_history(self, client_logged_in, ticket, asset, user, supervisor):
        from assets.services.rma import create_rma, reject_rma

        first = create_rma(ticket.pk, user, "First")
        reject_rma(first.pk, supervisor, "Firmware issue")
        second = create_rma(ticket.pk, user, "Second")
        response = client_logged_in.get(
            reverse("assets:rma_history", args=[asset.pk])
        )
        assert response.status_code == 200
        assert [r["id"] for r in response.json()["rmas"]] == [
            second.pk,
            first.pk,
        ]


# ============================================================
# REQUISITION ENDPOINTS
# ============================================================


class TestRequisitionEndpoints:
    def test_create_approve_fulfill(
        self, client_logged_in, supervisor_client, ticket, other_site
    ):
        spare = SpareFactory(site=other_site, asset_type="Camera")
        response = post_json(
            client_logged_in,
            reverse("assets:requisition_create"),
            {
                "ticket_id": ticket.pk,
                "source_site_id": other_site.pk,
                "asset_type": "Camera",
            },
        )
        assert response.status_code == 201
        req_id = response.json()["requisition"]["id"]

        response = post_json(
            supervisor_client,
            reverse("assets:requisition_approve", args=[req_id]),
        )
        assert response.json()["requisition"]["status"] == "Approved"

        response = post_json(
            supervisor_client,
            reverse("assets:requisition_fulfill", args=[req_id]),
            {"asset_id": spare.pk},
        )
        assert response.status_code == 200
        assert response.json()["requisition"]["fulfilled_asset_id"] == (
            spare.pk
        )

    def test_insufficient_stock_is_400(
        self, client_logged_in, ticket, other_site
    ):
        response = post_json(
            client_logged_in,
            reverse("assets:requisition_create"),
            {
                "ticket_id": ticket.pk,
                "source_site_id": other_site.pk,
                "asset_type": "Camera",
                "quantity": 3,
            },
        )
        assert response.status_code == 400
        assert response.json()["message"] == (
            "Insufficient stock. Only 0 available."
        )

    def test_available_stock_masks_identity(
        self, client_logged_in, site
    ):
        SpareFactory(site=site, serial_number="SPARE-123456")
        response = client_logged_in.get(
            reverse("assets:available_stock"),
            {"site_id": site.pk, "asset_type": "Camera"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        assert body["assets"][0]["serial_number"] == "****3456"

    def test_available_stock_unmasked_for_supervisor(
        self, supervisor_client, site
    ):
        SpareFactory(site=site, serial_number="SPARE-123456")
        response = supervisor_client.get(
            reverse("assets:available_stock"), {"site_id": site.pk}
        )
        assert response.json()["assets"][0]["serial_number"] == (
            "SPARE-123456"
        )

    def test_list_paginates(self, supervisor_client, ticket, other_site, user):
        from assets.services.requisitions import create_requisition

        SpareFactory.create_batch(3, site=other_site, asset_type="Camera")
        for _ in range(3):
            create_requisition(ticket.pk, user, other_site.pk, "Camera")
        response = supervisor_client.get(
            reverse("assets:requisition_list"),
            {"ticket_id": ticket.pk, "page_size": "bogus"},
        )
        assert response.status_code == 200
        body = response.json()
        assert len(body["requisitions"]) == 3
        assert body["pagination"] == {
            "page": 1,
            "page_size": 20,
            "total": 3,
            "pages": 1,
        }

    def test_list_is_scoped_for_engineers(
        self, client, password, ticket, other_site, supervisor
    ):
        from assets.factories import UserFactory
        from assets.services.requisitions import create_requisition

        SpareFactory(site=other_site, asset_type="Camera")
        create_requisition(ticket.pk, supervisor, other_site.pk, "Camera")
        outsider = UserFactory(password=password)
        client.login(username=outsider.username, password=password)
        response = client.get(reverse("assets:requisition_list"))
        assert response.status_code == 200
        assert response.json()["requisitions"] == []


# ============================================================
# TRANSFER ENDPOINTS
# ============================================================


class TestTransferEndpoints:
    def test_full_cycle(self, supervisor_client, site, other_site):
        spares = SpareFactory.create_batch(2, site=site)
        response = post_json(
            supervisor_client,
            reverse("assets:transfer_initiate"),
            {
                "source_site_id": site.pk,
                "destination_site_id": other_site.pk,
                "asset_ids": [s.pk for s in spares],
            },
        )
        assert response.status_code == 201
        transfer_id = response.json()["transfer"]["id"]

        for action in ("transfer_approve", "transfer_dispatch"):
            url = reverse(f"assets:{action}", args=[transfer_id])
            response = post_json(supervisor_client, url)
            assert response.status_code == 200

        response = post_json(
            supervisor_client,
            reverse("assets:transfer_receive", args=[transfer_id]),
        )
        assert response.json()["transfer"]["status"] == "Completed"
        assert (
            Asset.objects.filter(site=other_site, status="Spare").count() == 2
        )

        response = post_json(
            supervisor_client,
            reverse("assets:transfer_receive", args=[transfer_id]),
        )
        assert response.status_code == 409

    def test_approve_needs_elevated_role(
        self, client_logged_in, site, other_site, supervisor
    ):
        t = StockTransfer.objects.create(
            source_site=site,
            destination_site=other_site,
            initiated_by=supervisor,
        )
        response = post_json(
            client_logged_in, reverse("assets:transfer_approve", args=[t.pk])
        )
        assert response.status_code == 403

    def test_asset_ids_must_be_list(self, supervisor_client, site, other_site):
        response = post_json(
            supervisor_client,
            reverse("assets:transfer_initiate"),
            {
                "source_site_id": site.pk,
                "destination_site_id": other_site.pk,
                "asset_ids": "1,2",
            },
        )
        assert response.status_code == 400

    def test_list(self, supervisor_client, site, other_site, supervisor):
        from assets.services.transfers import initiate_transfer

        spare = SpareFactory(site=site)
        transfer = initiate_transfer(
            site.pk, other_site.pk, [spare.pk], supervisor
        )
        response = supervisor_client.get(
            reverse("assets:transfer_list"), {"site_id": other_site.pk}
        )
        assert response.status_code == 200
        body = response.json()
        assert [t["id"] for t in body["transfers"]] == [transfer.pk]
        assert body["transfers"][0]["asset_ids"] == [spare.pk]
        assert body["pagination"]["total"] == 1

    def test_list_rejects_post(self, supervisor_client):
        response = post_json(
            supervisor_client, reverse("assets:transfer_list")
        )
        assert response.status_code == 405


# ============================================================
# STOCK ENDPOINTS
# ============================================================


class TestStockEndpoints:
    def test_add(self, supervisor_client, site):
        response = post_json(
            supervisor_client,
            reverse("assets:stock_add"),
            {"site_id": site.pk, "asset_type": "NVR", "serial_number": "N-1"},
        )
        assert response.status_code == 201
        assert response.json()["asset"]["status"] == "Spare"

    def test_import(self, supervisor_client, site):
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.append(["Asset Type", "Site Name", "Serial Number"])
        ws.append(["Camera", "Central Station", "IMP-1"])
        ws.append(["Camera", "Atlantis", "IMP-2"])
        buf = io.BytesIO()
        wb.save(buf)
        upload = SimpleUploadedFile(
            "stock.xlsx",
            buf.getvalue(),
            content_type=(
                "application/vnd.openxmlformats-officedocument"
                ".spreadsheetml.sheet"
            ),
        )
        response = supervisor_client.post(
            reverse("assets:stock_import"), {"file": upload}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["success_count"] == 1
        assert body["fail_count"] == 1
        assert body["errors"][0]["row"] == 3

    def test_import_csv_is_rejected(self, supervisor_client, site):
        upload = SimpleUploadedFile(
            "stock.csv",
            b"Asset Type,Site Name,Serial Number\nCamera,Central Station,X\n",
            content_type="text/csv",
        )
        response = supervisor_client.post(
            reverse("assets:stock_import"), {"file": upload}
        )
        assert response.status_code == 400
        assert "Upload a valid .xlsx file." in response.json()["message"]
        assert not Asset.objects.filter(serial_number="X").exists()

    def test_import_without_file(self, supervisor_client):
        response = supervisor_client.post(reverse("assets:stock_import"))
        assert response.status_code == 400

    def test_replace(self, client_logged_in, ticket, asset, spare):
        response = post_json(
            client_logged_in,
            reverse("assets:stock_replace"),
            {
                "ticket_id": ticket.pk,
                "asset_id": asset.pk,
                "spare_asset_id": spare.pk,
            },
        )
        assert response.status_code == 200
        assert response.json()["asset"]["asset_code"] == "A001"

    def test_ticket_spares(self, client_logged_in, ticket, spare):
        response = client_logged_in.get(
            reverse("assets:ticket_spares", args=[ticket.pk])
        )
        assert [a["asset_code"] for a in response.json()["assets"]] == [
            "A050"
        ]

    def test_asset_movements(self, client_logged_in, spare, user):
        from assets.services.state import claim_spare

        claim_spare(spare, "Operational", user)
        response = client_logged_in.get(
            reverse("assets:asset_movements", args=[spare.pk])
        )
        assert response.status_code == 200
        movements = response.json()["movements"]
        assert len(movements) == 1
        assert movements[0]["to_status"] == "Operational"

    def test_asset_replacements(self, client_logged_in, ticket, asset, spare):
        from assets.services.replacement import perform_stock_replacement

        perform_stock_replacement(
            ticket.pk, asset.pk, spare.pk, ticket.created_by, remarks="Swap"
        )
        response = client_logged_in.get(
            reverse("assets:asset_replacements", args=[asset.pk])
        )
        assert response.status_code == 200
        body = response.json()
        assert body["asset_code"] == "A001"
        [item] = body["replacements"]
        assert item["type"] == "Stock"
        assert item["remarks"] == "Swap"
        assert item["old_details"]["serial_number"] == "SN-OLD-001"

    def test_asset_replacements_unknown_asset(self, client_logged_in):
        response = client_logged_in.get(
            reverse("assets:asset_replacements", args=[99999])
        )
        assert response.status_code == 404


@pytest.mark.django_db
class TestHealthCheck:
    def test_ok(self, client):
        response = client.get(reverse("health_check"))
        assert response.status_code == 200
