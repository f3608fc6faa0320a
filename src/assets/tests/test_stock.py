"""Tests for spare stock intake, bulk import and availability."""

import io

import openpyxl
import pytest

from django.core.exceptions import PermissionDenied, ValidationError

from assets.factories import SpareFactory
from assets.models import Asset, StockMovementLog
from assets.services.permissions import MANAGE_SITE_STOCK


def _workbook(rows):
    wb = openpyxl.Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return buf


class TestAvailability:
    def test_counts_active_spares_of_type(self, site, other_site):
        from assets.services.stock import available_stock

        SpareFactory.create_batch(2, site=site, asset_type="Camera")
        SpareFactory(site=site, asset_type="NVR")
        SpareFactory(site=site, asset_type="Camera", is_active=False)
        SpareFactory(site=site, asset_type="Camera", status="Reserved")
        SpareFactory(site=other_site, asset_type="Camera")
        assert available_stock(site, "Camera") == 2
        assert available_stock(site, "Switch") == 0

    def test_available_spares_filter(self, site):
        from assets.services.stock import available_spares

        cam = SpareFactory(site=site, asset_type="Camera")
        nvr = SpareFactory(site=site, asset_type="NVR")
        assert set(available_spares(site)) == {cam, nvr}
        assert list(available_spares(site, "NVR")) == [nvr]


class TestAddStock:
    def test_add_as_supervisor(self, site, supervisor):
        from assets.services.stock import add_stock

        a = add_stock(
            site,
            "Camera",
            supervisor,
            serial_number=" SN-9001 ",
            make="Axis",
            stock_location="Rack 2",
        )
        assert a.status == "Spare"
        assert a.asset_code.startswith("SPR-")
        assert a.serial_number == "SN-9001"
        assert a.created_by == supervisor

        entry = StockMovementLog.objects.get(asset=a)
        assert entry.movement_type == "Added"
        assert entry.to_site == site
        assert entry.to_status == "Spare"

    def test_needs_manage_right(self, site, user):
        from assets.services.stock import add_stock

        with pytest.raises(PermissionDenied):
            add_stock(site, "Camera", user)
        assert not Asset.objects.exists()

    def test_site_right_grants_access(self, site, user, grant):
        from assets.services.stock import add_stock

        grant(user, site, MANAGE_SITE_STOCK)
        assert add_stock(site, "Camera", user).status == "Spare"

    def test_global_right_grants_access(self, site, user):
        from assets.services.stock import add_stock

        user.global_rights = [MANAGE_SITE_STOCK]
        user.save()
        assert add_stock(site, "Switch", user).asset_type == "Switch"

    def test_duplicate_serial(self, site, supervisor, asset):
        from assets.services.stock import add_stock

        with pytest.raises(ValidationError, match="already exists"):
            add_stock(
                site, "Camera", supervisor, serial_number="sn-old-001"
            )

    def test_placeholder_serials_allowed_twice(self, site, supervisor):
        from assets.services.stock import add_stock

        first = add_stock(site, "Camera", supervisor, serial_number="NA")
        second = add_stock(site, "Camera", supervisor, serial_number="n/a")
        assert first.serial_number == second.serial_number == ""

    def test_invalid_type(self, site, supervisor):
        from assets.services.stock import add_stock

        with pytest.raises(ValidationError, match="not a valid asset type"):
            add_stock(site, "Toaster", supervisor)

    def test_invalid_criticality(self, site, supervisor):
        from assets.services.stock import add_stock

        with pytest.raises(ValidationError):
            add_stock(site, "Camera", supervisor, criticality=9)


class TestBulkAddStock:
    def test_mixed_rows(self, site, supervisor, asset):
        from assets.services.stock import bulk_add_stock

        rows = [
            {"asset_type": "Camera", "site_name": "central station",
             "serial_number": "B-1"},
            {"asset_type": "Camera", "site_name": "Nowhere",
             "serial_number": "B-2"},
            {"asset_type": "Camera", "site_name": "Central Station",
             "serial_number": "b-1"},
            {"asset_type": "Camera", "site_name": "Central Station",
             "quantity": "NA"},
            {"asset_type": "", "site_name": "Central Station"},
            {"asset_type": "NVR", "site_name": "Central Station",
             "serial_number": "SN-OLD-001"},
        ]
        results = bulk_add_stock(rows, supervisor)
        assert results["success_count"] == 1
        assert results["skipped_count"] == 1
        assert results["fail_count"] == 4
        failed_rows = [e["row"] for e in results["errors"]]
        assert failed_rows == [3, 4, 6, 7]
        assert "not found" in results["errors"][0]["message"]
        assert "Duplicate serial" in results["errors"][1]["message"]
        assert "Mandatory fields" in results["errors"][2]["message"]
        assert "already exists" in results["errors"][3]["message"]

    def test_permission_checked_per_row(self, site, other_site, user, grant):
        from assets.services.stock import bulk_add_stock

        grant(user, site, MANAGE_SITE_STOCK)
        results = bulk_add_stock(
            [
                {"asset_type": "Camera", "site_name": "Central Station"},
                {"asset_type": "Camera", "site_name": "North Depot"},
            ],
            user,
        )
        assert results["success_count"] == 1
        assert results["fail_count"] == 1
        assert "No permission" in results["errors"][0]["message"]


class TestReadStockRows:
    def test_headers_normalised(self, db):
        from assets.services.stock import read_stock_rows

        buf = _workbook(
            [
                ["Asset Type", "Site Name", "Serial No.", "MAC", "Colour"],
                ["Camera", "Central Station", "XS-1", "AA:01", "Red"],
                [None, None, None, None, None],
                ["Switch", "North Depot", 12345, None, "Blue"],
            ]
        )
        rows = read_stock_rows(buf)
        assert rows == [
            {
                "asset_type": "Camera",
                "site_name": "Central Station",
                "serial_number": "XS-1",
                "mac_address": "AA:01",
            },
            {
                "asset_type": "Switch",
                "site_name": "North Depot",
                "serial_number": "12345",
                "mac_address": "",
            },
        ]

    def test_empty_sheet(self, db):
        from assets.services.stock import read_stock_rows

        assert read_stock_rows(_workbook([])) == []

    def test_not_a_workbook(self, db):
        from assets.services.stock import read_stock_rows

        csv = io.BytesIO(b"Asset Type,Site Name\nCamera,Central Station\n")
        with pytest.raises(ValidationError, match="valid .xlsx"):
            read_stock_rows(csv)

    def test_round_trip_into_bulk_add(self, site, supervisor):
        from assets.services.stock import bulk_add_stock, read_stock_rows

        buf = _workbook(
            [
                ["Type", "Site", "Serial Number", "Stock Location"],
                ["Router", "Central Station", "RT-1", "Cage A"],
            ]
        )
        results = bulk_add_stock(read_stock_rows(buf), supervisor)
        assert results["success_count"] == 1
        router = Asset.objects.get(serial_number="RT-1")
        assert router.stock_location == "Cage A"
        assert router.status == "Spare"
