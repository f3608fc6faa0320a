"""Spare stock intake and availability."""

import logging
import re
from zipfile import BadZipFile

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from django.contrib.auth import get_user_model
from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction as db_transaction

from ..models import Asset, Site
from .ledger import log_movement
from .permissions import can_manage_site_stock

User = get_user_model()

logger = logging.getLogger(__name__)

# Serial placeholders that mean "no serial"
BLANK_SERIALS = ("", "NA", "N/A")

# Normalised spreadsheet header -> Asset field
HEADER_ALIASES = {
    "assettype": "asset_type",
    "type": "asset_type",
    "sitename": "site_name",
    "site": "site_name",
    "serialnumber": "serial_number",
    "serial": "serial_number",
    "serialno": "serial_number",
    "macaddress": "mac_address",
    "mac": "mac_address",
    "ipaddress": "ip_address",
    "ip": "ip_address",
    "make": "make",
    "model": "model",
    "devicetype": "device_type",
    "stocklocation": "stock_location",
    "quantity": "quantity",
    "qty": "quantity",
    "remark": "remark",
    "remarks": "remark",
}

INTAKE_FIELDS = (
    "device_type",
    "make",
    "model",
    "serial_number",
    "mac_address",
    "ip_address",
    "stock_location",
    "remark",
)


def available_stock(site: Site, asset_type: str) -> int:
    """Number of active Spare units of a type at a site."""
    return Asset.objects.filter(
        site=site, asset_type=asset_type, status="Spare", is_active=True
    ).count()


def available_spares(site: Site, asset_type: str | None = None):
    qs = Asset.objects.filter(site=site, status="Spare", is_active=True)
    if asset_type:
        qs = qs.filter(asset_type=asset_type)
    return qs.order_by("created_at")


def normalize_serial(value) -> str:
    serial = str(value or "").strip()
    if serial.upper() in BLANK_SERIALS:
        return ""
    return serial


def serial_in_use(serial: str) -> bool:
    return bool(serial) and Asset.objects.filter(
        serial_number__iexact=serial
    ).exists()


def add_stock(
    site: Site,
    asset_type: str,
    actor: User,
    *,
    check_permission: bool = True,
    **fields,
) -> Asset:
    """Register a new Spare unit at ``site`` with a generated code."""
    if check_permission and not can_manage_site_stock(actor, site):
        raise PermissionDenied(
            f"You do not have permission to manage stock at {site.name}."
        )
    if asset_type not in dict(Asset.TYPE_CHOICES):
        raise ValidationError(f"'{asset_type}' is not a valid asset type.")

    values = {
        k: str(fields[k]).strip()
        for k in INTAKE_FIELDS
        if fields.get(k) is not None
    }
    values["serial_number"] = normalize_serial(values.get("serial_number"))
    if serial_in_use(values["serial_number"]):
        raise ValidationError(
            f"Serial number '{values['serial_number']}' already exists."
        )

    with db_transaction.atomic():
        asset = Asset(
            asset_type=asset_type,
            site=site,
            status="Spare",
            criticality=fields.get("criticality") or 2,
            created_by=actor,
            **values,
        )
        asset.full_clean(exclude=["asset_code"])
        asset.save()
        log_movement(
            asset,
            "Added",
            actor,
            to_site=site,
            to_status="Spare",
            notes="Added to site stock",
        )

    logger.info("Spare %s added at %s", asset.asset_code, site.name)
    return asset


def normalize_header(value) -> str:
    """Lowercase and strip everything but letters and digits."""
    return re.sub(r"[^a-z0-9]", "", str(value or "").lower())


def read_stock_rows(file) -> list[dict]:
    """Read the first worksheet of an .xlsx upload into row dicts.

    Header cells are normalised and mapped onto asset field names;
    unknown columns are dropped and blank rows skipped.
    """
    try:
        wb = openpyxl.load_workbook(file, read_only=True, data_only=True)
    except (BadZipFile, InvalidFileException, KeyError):
        raise ValidationError("Upload a valid .xlsx file.")
    try:
        ws = wb.worksheets[0]
        rows = ws.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return []
        keys = [HEADER_ALIASES.get(normalize_header(h)) for h in header]
        records = []
        for values in rows:
            record = {
                key: ("" if value is None else str(value).strip())
                for key, value in zip(keys, values)
                if key
            }
            if any(record.values()):
                records.append(record)
        return records
    finally:
        wb.close()


def bulk_add_stock(rows, actor: User) -> dict:
    """Import spare rows, each validated and saved on its own.

    A row failing validation is reported and does not stop the rest.
    Serial numbers must be unique against the database and against
    earlier rows of the same batch.
    """
    sites = {
        s.name.lower(): s for s in Site.objects.filter(is_active=True)
    }
    results = {
        "success_count": 0,
        "fail_count": 0,
        "skipped_count": 0,
        "errors": [],
    }
    seen_serials = set()

    for index, row in enumerate(rows):
        row_number = index + 2  # 1-based plus the header row
        if str(row.get("quantity", "")).strip().upper() == "NA":
            results["skipped_count"] += 1
            continue
        try:
            asset_type = str(row.get("asset_type") or "").strip()
            site_name = str(row.get("site_name") or "").strip()
            if not asset_type or not site_name:
                raise ValidationError(
                    "Mandatory fields missing (Asset Type or Site Name)."
                )
            site = sites.get(site_name.lower())
            if site is None:
                raise ValidationError(
                    f'Site "{site_name}" not found or inactive.'
                )
            if not can_manage_site_stock(actor, site):
                raise PermissionDenied(
                    f"No permission to manage stock at {site.name}."
                )
            serial = normalize_serial(row.get("serial_number"))
            if serial and serial.lower() in seen_serials:
                raise ValidationError(
                    f'Duplicate serial number "{serial}" found in file.'
                )
            fields = {k: row.get(k) for k in INTAKE_FIELDS}
            fields["serial_number"] = serial
            add_stock(
                site,
                asset_type,
                actor,
                check_permission=False,
                **fields,
            )
            if serial:
                seen_serials.add(serial.lower())
            results["success_count"] += 1
        except (ValidationError, PermissionDenied) as e:
            if isinstance(e, ValidationError):
                message = "; ".join(e.messages)
            else:
                message = str(e)
            results["fail_count"] += 1
            results["errors"].append({"row": row_number, "message": message})

    logger.info(
        "Stock import: %d added, %d failed, %d skipped",
        results["success_count"],
        results["fail_count"],
        results["skipped_count"],
    )
    return results
