"""Helpers shared by the JSON workflow endpoints.

Every response carries ``success`` and ``message``. Workflow errors map to
status codes here; anything unexpected is logged and reported as a
generic 500 so no internals reach the client.
"""

import functools
import json
import logging

from django.core.exceptions import (
    ObjectDoesNotExist,
    PermissionDenied,
    ValidationError,
)
from django.core.paginator import Paginator
from django.http import JsonResponse

from .exceptions import ConflictError
from .services.permissions import can_view_network_identity, mask_value

logger = logging.getLogger(__name__)


def ok(message="", status=200, **data):
    return JsonResponse(
        {"success": True, "message": message, **data}, status=status
    )


def fail(message, status):
    return JsonResponse({"success": False, "message": message}, status=status)


def _validation_message(error: ValidationError) -> str:
    return " ".join(error.messages)


def json_endpoint(methods=("POST",)):
    """Wrap a view: require login and method, map errors to responses."""

    def decorator(view):
        @functools.wraps(view)
        def wrapper(request, *args, **kwargs):
            if not request.user.is_authenticated:
                return fail("Authentication required.", 401)
            if request.method not in methods:
                return fail("Method not allowed.", 405)
            try:
                return view(request, *args, **kwargs)
            except ValidationError as e:
                return fail(_validation_message(e), 400)
            except PermissionDenied as e:
                return fail(str(e) or "Permission denied.", 403)
            except ObjectDoesNotExist as e:
                return fail(str(e) or "Not found.", 404)
            except ConflictError as e:
                return fail(e.message, 409)
            except Exception:
                logger.exception(
                    "Unhandled error in %s", getattr(view, "__name__", view)
                )
                return fail("An unexpected error occurred.", 500)

        return wrapper

    return decorator


def parse_body(request) -> dict:
    """Decode a JSON request body, or fall back to form data."""
    if request.content_type == "application/json":
        try:
            data = json.loads(request.body or b"{}")
        except (ValueError, UnicodeDecodeError):
            raise ValidationError("Request body is not valid JSON.")
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object.")
        return data
    return request.POST.dict()


def require(data: dict, *fields):
    missing = [f for f in fields if data.get(f) in (None, "")]
    if missing:
        raise ValidationError(
            f"Missing required field(s): {', '.join(missing)}."
        )


PAGE_SIZES = (20, 50, 100)


def paginate(request, queryset):
    """Slice a queryset by the ``page``/``page_size`` query parameters.

    Returns the page object and the metadata block for the response.
    """
    try:
        page_size = int(request.GET.get("page_size", PAGE_SIZES[0]))
    except (ValueError, TypeError):
        page_size = PAGE_SIZES[0]
    if page_size not in PAGE_SIZES:
        page_size = PAGE_SIZES[0]
    paginator = Paginator(queryset, page_size)
    page_obj = paginator.get_page(request.GET.get("page", 1))
    return page_obj, {
        "page": page_obj.number,
        "page_size": page_size,
        "total": paginator.count,
        "pages": paginator.num_pages,
    }


def asset_to_dict(asset, user) -> dict:
    data = {
        "id": asset.pk,
        "asset_code": asset.asset_code,
        "asset_type": asset.asset_type,
        "make": asset.make,
        "model": asset.model,
        "serial_number": asset.serial_number,
        "mac_address": asset.mac_address,
        "ip_address": asset.ip_address,
        "site_id": asset.site_id,
        "status": asset.status,
        "criticality": asset.criticality,
        "is_active": asset.is_active,
    }
    if not can_view_network_identity(user):
        for field in ("serial_number", "mac_address", "ip_address"):
            data[field] = mask_value(data[field])
    return data


def rma_to_dict(rma) -> dict:
    return {
        "id": rma.pk,
        "rma_number": rma.rma_number,
        "ticket_id": rma.ticket_id,
        "site_id": rma.site_id,
        "original_asset_id": rma.original_asset_id,
        "reserved_asset_id": rma.reserved_asset_id,
        "status": rma.status,
        "approved_by": rma.approved_by_id,
        "request_reason": rma.request_reason,
        "created_at": rma.created_at.isoformat(),
        "timeline": [
            {
                "status": entry.status,
                "changed_by": entry.changed_by_id,
                "changed_at": entry.changed_at.isoformat(),
                "remarks": entry.remarks,
            }
            for entry in rma.timeline.all()
        ],
    }


def requisition_to_dict(requisition) -> dict:
    return {
        "id": requisition.pk,
        "requisition_number": requisition.requisition_number,
        "ticket_id": requisition.ticket_id,
        "site_id": requisition.site_id,
        "source_site_id": requisition.source_site_id,
        "asset_type": requisition.asset_type,
        "quantity": requisition.quantity,
        "status": requisition.status,
        "fulfilled_asset_id": requisition.fulfilled_asset_id,
        "created_at": requisition.created_at.isoformat(),
    }


def transfer_to_dict(transfer) -> dict:
    return {
        "id": transfer.pk,
        "transfer_name": transfer.transfer_name,
        "source_site_id": transfer.source_site_id,
        "destination_site_id": transfer.destination_site_id,
        "asset_ids": sorted(a.pk for a in transfer.assets.all()),
        "status": transfer.status,
        "shipping_details": transfer.shipping_details,
    }
