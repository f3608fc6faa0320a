"""JSON endpoints for the inventory workflows."""

import logging

from django.core.exceptions import PermissionDenied, ValidationError

from tickets.services.lifecycle import get_ticket

from .api import (
    asset_to_dict,
    json_endpoint,
    ok,
    paginate,
    parse_body,
    require,
    requisition_to_dict,
    rma_to_dict,
    transfer_to_dict,
)
from .exceptions import NotFoundError
from .models import Site
from .services import rma as rma_service
from .services import requisitions, stock, transfers
from .services.ledger import asset_history
from .services.permissions import can_manage_site_stock
from .services.replacement import (
    asset_replacement_history,
    perform_stock_replacement,
)
from .services.state import get_asset

logger = logging.getLogger(__name__)


def _get_site(site_id):
    try:
        return Site.objects.get(pk=site_id, is_active=True)
    except (Site.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Site not found.")


# RMA


@json_endpoint()
def rma_create(request):
    data = parse_body(request)
    require(data, "ticket_id", "request_reason")
    rma = rma_service.create_rma(
        data["ticket_id"],
        request.user,
        data["request_reason"],
        shipping_details=data.get("shipping_details"),
        vendor_details=data.get("vendor_details"),
        reserved_asset_id=data.get("reserved_asset_id"),
    )
    return ok(
        f"RMA {rma.rma_number} created.", status=201, rma=rma_to_dict(rma)
    )


@json_endpoint()
def rma_update_status(request, pk):
    data = parse_body(request)
    require(data, "status")
    rma = rma_service.update_rma_status(
        pk,
        data["status"],
        request.user,
        remarks=data.get("remarks", ""),
        replacement_details=data.get("replacement_details"),
        shipping_details=data.get("shipping_details"),
        vendor_details=data.get("vendor_details"),
    )
    return ok(
        f"RMA {rma.rma_number} is now {rma.status}.", rma=rma_to_dict(rma)
    )


@json_endpoint(methods=("GET",))
def rma_detail(request, pk):
    return ok(rma=rma_to_dict(rma_service.get_rma(pk)))


@json_endpoint(methods=("GET",))
def rma_for_ticket(request, ticket_pk):
    """Latest RMA raised on a ticket."""
    rma = rma_service.get_latest_rma_for_ticket(ticket_pk)
    return ok(rma=rma_to_dict(rma))


@json_endpoint(methods=("GET",))
def rma_history(request, asset_pk):
    rmas = rma_service.rma_history_for_asset(asset_pk)
    return ok(rmas=[rma_to_dict(rma) for rma in rmas])


# Requisitions


@json_endpoint()
def requisition_create(request):
    data = parse_body(request)
    require(data, "ticket_id", "source_site_id", "asset_type")
    requisition = requisitions.create_requisition(
        data["ticket_id"],
        request.user,
        data["source_site_id"],
        data["asset_type"],
        quantity=data.get("quantity", 1),
        comments=data.get("comments", ""),
    )
    return ok(
        f"Requisition {requisition.requisition_number} created.",
        status=201,
        requisition=requisition_to_dict(requisition),
    )


@json_endpoint()
def requisition_approve(request, pk):
    data = parse_body(request)
    requisition = requisitions.approve_requisition(
        pk, request.user, remarks=data.get("remarks", "")
    )
    return ok(
        "Requisition approved.",
        requisition=requisition_to_dict(requisition),
    )


@json_endpoint()
def requisition_reject(request, pk):
    data = parse_body(request)
    require(data, "reason")
    requisition = requisitions.reject_requisition(
        pk, request.user, data["reason"]
    )
    return ok(
        "Requisition rejected.",
        requisition=requisition_to_dict(requisition),
    )


@json_endpoint()
def requisition_cancel(request, pk):
    data = parse_body(request)
    requisition = requisitions.cancel_requisition(
        pk, request.user, reason=data.get("reason", "")
    )
    return ok(
        "Requisition cancelled.",
        requisition=requisition_to_dict(requisition),
    )


@json_endpoint()
def requisition_fulfill(request, pk):
    data = parse_body(request)
    require(data, "asset_id")
    requisition = requisitions.fulfill_requisition(
        pk, data["asset_id"], request.user, remarks=data.get("remarks", "")
    )
    return ok(
        "Requisition fulfilled.",
        requisition=requisition_to_dict(requisition),
    )


@json_endpoint(methods=("GET",))
def requisition_list(request):
    qs = requisitions.list_requisitions(
        request.user,
        status=request.GET.get("status") or None,
        site_id=request.GET.get("site_id") or None,
        ticket_id=request.GET.get("ticket_id") or None,
    )
    page_obj, pagination = paginate(request, qs)
    return ok(
        requisitions=[requisition_to_dict(r) for r in page_obj],
        pagination=pagination,
    )


@json_endpoint(methods=("GET",))
def available_stock(request):
    """Spare units at a site, optionally of one type."""
    site = _get_site(request.GET.get("site_id"))
    asset_type = request.GET.get("asset_type") or None
    spares = stock.available_spares(site, asset_type)
    return ok(
        count=len(spares),
        assets=[asset_to_dict(a, request.user) for a in spares],
    )


# Transfers


@json_endpoint()
def transfer_initiate(request):
    data = parse_body(request)
    require(data, "source_site_id", "destination_site_id", "asset_ids")
    source = _get_site(data["source_site_id"])
    if not can_manage_site_stock(request.user, source):
        raise PermissionDenied(
            "You do not have permission to move stock from this site."
        )
    if not isinstance(data["asset_ids"], list):
        raise ValidationError("asset_ids must be a list.")
    transfer = transfers.initiate_transfer(
        source.pk,
        data["destination_site_id"],
        data["asset_ids"],
        request.user,
        notes=data.get("notes", ""),
        transfer_name=data.get("transfer_name", ""),
    )
    return ok(
        "Transfer initiated.",
        status=201,
        transfer=transfer_to_dict(transfer),
    )


def _transfer_for_site_action(request, pk, site_attr):
    transfer = transfers.get_transfer(pk)
    if not can_manage_site_stock(request.user, getattr(transfer, site_attr)):
        raise PermissionDenied(
            "You do not have permission to manage this transfer."
        )
    return transfer


@json_endpoint()
def transfer_approve(request, pk):
    if not request.user.is_elevated:
        raise PermissionDenied("Only supervisors can approve transfers.")
    transfer = transfers.approve_transfer(pk, request.user)
    return ok("Transfer approved.", transfer=transfer_to_dict(transfer))


@json_endpoint()
def transfer_dispatch(request, pk):
    data = parse_body(request)
    _transfer_for_site_action(request, pk, "source_site")
    transfer = transfers.dispatch_transfer(
        pk, request.user, shipping_details=data.get("shipping_details")
    )
    return ok("Transfer dispatched.", transfer=transfer_to_dict(transfer))


@json_endpoint()
def transfer_receive(request, pk):
    _transfer_for_site_action(request, pk, "destination_site")
    transfer = transfers.receive_transfer(pk, request.user)
    return ok("Transfer received.", transfer=transfer_to_dict(transfer))


@json_endpoint()
def transfer_cancel(request, pk):
    data = parse_body(request)
    _transfer_for_site_action(request, pk, "source_site")
    transfer = transfers.cancel_transfer(
        pk, request.user, reason=data.get("reason", "")
    )
    return ok("Transfer cancelled.", transfer=transfer_to_dict(transfer))


@json_endpoint(methods=("GET",))
def transfer_list(request):
    qs = transfers.list_transfers(
        request.user,
        status=request.GET.get("status") or None,
        site_id=request.GET.get("site_id") or None,
    )
    page_obj, pagination = paginate(request, qs)
    return ok(
        transfers=[transfer_to_dict(t) for t in page_obj],
        pagination=pagination,
    )


# Stock


@json_endpoint()
def stock_add(request):
    data = parse_body(request)
    require(data, "site_id", "asset_type")
    site = _get_site(data["site_id"])
    asset = stock.add_stock(
        site,
        data["asset_type"],
        request.user,
        **{k: data.get(k) for k in stock.INTAKE_FIELDS},
    )
    return ok(
        f"Spare {asset.asset_code} added.",
        status=201,
        asset=asset_to_dict(asset, request.user),
    )


@json_endpoint()
def stock_import(request):
    upload = request.FILES.get("file")
    if upload is None:
        raise ValidationError("Please upload a file.")
    rows = stock.read_stock_rows(upload)
    if not rows:
        raise ValidationError("The uploaded file is empty.")
    results = stock.bulk_add_stock(rows, request.user)
    logger.info(
        "Stock import %s by %s: %d imported, %d failed",
        upload.name,
        request.user,
        results["success_count"],
        results["fail_count"],
    )
    return ok(
        f"Processed {len(rows)} rows. {results['success_count']} imported, "
        f"{results['fail_count']} failed.",
        **results,
    )


@json_endpoint()
def stock_replace(request):
    data = parse_body(request)
    require(data, "ticket_id", "asset_id", "spare_asset_id")
    replacement = perform_stock_replacement(
        data["ticket_id"],
        data["asset_id"],
        data["spare_asset_id"],
        request.user,
        new_ip=data.get("new_ip", ""),
        remarks=data.get("remarks", ""),
    )
    return ok(
        "Asset replaced from stock.",
        replacement_id=replacement.pk,
        asset=asset_to_dict(replacement.asset, request.user),
    )


# Assets


@json_endpoint(methods=("GET",))
def asset_movements(request, pk):
    asset = get_asset(pk)
    entries = [
        {
            "movement_type": e.movement_type,
            "from_status": e.from_status,
            "to_status": e.to_status,
            "from_site_id": e.from_site_id,
            "to_site_id": e.to_site_id,
            "performed_by": e.performed_by_id,
            "notes": e.notes,
            "created_at": e.created_at.isoformat(),
        }
        for e in asset_history(asset)
    ]
    return ok(asset=asset_to_dict(asset, request.user), movements=entries)


@json_endpoint(methods=("GET",))
def asset_replacements(request, pk):
    """Stock swaps and installed RMAs for one asset."""
    asset = get_asset(pk)
    history = [
        {**item, "date": item["date"].isoformat()}
        for item in asset_replacement_history(asset)
    ]
    return ok(asset_code=asset.asset_code, replacements=history)


@json_endpoint(methods=("GET",))
def ticket_spares(request, ticket_pk):
    """Spares that could replace the asset on a ticket."""
    ticket = get_ticket(ticket_pk)
    if not ticket.asset_id:
        raise ValidationError("Ticket has no associated asset.")
    spares = stock.available_spares(ticket.site, ticket.asset.asset_type)
    return ok(assets=[asset_to_dict(a, request.user) for a in spares])
