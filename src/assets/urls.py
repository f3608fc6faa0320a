"""URL configuration for assets app."""

from django.urls import path

from . import views

app_name = "assets"

urlpatterns = [
    # RMA
    path("rma/", views.rma_create, name="rma_create"),
    path("rma/<int:pk>/", views.rma_detail, name="rma_detail"),
    path(
        "rma/ticket/<int:ticket_pk>/",
        views.rma_for_ticket,
        name="rma_for_ticket",
    ),
    path(
        "rma/asset/<int:asset_pk>/", views.rma_history, name="rma_history"
    ),
    path(
        "rma/<int:pk>/status/",
        views.rma_update_status,
        name="rma_update_status",
    ),
    # Requisitions
    path(
        "requisitions/",
        views.requisition_create,
        name="requisition_create",
    ),
    path(
        "requisitions/list/",
        views.requisition_list,
        name="requisition_list",
    ),
    path(
        "requisitions/<int:pk>/approve/",
        views.requisition_approve,
        name="requisition_approve",
    ),
    path(
        "requisitions/<int:pk>/reject/",
        views.requisition_reject,
        name="requisition_reject",
    ),
    path(
        "requisitions/<int:pk>/cancel/",
        views.requisition_cancel,
        name="requisition_cancel",
    ),
    path(
        "requisitions/<int:pk>/fulfill/",
        views.requisition_fulfill,
        name="requisition_fulfill",
    ),
    # Transfers
    path("transfers/", views.transfer_initiate, name="transfer_initiate"),
    path("transfers/list/", views.transfer_list, name="transfer_list"),
    path(
        "transfers/<int:pk>/approve/",
        views.transfer_approve,
        name="transfer_approve",
    ),
    path(
        "transfers/<int:pk>/dispatch/",
        views.transfer_dispatch,
        name="transfer_dispatch",
    ),
    path(
        "transfers/<int:pk>/receive/",
        views.transfer_receive,
        name="transfer_receive",
    ),
    path(
        "transfers/<int:pk>/cancel/",
        views.transfer_cancel,
        name="transfer_cancel",
    ),
    # Stock
    path("stock/", views.available_stock, name="available_stock"),
    path("stock/add/", views.stock_add, name="stock_add"),
    path("stock/import/", views.stock_import, name="stock_import"),
    path("stock/replace/", views.stock_replace, name="stock_replace"),
    path(
        "stock/ticket/<int:ticket_pk>/",
        views.ticket_spares,
        name="ticket_spares",
    ),
    # Assets
    path(
        "assets/<int:pk>/movements/",
        views.asset_movements,
        name="asset_movements",
    ),
    path(
        "assets/<int:pk>/replacements/",
        views.asset_replacements,
        name="asset_replacements",
    ),
]
