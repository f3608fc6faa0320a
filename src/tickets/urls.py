"""URL configuration for tickets app."""

from django.urls import path

from . import views

app_name = "tickets"

urlpatterns = [
    path("", views.ticket_create, name="ticket_create"),
    path("<int:pk>/", views.ticket_detail, name="ticket_detail"),
    path(
        "<int:pk>/transition/",
        views.ticket_transition,
        name="ticket_transition",
    ),
    path(
        "<int:pk>/priority/",
        views.ticket_priority,
        name="ticket_priority",
    ),
]
