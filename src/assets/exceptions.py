"""Workflow errors raised by the inventory services.

Input problems use Django's ``ValidationError`` and authorisation problems
use ``PermissionDenied``; the two classes here cover the remaining cases.
"""

from django.core.exceptions import ObjectDoesNotExist


class NotFoundError(ObjectDoesNotExist):
    """A referenced ticket, asset, site or workflow record is absent."""

    def __init__(self, message="Not found."):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return self.message


class ConflictError(Exception):
    """The current state forbids the operation.

    Raised when an asset is not in the status a claim expects, when a
    workflow record has already moved past the requested step, or when a
    second active RMA would be opened for a ticket.
    """

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return self.message
