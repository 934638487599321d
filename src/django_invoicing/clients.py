"""Client directory used by the document services."""

import logging

from .exceptions import DocumentValidationError
from .models import Client

logger = logging.getLogger(__name__)


def create_inline_client(organization_id: str, data: dict) -> Client:
    """Create a client from the ``new_client`` block of a document form.

    ``data`` is the cleaned form data (type, name and optional contact
    fields). Must be called inside the document's transaction so the
    client is rolled back with it.
    """
    client = Client.objects.create(
        organization_id=organization_id,
        type=data.get("type") or Client.Type.INDIVIDUAL,
        name=data["name"],
        email=data.get("email") or "",
        phone=data.get("phone") or "",
        address=data.get("address") or "",
        city=data.get("city") or "",
        country=data.get("country") or "",
        tax_id=data.get("tax_id") or "",
    )
    logger.info("Created inline client %s for organization %s", client.pk, organization_id)
    return client


def resolve_client(organization_id: str, client_id=None, new_client: dict = None) -> Client:
    """Return the document's client, creating it inline when requested.

    An explicit ``client_id`` wins over ``new_client``.

    Raises:
        DocumentValidationError: ``client_id`` is not a client of this organization
    """
    if client_id:
        try:
            return Client.objects.get(pk=client_id, organization_id=organization_id)
        except Client.DoesNotExist:
            raise DocumentValidationError("Client not found", field="client_id")
    return create_inline_client(organization_id, new_client)
