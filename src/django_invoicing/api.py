"""Result-typed entry points for callers such as views or RPC handlers.

Each function wraps one service operation and returns an ``ActionResult``
instead of raising: business and validation errors become failed results
with the error's code, message and field. Database errors are logged and
reported as an opaque ``transaction_failure``. Anything else propagates.
"""

import functools
import logging
from dataclasses import dataclass
from typing import Any, Optional

from django.db import DatabaseError

from . import conversion, payments, services
from .exceptions import InvoicingError, TransactionFailureError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionResult:
    """Outcome of an operation: either ``data`` or an error description."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    code: Optional[str] = None
    field: Optional[str] = None
    retryable: bool = False

    @classmethod
    def ok(cls, data=None) -> "ActionResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, exc: InvoicingError) -> "ActionResult":
        return cls(
            success=False,
            error=str(exc),
            code=exc.code,
            field=exc.field,
            retryable=exc.retryable,
        )


def action(func):
    """Turn raised invoicing and database errors into failed results."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> ActionResult:
        try:
            return ActionResult.ok(func(*args, **kwargs))
        except InvoicingError as e:
            logger.info("%s failed: %s (%s)", func.__name__, e, e.code)
            return ActionResult.fail(e)
        except DatabaseError:
            logger.exception("%s failed with a database error", func.__name__)
            return ActionResult.fail(TransactionFailureError())

    return wrapper


@action
def create_document(organization_id: str, kind: str, data: dict):
    document = services.create_document(organization_id, kind, data)
    return {"id": str(document.pk), "number": document.number}


@action
def update_document(organization_id: str, kind: str, document_id, data: dict):
    document = services.update_document(organization_id, kind, document_id, data)
    return {"id": str(document.pk), "number": document.number}


@action
def delete_document(organization_id: str, kind: str, document_id):
    services.delete_document(organization_id, kind, document_id)


@action
def change_status(organization_id: str, kind: str, document_id, status: str):
    document = services.change_status(organization_id, kind, document_id, status)
    return {"status": str(document.status)}


@action
def apply_payment(organization_id: str, invoice_id, data: dict):
    outcome = payments.apply_payment(organization_id, invoice_id, data)
    return {
        "payment_id": str(outcome.payment.pk),
        "new_status": str(outcome.status),
        "paid_total": outcome.paid_total,
    }


@action
def remove_payment(organization_id: str, payment_id):
    payments.remove_payment(organization_id, payment_id)


@action
def convert_quote_to_invoice(organization_id: str, quote_id):
    invoice = conversion.convert_quote_to_invoice(organization_id, quote_id)
    return {"invoice_id": str(invoice.pk), "invoice_number": invoice.number}
