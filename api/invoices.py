"""/api/invoices routes."""

from uuid import UUID

from fastapi import APIRouter, Query, Request
from fastapi.responses import Response

from api.base import success_response, request_id_of
from core.exceptions import ValidationError
from core.models import InvoiceCreate, InvoiceFilter, InvoiceStatus, InvoiceUpdate


def parse_status_filter(status: str | None) -> InvoiceStatus | None:
    """Query value to status filter. Missing, empty and "all" mean no filter."""
    if not status or status == "all":
        return None
    try:
        return InvoiceStatus(status)
    except ValueError:
        valid = ", ".join(s.value for s in InvoiceStatus)
        raise ValidationError(f"Invalid status '{status}'. Valid: all, {valid}")


def create_invoices_router(invoice_service, default_page_size: int = 10) -> APIRouter:
    router = APIRouter(prefix="/api/invoices", tags=["invoices"])

    def respond(request: Request, data):
        return success_response(data, request_id_of(request)).model_dump(mode="json")

    @router.get("")
    async def list_invoices(
        request: Request,
        status: str | None = Query(None),
        search: str | None = Query(None, max_length=200),
        page: int = Query(1, ge=1),
        limit: int = Query(default_page_size, ge=1, le=100),
    ):
        result = invoice_service.list_invoices(InvoiceFilter(
            status=parse_status_filter(status),
            search=search or None,
            page=page,
            limit=limit,
        ))
        return respond(request, result.model_dump(mode="json"))

    @router.post("", status_code=201)
    async def create_invoice(request: Request, body: InvoiceCreate):
        invoice = invoice_service.create(body)
        return respond(request, invoice.model_dump(mode="json"))

    @router.get("/{invoice_id}")
    async def get_invoice(request: Request, invoice_id: UUID):
        invoice = invoice_service.get_by_id(invoice_id)
        return respond(request, invoice.model_dump(mode="json"))

    @router.put("/{invoice_id}")
    async def update_invoice(request: Request, invoice_id: UUID, body: InvoiceUpdate):
        invoice = invoice_service.update(invoice_id, body)
        return respond(request, invoice.model_dump(mode="json"))

    @router.delete("/{invoice_id}")
    async def delete_invoice(request: Request, invoice_id: UUID):
        invoice_service.delete(invoice_id)
        return respond(request, {"deleted": True, "id": str(invoice_id)})

    @router.get("/{invoice_id}/pdf")
    async def invoice_pdf(invoice_id: UUID):
        filename, content = invoice_service.render_pdf(invoice_id)
        return Response(
            content=content,
            media_type="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @router.post("/{invoice_id}/duplicate", status_code=201)
    async def duplicate_invoice(request: Request, invoice_id: UUID):
        invoice = invoice_service.duplicate(invoice_id)
        return respond(request, invoice.model_dump(mode="json"))

    @router.post("/{invoice_id}/send")
    async def send_invoice(request: Request, invoice_id: UUID):
        invoice = invoice_service.send(invoice_id)
        return respond(request, invoice.model_dump(mode="json"))

    return router
