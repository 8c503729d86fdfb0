"""/api/customers routes."""

from uuid import UUID

from fastapi import APIRouter, Query, Request

from api.base import success_response, request_id_of
from core.models import CustomerCreate, CustomerUpdate


def create_customers_router(customer_service) -> APIRouter:
    router = APIRouter(prefix="/api/customers", tags=["customers"])

    def respond(request: Request, data):
        return success_response(data, request_id_of(request)).model_dump(mode="json")

    @router.get("")
    async def list_customers(request: Request, search: str | None = Query(None, max_length=100)):
        customers = customer_service.list_all(search or None)
        return respond(request, [c.model_dump(mode="json") for c in customers])

    @router.post("", status_code=201)
    async def create_customer(request: Request, body: CustomerCreate):
        customer = customer_service.create(body)
        return respond(request, customer.model_dump(mode="json"))

    @router.get("/{customer_id}")
    async def get_customer(request: Request, customer_id: UUID):
        customer = customer_service.get_by_id(customer_id)
        return respond(request, customer.model_dump(mode="json"))

    @router.put("/{customer_id}")
    async def update_customer(request: Request, customer_id: UUID, body: CustomerUpdate):
        customer = customer_service.update(customer_id, body)
        return respond(request, customer.model_dump(mode="json"))

    @router.delete("/{customer_id}")
    async def delete_customer(request: Request, customer_id: UUID):
        customer_service.delete(customer_id)
        return respond(request, {"deleted": True, "id": str(customer_id)})

    return router
