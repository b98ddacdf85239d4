"""Billing cycle endpoints used by the payment and connection forms."""

from datetime import date
from typing import Any

from fastapi import APIRouter, Body, Query, Request
from pydantic import BaseModel

from api.base import success_response
from core.exceptions import CycleNotFoundError
from core.models import CustomerRef, CustomerStatus


class CycleCreateRequest(BaseModel):
    customer_id: int | str
    start_date: date
    total_amount: int
    renewal: bool = False
    metadata: dict[str, Any] | None = None


class InstallmentRequest(BaseModel):
    amount_paid: int
    date_paid: date
    note: str = ""


class RenewalRequest(BaseModel):
    customer_id: int | str
    start_date: date
    package_price: int
    amount: int = 0
    note: str = ""


class SummaryRequest(BaseModel):
    customers: list[CustomerRef]
    today: date | None = None


def _customer_key(value: str) -> int | str:
    """Path/query customer ids are strings; numeric ids are stored as ints."""
    return int(value) if value.isdigit() else value


def create_cycles_router(services: dict) -> APIRouter:
    router = APIRouter()

    ledger = services["ledger"]
    renewal_svc = services["renewal"]
    summary_svc = services["summary"]
    audit = services["audit"]

    def _respond(request: Request, data):
        request_id = getattr(request.state, "request_id", None)
        return success_response(data, request_id).model_dump(mode="json")

    def _cycle_payload(cycle) -> dict:
        data = cycle.model_dump(mode="json")
        data["facts"] = ledger.get_cycle_facts(cycle).model_dump(mode="json")
        data["outstanding"] = cycle.outstanding
        return data

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @router.get("/cycles")
    async def list_cycles(request: Request, customer_id: str | None = Query(None)):
        if customer_id is None:
            cycles = ledger.list_cycles()
        else:
            cycles = ledger.get_cycles_for_customer(_customer_key(customer_id))
        return _respond(request, [_cycle_payload(c) for c in cycles])

    @router.get("/cycles/{cycle_id}")
    async def get_cycle(request: Request, cycle_id: int):
        cycle = ledger.get_cycle(cycle_id)
        if cycle is None:
            raise CycleNotFoundError(cycle_id)
        return _respond(request, _cycle_payload(cycle))

    @router.get("/cycles/{cycle_id}/history")
    async def cycle_history(request: Request, cycle_id: int):
        return _respond(request, audit.get_entity_history("billing_cycle", cycle_id))

    @router.get("/audit/recent")
    async def recent_activity(request: Request, limit: int = Query(100, ge=1, le=1000)):
        return _respond(request, audit.get_recent_activity(limit))

    @router.get("/customers/{customer_id}/active-cycle")
    async def active_cycle(
        request: Request,
        customer_id: str,
        status: CustomerStatus = Query(CustomerStatus.ACTIVE),
    ):
        cycle = ledger.get_active_cycle(_customer_key(customer_id))
        return _respond(request, {
            "cycle": _cycle_payload(cycle) if cycle else None,
            "facts": ledger.get_cycle_facts(cycle).model_dump(mode="json"),
            "display_status": ledger.compute_display_status(status, cycle).value,
        })

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    @router.post("/cycles")
    async def create_cycle(request: Request, body: CycleCreateRequest):
        open_cycle = ledger.renew_cycle if body.renewal else ledger.create_initial_cycle
        cycle = open_cycle(body.customer_id, body.start_date, body.total_amount, body.metadata)
        return _respond(request, _cycle_payload(cycle))

    @router.post("/cycles/{cycle_id}/installments")
    async def add_installment(request: Request, cycle_id: int, body: InstallmentRequest):
        cycle = ledger.add_installment(cycle_id, body.amount_paid, body.date_paid, body.note)
        return _respond(request, _cycle_payload(cycle))

    @router.patch("/cycles/{cycle_id}/metadata")
    async def patch_metadata(request: Request, cycle_id: int, fields: dict[str, Any] = Body(...)):
        cycle = ledger.patch_metadata(cycle_id, **fields)
        return _respond(request, _cycle_payload(cycle))

    @router.delete("/cycles/{cycle_id}")
    async def delete_cycle(request: Request, cycle_id: int):
        ledger.delete_cycle(cycle_id)
        return _respond(request, {"deleted": True})

    @router.delete("/customers/{customer_id}/cycles")
    async def purge_customer_cycles(request: Request, customer_id: str):
        removed = ledger.delete_cycles_for_customer(_customer_key(customer_id))
        return _respond(request, {"deleted": removed})

    @router.post("/renewals")
    async def renew(request: Request, body: RenewalRequest):
        cycle = renewal_svc.renew_and_pay(
            body.customer_id, body.start_date, body.package_price, body.amount, body.note
        )
        return _respond(request, _cycle_payload(cycle))

    @router.post("/summary")
    async def summary(request: Request, body: SummaryRequest):
        result = summary_svc.summarize(body.customers, body.today)
        return _respond(request, result.model_dump(mode="json"))

    return router
