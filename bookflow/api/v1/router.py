"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from bookflow.api.v1 import flow, payments

api_router = APIRouter()

# Booking flow
api_router.include_router(flow.router, prefix="/flow", tags=["Flow"])

# Payment confirmation
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])
