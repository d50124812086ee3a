"""
DTE-CL Bridge: Router de Emisión DTE
=====================================
Endpoints REST para emisión directa, validación (sin emisión)
y webhooks de Shopify (orders/paid, refunds/create).
"""
from fastapi import APIRouter, Body, Depends

from app.dependencies import get_dte_service, verify_shopify_webhook
from app.schemas.models import EmitRequest, SuccessResponse
from app.services.dte_service import DTEService

router = APIRouter(prefix="/api", tags=["DTE"])


@router.post(
    "/emit-dte",
    response_model=SuccessResponse,
    response_model_exclude_none=True,
    summary="Emitir boleta o factura desde el formulario de la tienda",
)
async def emit_dte(
    request: EmitRequest,
    service: DTEService = Depends(get_dte_service),
):
    return await service.emit_direct(request)


@router.post("/validate", summary="Validar y generar el payload sin emitir")
async def validate_dte(
    request: EmitRequest,
    service: DTEService = Depends(get_dte_service),
):
    return service.validate_direct(request)


@router.post(
    "/webhooks/orders-paid",
    response_model=SuccessResponse,
    response_model_exclude_none=True,
    summary="Webhook Shopify orders/paid",
    dependencies=[Depends(verify_shopify_webhook)],
)
async def orders_paid(
    order: dict = Body(...),
    service: DTEService = Depends(get_dte_service),
):
    return await service.process_paid_order(order)


@router.post(
    "/webhooks/refunds",
    response_model=SuccessResponse,
    response_model_exclude_none=True,
    summary="Webhook Shopify refunds/create",
    dependencies=[Depends(verify_shopify_webhook)],
)
async def refunds(
    refund: dict = Body(...),
    service: DTEService = Depends(get_dte_service),
):
    return await service.process_refund(refund)
