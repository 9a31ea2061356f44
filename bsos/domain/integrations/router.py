"""Integrations router - FastAPI endpoints for platform integrations"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...database import get_db
from ...exceptions import UnsupportedPlatformError
from ...services.orchestrator import IntegrationOrchestrator, get_orchestrator
from ..reservations.schemas import PropertyResponse, ReservationResponse
from .schemas import IntegrationRequest, IntegrationResponse
from .service import IntegrationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/integrations", tags=["Integrations"])


def get_integration_service(
    db: Session = Depends(get_db),
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
) -> IntegrationService:
    """Dependency injection for IntegrationService"""
    return IntegrationService(db, orchestrator)


@router.post("")
async def integration_action(
    body: IntegrationRequest,
    service: IntegrationService = Depends(get_integration_service),
):
    """Run an integration action: configure, sync or test_connection"""
    try:
        if body.action == "configure":
            integration = service.configure(body)
            return {
                "success": True,
                "message": f"Integração {integration.name} configurada com sucesso",
                "integration": IntegrationResponse.model_validate(integration),
            }
        if body.action == "sync":
            return await service.sync()
        if body.action == "test_connection":
            return await service.test_connection(body.platform)
    except UnsupportedPlatformError as e:
        logger.warning(f"⚠️ {e}")
        raise HTTPException(status_code=400, detail="Plataforma não suportada") from e

    raise HTTPException(status_code=400, detail="Ação não reconhecida")


@router.get("")
async def integration_query(
    action: str = "status",
    service: IntegrationService = Depends(get_integration_service),
):
    """Read integration status, synced properties or synced reservations"""
    if action == "status":
        status = service.status()
        status["integrations"] = [IntegrationResponse.model_validate(i) for i in status["integrations"]]
        return status
    if action == "properties":
        return {"properties": [PropertyResponse.model_validate(p) for p in service.properties()]}
    if action == "reservations":
        return {"reservations": [ReservationResponse.model_validate(r) for r in service.reservations()]}

    raise HTTPException(status_code=400, detail="Ação não reconhecida")
