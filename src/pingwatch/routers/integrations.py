from fastapi import APIRouter, Depends, HTTPException, status

from pingwatch.dependencies import get_integration_store, get_repository
from pingwatch.models.integration import Integration
from pingwatch.repository import CheckRepository, IntegrationStore
from pingwatch.schemas import IntegrationCreate, IntegrationResponse, IntegrationUpdate

router = APIRouter(prefix="/api/checks/{check_id}/integrations", tags=["integrations"])


async def _get_integration_or_404(
    integrations: IntegrationStore, check_id: str, integration_id: str
) -> Integration:
    integration = await integrations.get(integration_id)
    if not integration or integration.check_id != check_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Integration not found",
        )
    return integration


@router.get("", response_model=list[IntegrationResponse])
async def list_integrations(
    check_id: str,
    integrations: IntegrationStore = Depends(get_integration_store),
):
    items = await integrations.list_for_check(check_id)
    return [IntegrationResponse.model_validate(i) for i in items]


@router.post("", response_model=IntegrationResponse, status_code=201)
async def create_integration(
    check_id: str,
    body: IntegrationCreate,
    repository: CheckRepository = Depends(get_repository),
    integrations: IntegrationStore = Depends(get_integration_store),
):
    if not await repository.get(check_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Check not found",
        )

    integration = await integrations.create(
        check_id=check_id,
        type=body.type,
        name=body.name,
        config=body.config.model_dump(exclude_none=True),
        notify_on=body.notify_on,
        enabled=body.enabled,
    )
    return IntegrationResponse.model_validate(integration)


@router.patch("/{integration_id}", response_model=IntegrationResponse)
async def update_integration(
    check_id: str,
    integration_id: str,
    body: IntegrationUpdate,
    integrations: IntegrationStore = Depends(get_integration_store),
):
    integration = await _get_integration_or_404(integrations, check_id, integration_id)

    update_data = {
        field: value
        for field, value in body.model_dump(exclude_unset=True).items()
        if value is not None
    }
    if "config" in update_data:
        update_data["config"] = body.config.model_dump(exclude_none=True)

    config = update_data.get("config", integration.config) or {}
    if integration.type == "webhook" and not config.get("url"):
        raise HTTPException(status_code=422, detail="Webhook integrations need config.url")
    if integration.type == "email" and not config.get("email"):
        raise HTTPException(status_code=422, detail="Email integrations need config.email")

    integration = await integrations.update(integration_id, **update_data)
    return IntegrationResponse.model_validate(integration)


@router.delete("/{integration_id}", status_code=204)
async def delete_integration(
    check_id: str,
    integration_id: str,
    integrations: IntegrationStore = Depends(get_integration_store),
):
    await _get_integration_or_404(integrations, check_id, integration_id)
    await integrations.delete(integration_id)
