"""Dataset template API.

Exposes provisioning to the portal frontend:
  GET    /api/templates        -> all provisioned templates
  GET    /api/templates/{id}   -> one template
  POST   /api/templates        -> validate, then run the provisioning saga
  DELETE /api/templates/{id}   -> admin only; deprovision, then delete record

Definitions are validated here, before the saga starts: an invalid
definition never causes a remote call. Stage failures map to 502 with the
failing stage's error code; compensation has already run by then.

All endpoints require a requester identity via ``get_requester``.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from ..errors import ApiError
from ..models import DefinitionError, definition_from_fields, validate_definition
from ..protocols import TemplateRepository
from ..provisioning.orchestrator import ProvisioningOrchestrator
from ..provisioning.pipeline import StageError
from ..security.identity import RequesterIdentity, get_requester, require_admin


# ── Request schemas ───────────────────────────────────────────────────


class FieldDefinitionIn(BaseModel):
    name: str
    field_type: str = Field(description='number | text | date | select')
    unit: str | None = None


class CreateTemplateRequest(BaseModel):
    name: str
    description: str | None = None
    fields: list[FieldDefinitionIn] = Field(default_factory=list)


# ── Route factory ─────────────────────────────────────────────────────


def create_templates_router(
    templates: TemplateRepository,
    orchestrator: ProvisioningOrchestrator,
) -> APIRouter:
    """Create the template list/get/provision/delete router.

    Args:
        templates: Repository for provisioned template records.
        orchestrator: Saga driver used for create and delete.
    """
    router = APIRouter(prefix='/api/templates', tags=['templates'])

    @router.get('')
    async def list_templates(
        identity: RequesterIdentity = Depends(get_requester),
    ):
        return [t.to_payload() for t in await templates.list()]

    @router.get('/{template_id}')
    async def get_template(
        template_id: str,
        identity: RequesterIdentity = Depends(get_requester),
    ):
        template = await templates.get(template_id)
        if template is None:
            raise _not_found(template_id)
        return template.to_payload()

    @router.post('', status_code=201)
    async def create_template(
        body: CreateTemplateRequest,
        identity: RequesterIdentity = Depends(get_requester),
    ):
        definition = definition_from_fields(
            body.name,
            (f.model_dump() for f in body.fields),
            body.description,
        )
        try:
            definition = validate_definition(definition)
        except DefinitionError as exc:
            raise ApiError(400, 'INVALID_DEFINITION', str(exc)) from exc

        try:
            template = await orchestrator.provision(definition, identity.user_id)
        except StageError as exc:
            raise ApiError(
                502,
                exc.error_code,
                str(exc.cause) or exc.error_code,
                stage=exc.stage,
            ) from exc

        return template.to_payload()

    @router.delete('/{template_id}', status_code=204)
    async def delete_template(
        template_id: str,
        identity: RequesterIdentity = Depends(get_requester),
    ):
        require_admin(identity)
        template = await templates.get(template_id)
        if template is None:
            raise _not_found(template_id)

        await orchestrator.deprovision(template)
        await templates.delete(template_id)
        return Response(status_code=204)

    return router


def _not_found(template_id: str) -> ApiError:
    return ApiError(
        404, 'TEMPLATE_NOT_FOUND', f'template {template_id!r} not found',
    )
