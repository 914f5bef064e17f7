from typing import List

from fastapi import APIRouter, Depends, Response

from app.api.deps import get_category_mapper, get_email_rule_service
from app.schemas.category import CategoryFieldMapping, CategoryMappingOut
from app.schemas.common import SuccessResponse
from app.schemas.email import SampleEmail
from app.schemas.email_rule import (
    EmailRuleCreate,
    EmailRuleOut,
    EmailRuleUpdate,
    RuleTestResponse,
)
from app.services.category_mapper import CategoryMapper
from app.services.email_rule_service import EmailRuleService

router = APIRouter(prefix="/email-rules", tags=["Email Rules"])


# Category mapping routes are declared first so ``/categories`` is never
# captured by ``/{rule_id}``.


@router.get("/categories", response_model=List[CategoryMappingOut])
async def list_category_mappings(
    mapper: CategoryMapper = Depends(get_category_mapper),
) -> List[CategoryMappingOut]:
    rows = await mapper.list_mappings()
    return [CategoryMappingOut.model_validate(row) for row in rows]


@router.post("/categories", response_model=CategoryMappingOut)
async def save_category_mapping(
    mapping: CategoryFieldMapping,
    mapper: CategoryMapper = Depends(get_category_mapper),
) -> CategoryMappingOut:
    """Create a category mapping or repoint the existing one of that name."""
    row = await mapper.save_mapping(mapping)
    return CategoryMappingOut.model_validate(row)


@router.delete("/categories/{mapping_id}", response_model=SuccessResponse)
async def delete_category_mapping(
    mapping_id: int,
    mapper: CategoryMapper = Depends(get_category_mapper),
) -> SuccessResponse:
    await mapper.delete_mapping(mapping_id)
    return SuccessResponse(success=True, message="Category mapping deleted")


@router.get("", response_model=List[EmailRuleOut])
async def list_rules(
    service: EmailRuleService = Depends(get_email_rule_service),
) -> List[EmailRuleOut]:
    """All rules in evaluation order (priority descending, then id)."""
    return await service.list_rules()


@router.post("", response_model=EmailRuleOut, status_code=201)
async def create_rule(
    data: EmailRuleCreate,
    service: EmailRuleService = Depends(get_email_rule_service),
) -> EmailRuleOut:
    return await service.create_rule(data)


@router.get("/{rule_id}", response_model=EmailRuleOut)
async def get_rule(
    rule_id: int,
    service: EmailRuleService = Depends(get_email_rule_service),
) -> EmailRuleOut:
    return await service.get_rule(rule_id)


@router.put("/{rule_id}", response_model=EmailRuleOut)
async def update_rule(
    rule_id: int,
    data: EmailRuleUpdate,
    service: EmailRuleService = Depends(get_email_rule_service),
) -> EmailRuleOut:
    return await service.update_rule(rule_id, data)


@router.delete("/{rule_id}", status_code=204)
async def delete_rule(
    rule_id: int,
    service: EmailRuleService = Depends(get_email_rule_service),
) -> Response:
    await service.delete_rule(rule_id)
    return Response(status_code=204)


@router.post("/{rule_id}/test", response_model=RuleTestResponse)
async def test_rule(
    rule_id: int,
    sample: SampleEmail,
    service: EmailRuleService = Depends(get_email_rule_service),
) -> RuleTestResponse:
    """Dry-run a rule's conditions against a sample email; nothing is written."""
    return await service.test_rule(rule_id, sample)
