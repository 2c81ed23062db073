"""
Subsidiary API endpoints.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from fleet_backend.app.db.session import get_db
from fleet_backend.app.models.subsidiary import Subsidiary
from fleet_backend.app.schemas.department import SubsidiaryCreate, SubsidiaryResponse, SubsidiaryListResponse
from fleet_backend.app.core.access import Principal
from fleet_backend.app.core.exceptions import ConflictError
from fleet_backend.app.core.guards import require_capability
from fleet_backend.app.core.permissions import Capability

router = APIRouter(prefix="/subsidiaries", tags=["Subsidiaries"])


@router.post("", response_model=SubsidiaryResponse, status_code=status.HTTP_201_CREATED)
async def create_subsidiary(
    payload: SubsidiaryCreate,
    principal: Principal = Depends(require_capability(Capability.SYSTEM_SETTINGS)),
    db: AsyncSession = Depends(get_db)
):
    code = payload.code.strip().upper()
    existing = await db.execute(select(Subsidiary.id).where(Subsidiary.code == code))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Subsidiary code already exists", error_code="ERR_DUPLICATE_SUBSIDIARY", details={"code": code})

    subsidiary = Subsidiary(**payload.model_dump(exclude={"code"}), code=code)
    db.add(subsidiary)
    await db.commit()
    await db.refresh(subsidiary)
    return SubsidiaryResponse.model_validate(subsidiary)


@router.get("", response_model=SubsidiaryListResponse)
async def list_subsidiaries(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    principal: Principal = Depends(require_capability(Capability.DASHBOARD)),
    db: AsyncSession = Depends(get_db)
):
    query = select(Subsidiary)
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    offset = (page - 1) * page_size
    result = await db.execute(query.order_by(Subsidiary.name).offset(offset).limit(page_size))

    return SubsidiaryListResponse(
        items=[SubsidiaryResponse.model_validate(s) for s in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size
    )
