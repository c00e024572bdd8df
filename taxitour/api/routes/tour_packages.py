"""
Tour package endpoints
======================

GET    /api/v1/tour-packages               -- the catalog, newest first
GET    /api/v1/tour-packages/{package_id}  -- one package
POST   /api/v1/tour-packages               -- add a package (admin)
PUT    /api/v1/tour-packages/{package_id}  -- edit a package (admin)
DELETE /api/v1/tour-packages/{package_id}  -- remove a package (admin)

Images are referenced by URL; uploading them is not handled here.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from taxitour.api.dependencies import get_db, require_admin
from taxitour.api.middleware import limiter
from taxitour.api.schemas import (
    TourPackageCreateRequest,
    TourPackageResponse,
    TourPackageUpdateRequest,
)
from taxitour.infrastructure.repositories import TourPackageRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tour-packages", tags=["tour packages"])


async def _get_or_404(repo: TourPackageRepository, package_id: str):
    package = await repo.get_by_id(package_id)
    if not package:
        raise HTTPException(status_code=404, detail="Tour package not found")
    return package


@router.get("", response_model=list[TourPackageResponse], summary="List tour packages")
@limiter.limit("100/minute")
async def list_packages(request: Request, db: AsyncSession = Depends(get_db)):
    return await TourPackageRepository(db).list_all()


@router.get(
    "/{package_id}",
    response_model=TourPackageResponse,
    summary="Get a tour package",
)
@limiter.limit("100/minute")
async def get_package(
    request: Request,
    package_id: str,
    db: AsyncSession = Depends(get_db),
):
    return await _get_or_404(TourPackageRepository(db), package_id)


@router.post(
    "",
    status_code=201,
    response_model=TourPackageResponse,
    summary="Create a tour package (admin)",
)
@limiter.limit("100/minute")
async def create_package(
    request: Request,
    body: TourPackageCreateRequest,
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_admin),
):
    package = await TourPackageRepository(db).create_package(**body.model_dump())
    logger.info("Tour package %s created by %s", package.id, admin.id)
    return package


@router.put(
    "/{package_id}",
    response_model=TourPackageResponse,
    summary="Update a tour package (admin)",
    description="Only the fields present in the body are changed.",
)
@limiter.limit("100/minute")
async def update_package(
    request: Request,
    package_id: str,
    body: TourPackageUpdateRequest,
    db: AsyncSession = Depends(get_db),
    _admin=Depends(require_admin),
):
    repo = TourPackageRepository(db)
    package = await _get_or_404(repo, package_id)
    return await repo.update_package(package, body.model_dump(exclude_unset=True, exclude_none=True))


@router.delete(
    "/{package_id}",
    status_code=204,
    response_class=Response,
    summary="Delete a tour package (admin)",
)
@limiter.limit("100/minute")
async def delete_package(
    request: Request,
    package_id: str,
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_admin),
):
    repo = TourPackageRepository(db)
    package = await _get_or_404(repo, package_id)
    await repo.delete(package)
    logger.info("Tour package %s deleted by %s", package_id, admin.id)
    return Response(status_code=204)
