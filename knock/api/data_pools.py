"""
Data Pool API Routes
Admin CRUD for the experience, archetype and visual pools the agents draw from.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from knock.api.deps import get_pool_store
from knock.core.exceptions import DuplicateRecordError
from knock.schemas.data_pool import (
    ExperienceRecord, ExperienceCreate, ExperienceUpdate, ExperienceListResponse,
    ArchetypeRecord, ArchetypeCreate, ArchetypeUpdate, ArchetypeListResponse,
    VisualRecord, VisualCreate, VisualUpdate, VisualListResponse,
)
from knock.schemas.job import Pagination
from knock.services.data_pool import SQLDataPoolStore

router = APIRouter()


def _page(pool_store: SQLDataPoolStore, kind: str, limit: int, offset: int, **filters) -> dict:
    records, total = pool_store.list_pool(kind, limit=limit, offset=offset, **filters)
    return {
        "data": records,
        "pagination": Pagination(
            total=total, limit=limit, offset=offset, has_more=offset + len(records) < total,
        ),
    }


def _found(record: Optional[BaseModel], label: str) -> BaseModel:
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found")
    return record


def _create(pool_store: SQLDataPoolStore, kind: str, data: BaseModel) -> BaseModel:
    try:
        return pool_store.create_pool_record(kind, data)
    except DuplicateRecordError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


def _update(pool_store: SQLDataPoolStore, kind: str, record_id: str, data: BaseModel, label: str) -> BaseModel:
    try:
        return _found(pool_store.update_pool_record(kind, record_id, data), label)
    except DuplicateRecordError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


def _delete(pool_store: SQLDataPoolStore, kind: str, record_id: str, label: str) -> dict:
    if not pool_store.delete_pool_record(kind, record_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found")
    return {"message": f"{label} deleted", "id": record_id}


# ============================================================================
# Experiences
# ============================================================================

@router.get("/experiences", response_model=ExperienceListResponse)
async def list_experiences(
    search: Optional[str] = None,
    need_type: Optional[str] = None,
    active_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    pool_store: SQLDataPoolStore = Depends(get_pool_store),
):
    """List experiences, heaviest first. `search` matches title and description."""
    return _page(
        pool_store, "experiences", limit, offset,
        search=search, need_type=need_type, active_only=active_only,
    )


@router.get("/experiences/{record_id}", response_model=ExperienceRecord)
async def get_experience(record_id: str, pool_store: SQLDataPoolStore = Depends(get_pool_store)):
    return _found(pool_store.get_pool_record("experiences", record_id), "Experience")


@router.post("/experiences", response_model=ExperienceRecord, status_code=status.HTTP_201_CREATED)
async def create_experience(data: ExperienceCreate, pool_store: SQLDataPoolStore = Depends(get_pool_store)):
    """Add an experience. The id defaults to `exp-<need>-<hex>`."""
    return _create(pool_store, "experiences", data)


@router.patch("/experiences/{record_id}", response_model=ExperienceRecord)
async def update_experience(
    record_id: str,
    data: ExperienceUpdate,
    pool_store: SQLDataPoolStore = Depends(get_pool_store),
):
    return _update(pool_store, "experiences", record_id, data, "Experience")


@router.delete("/experiences/{record_id}")
async def delete_experience(record_id: str, pool_store: SQLDataPoolStore = Depends(get_pool_store)):
    return _delete(pool_store, "experiences", record_id, "Experience")


# ============================================================================
# Archetypes
# ============================================================================

@router.get("/archetypes", response_model=ArchetypeListResponse)
async def list_archetypes(
    search: Optional[str] = None,
    active_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    pool_store: SQLDataPoolStore = Depends(get_pool_store),
):
    """List archetypes by name."""
    return _page(pool_store, "archetypes", limit, offset, search=search, active_only=active_only)


@router.get("/archetypes/{record_id}", response_model=ArchetypeRecord)
async def get_archetype(record_id: str, pool_store: SQLDataPoolStore = Depends(get_pool_store)):
    return _found(pool_store.get_pool_record("archetypes", record_id), "Archetype")


@router.post("/archetypes", response_model=ArchetypeRecord, status_code=status.HTTP_201_CREATED)
async def create_archetype(data: ArchetypeCreate, pool_store: SQLDataPoolStore = Depends(get_pool_store)):
    """Add an archetype. 409 when the name is taken."""
    return _create(pool_store, "archetypes", data)


@router.patch("/archetypes/{record_id}", response_model=ArchetypeRecord)
async def update_archetype(
    record_id: str,
    data: ArchetypeUpdate,
    pool_store: SQLDataPoolStore = Depends(get_pool_store),
):
    return _update(pool_store, "archetypes", record_id, data, "Archetype")


@router.delete("/archetypes/{record_id}")
async def delete_archetype(record_id: str, pool_store: SQLDataPoolStore = Depends(get_pool_store)):
    return _delete(pool_store, "archetypes", record_id, "Archetype")


# ============================================================================
# Visuals
# ============================================================================

@router.get("/visuals", response_model=VisualListResponse)
async def list_visuals(
    search: Optional[str] = None,
    category: Optional[str] = None,
    active_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    pool_store: SQLDataPoolStore = Depends(get_pool_store),
):
    """List room objects, heaviest first. `search` matches name and symbolism."""
    return _page(
        pool_store, "visuals", limit, offset,
        search=search, category=category, active_only=active_only,
    )


@router.get("/visuals/{record_id}", response_model=VisualRecord)
async def get_visual(record_id: str, pool_store: SQLDataPoolStore = Depends(get_pool_store)):
    return _found(pool_store.get_pool_record("visuals", record_id), "Visual")


@router.post("/visuals", response_model=VisualRecord, status_code=status.HTTP_201_CREATED)
async def create_visual(data: VisualCreate, pool_store: SQLDataPoolStore = Depends(get_pool_store)):
    return _create(pool_store, "visuals", data)


@router.patch("/visuals/{record_id}", response_model=VisualRecord)
async def update_visual(
    record_id: str,
    data: VisualUpdate,
    pool_store: SQLDataPoolStore = Depends(get_pool_store),
):
    return _update(pool_store, "visuals", record_id, data, "Visual")


@router.delete("/visuals/{record_id}")
async def delete_visual(record_id: str, pool_store: SQLDataPoolStore = Depends(get_pool_store)):
    return _delete(pool_store, "visuals", record_id, "Visual")
