"""
시리즈 API 라우터
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from imagitales.core.database import get_db
from imagitales.core.exceptions import NotFound, PersistenceError
from imagitales.schemas.series import SeriesBatchUpdate, SeriesCreate, SeriesResponse, SeriesUpdate
from imagitales.services import series_service

router = APIRouter()


@router.get("/", response_model=List[SeriesResponse])
async def list_series(db: AsyncSession = Depends(get_db)):
    return await series_service.list_series(db)


@router.post("/", response_model=SeriesResponse, status_code=status.HTTP_201_CREATED)
async def create_series(data: SeriesCreate, db: AsyncSession = Depends(get_db)):
    try:
        return await series_service.create_series(db, data)
    except PersistenceError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.put("/{series_id}", response_model=SeriesResponse)
async def update_series(series_id: uuid.UUID, data: SeriesUpdate, db: AsyncSession = Depends(get_db)):
    try:
        return await series_service.update_series(db, series_id, data)
    except NotFound:
        raise HTTPException(status_code=404, detail="시리즈를 찾을 수 없습니다")
    except PersistenceError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.delete("/{series_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_series(series_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    try:
        await series_service.delete_series(db, series_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="시리즈를 찾을 수 없습니다")


@router.post("/{series_id}/stories", response_model=SeriesResponse)
async def update_series_stories(
    series_id: uuid.UUID,
    data: SeriesBatchUpdate,
    db: AsyncSession = Depends(get_db),
):
    """스토리 묶음 추가/제거"""
    try:
        return await series_service.update_series_stories(db, series_id, data)
    except NotFound:
        raise HTTPException(status_code=404, detail="시리즈를 찾을 수 없습니다")
