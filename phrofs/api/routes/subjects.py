"""
api/routes/subjects.py
----------------------
Subject endpoints.

GET  /subjects                 — Curated subjects, or search all with ?q=
POST /subjects                 — Submit a new subject (7 uppercase letters)
GET  /subjects/{id}            — Subject with its notes
GET  /subjects/{id}/professors — Professors teaching a subject
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from phrofs.db.session import get_db
from phrofs.schemas.professor import ProfessorListResponse, ProfessorRead
from phrofs.schemas.subject import (
    NoteRead,
    SubjectCreate,
    SubjectDetailResponse,
    SubjectListResponse,
    SubjectRead,
)
from phrofs.services.professor_service import ProfessorService
from phrofs.services.subject_service import SubjectService

router = APIRouter(tags=["Subjects"])


@router.get("/subjects", response_model=SubjectListResponse, summary="List or search subjects")
async def list_subjects(
    db: Annotated[AsyncSession, Depends(get_db)],
    q: Optional[str] = Query(None, max_length=100),
) -> SubjectListResponse:
    subjects = await SubjectService.list_subjects(db, q)
    return SubjectListResponse(subjects=[SubjectRead.model_validate(s) for s in subjects])


@router.post(
    "/subjects",
    response_model=SubjectRead,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a new subject",
)
async def create_subject(
    body: SubjectCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SubjectRead:
    subject = await SubjectService.create_subject(db, body)
    return SubjectRead.model_validate(subject)


@router.get("/subjects/{subject_id}", response_model=SubjectDetailResponse, summary="Subject details")
async def get_subject(
    subject_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SubjectDetailResponse:
    subject, notes = await SubjectService.get_subject_with_notes(db, subject_id)
    return SubjectDetailResponse(
        subject=SubjectRead.model_validate(subject),
        notes=[NoteRead.model_validate(n) for n in notes],
    )


@router.get(
    "/subjects/{subject_id}/professors",
    response_model=ProfessorListResponse,
    summary="Professors for a subject",
)
async def list_subject_professors(
    subject_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ProfessorListResponse:
    profs = await ProfessorService.list_for_subject(db, subject_id)
    return ProfessorListResponse(professors=[ProfessorRead.model_validate(p) for p in profs])
