from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from classmate.auth.dependencies import CompanyContext, require_permission
from classmate.core.exceptions import ConflictError
from classmate.database import get_db
from classmate.models.lesson import Lesson
from classmate.models.school import Group, Room
from classmate.schemas.auth import MessageResponse
from classmate.schemas.school import RoomCreate, RoomResponse, RoomUpdate

router = APIRouter()


def _get_room(db: Session, ctx: CompanyContext, room_id: UUID) -> Room:
    room = ctx.scope(db.query(Room), Room).filter(Room.id == room_id).first()
    if not room:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    return room


@router.get("/", response_model=List[RoomResponse])
async def list_rooms(
    ctx: CompanyContext = Depends(require_permission("rooms", "view")),
    db: Session = Depends(get_db)
):
    return ctx.scope(db.query(Room), Room).order_by(Room.name).all()


@router.get("/{room_id}", response_model=RoomResponse)
async def get_room(
    room_id: UUID,
    ctx: CompanyContext = Depends(require_permission("rooms", "view")),
    db: Session = Depends(get_db)
):
    return _get_room(db, ctx, room_id)


@router.post("/", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    data: RoomCreate,
    ctx: CompanyContext = Depends(require_permission("rooms", "create")),
    db: Session = Depends(get_db)
):
    room = Room(company_id=ctx.company_id, branch_id=ctx.branch_id, **data.model_dump())
    db.add(room)
    db.commit()
    db.refresh(room)
    return room


@router.put("/{room_id}", response_model=RoomResponse)
async def update_room(
    room_id: UUID,
    data: RoomUpdate,
    ctx: CompanyContext = Depends(require_permission("rooms", "update")),
    db: Session = Depends(get_db)
):
    room = _get_room(db, ctx, room_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(room, field, value)
    db.commit()
    db.refresh(room)
    return room


@router.delete("/{room_id}", response_model=MessageResponse)
async def delete_room(
    room_id: UUID,
    ctx: CompanyContext = Depends(require_permission("rooms", "delete")),
    db: Session = Depends(get_db)
):
    room = _get_room(db, ctx, room_id)
    lessons = db.query(Lesson).filter(Lesson.room_id == room.id).count()
    groups = db.query(Group).filter(Group.room_id == room.id).count()
    if lessons or groups:
        raise ConflictError(
            "Room is still used by lessons or groups",
            details={"lessons": lessons, "groups": groups},
            code="ROOM_IN_USE",
        )
    db.delete(room)
    db.commit()
    return {"message": "Room deleted successfully"}
