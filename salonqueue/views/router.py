"""Dashboard router - cached queue board snapshots"""

from fastapi import APIRouter, Depends

from ..database import SessionLocal
from ..realtime import change_feed
from .board import BoardRegistry

router = APIRouter(prefix="/facilities/{facility_id}", tags=["Dashboard"])

boards = BoardRegistry(SessionLocal, change_feed)


def get_board_registry() -> BoardRegistry:
    return boards


@router.get("/queue")
async def queue_board(facility_id: int, registry: BoardRegistry = Depends(get_board_registry)):
    """Current queue of a facility for reception and manager dashboards"""
    return registry.get(facility_id).snapshot()
