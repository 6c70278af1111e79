"""
cfhelper.api.rooms
~~~~~~~~~~~~~~~~~~

房间查询 REST 接口（只读）。

端点:
  - ``GET /cfhelper/api/rooms``            → 获取活跃房间列表
  - ``GET /cfhelper/api/rooms/{room_id}``  → 获取房间详情
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from cfhelper.api.deps import get_room_manager
from cfhelper.schemas.api_response import ApiResponse
from cfhelper.schemas.rooms import RoomInfoData
from cfhelper.services.room_manager import RoomManager

router: APIRouter = APIRouter()


@router.get("/rooms", summary="获取活跃房间列表")
async def list_rooms(
    manager: RoomManager = Depends(get_room_manager),
) -> ApiResponse[list[RoomInfoData]]:
    """返回所有仍在内存中的房间。"""
    return ApiResponse.ok(data=manager.list_rooms())


@router.get("/rooms/{room_id}", summary="获取房间详情", response_model=None)
async def room_info(
    room_id: str,
    manager: RoomManager = Depends(get_room_manager),
) -> ApiResponse[RoomInfoData] | JSONResponse:
    """返回指定房间的在线人数、消息数与会话状态。

    查询不会创建房间；房间不存在时返回 404。

    Args:
        room_id: 房间唯一标识。
    """
    room = manager.get(room_id)
    if room is None:
        return ApiResponse.fail_response(f"room {room_id!r} is not active", 404)
    return ApiResponse.ok(data=room.info())
