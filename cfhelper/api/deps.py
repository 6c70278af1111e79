from fastapi import Request, WebSocket

from cfhelper.services.room_manager import RoomManager


def get_room_manager(request: Request) -> RoomManager:
    return request.app.state.room_manager


def get_ws_room_manager(websocket: WebSocket) -> RoomManager:
    return websocket.app.state.room_manager
