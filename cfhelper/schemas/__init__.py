"""
cfhelper.schemas
~~~~~~~~~~~~~~~~
Pydantic schemas and wire models.
"""
from cfhelper.schemas.api_response import ApiResponse
from cfhelper.schemas.events import (
    AddEvent,
    AllEvent,
    ChatMessage,
    DomainEvent,
    SessionFailedEvent,
    SessionLoadingEvent,
    SessionReadyEvent,
    UpdateEvent,
    dump_event,
    parse_event,
)
from cfhelper.schemas.rooms import RoomInfoData

# Call model_rebuild to resolve forward references in generic Pydantic models.
ApiResponse.model_rebuild()
