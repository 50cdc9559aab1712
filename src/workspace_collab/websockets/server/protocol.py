"""
Wire protocol for the collaboration server.

Inbound frames are JSON objects ``{"type": ..., ...fields, "requestId"?}``.
They are decoded at the boundary into one typed model per message kind, so
handlers never see an open-ended dict. Request-style clients may nest their
fields under ``data``; those are lifted to the top level before validation.

Outbound frames are ``{"type", "data"?, "error"?, "requestId"?}``.
"""

import json
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union, get_args

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    TypeAdapter,
    ValidationError,
)

from ...core.types import (
    MSG_BLOCK_EDIT,
    MSG_CREATE_BLOCK,
    MSG_CREATE_PAGE,
    MSG_CURSOR_HIDE,
    MSG_CURSOR_MOVE,
    MSG_CURSOR_UPDATE,
    MSG_DELETE_BLOCK,
    MSG_DELETE_PAGE,
    MSG_HEARTBEAT,
    MSG_JOIN_PAGE,
    MSG_JOIN_WORKSPACE,
    MSG_LEAVE_PAGE,
    MSG_LEAVE_WORKSPACE,
    MSG_REORDER_BLOCKS,
    MSG_TYPING_START,
    MSG_TYPING_STOP,
    MSG_UPDATE_BLOCK,
    MSG_UPDATE_PAGE,
)
from ...infrastructure.exceptions import MalformedMessageError, UnknownMessageTypeError

# Ids of workspaces, pages and blocks: JSON number or non-empty string
WireId = Union[int, Annotated[str, StringConstraints(min_length=1)]]
RequestId = Union[str, int]


class InboundMessage(BaseModel):
    """Fields shared by every inbound message."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    request_id: Optional[RequestId] = Field(default=None, alias="requestId")


class JoinWorkspaceMessage(InboundMessage):
    type: Literal[MSG_JOIN_WORKSPACE]
    workspace_id: WireId = Field(alias="workspaceId")
    # Only used when the handshake did not identify the connection
    user_id: Optional[Annotated[str, StringConstraints(min_length=1)]] = Field(
        default=None, alias="userId"
    )
    user_name: Optional[str] = Field(default=None, alias="userName")


class LeaveWorkspaceMessage(InboundMessage):
    type: Literal[MSG_LEAVE_WORKSPACE]


class JoinPageMessage(InboundMessage):
    type: Literal[MSG_JOIN_PAGE]
    page_id: WireId = Field(alias="pageId")


class LeavePageMessage(InboundMessage):
    type: Literal[MSG_LEAVE_PAGE]


class CursorMoveMessage(InboundMessage):
    type: Literal[MSG_CURSOR_MOVE, MSG_CURSOR_UPDATE]
    x: float
    y: float
    block_id: Optional[WireId] = Field(default=None, alias="blockId")
    selection: Optional[Dict[str, Any]] = None


class CursorHideMessage(InboundMessage):
    type: Literal[MSG_CURSOR_HIDE]


class TypingMessage(InboundMessage):
    type: Literal[MSG_TYPING_START, MSG_TYPING_STOP]
    block_id: Optional[WireId] = Field(default=None, alias="blockId")

    @property
    def is_typing(self) -> bool:
        return self.type == MSG_TYPING_START


class CreatePageMessage(InboundMessage):
    type: Literal[MSG_CREATE_PAGE]
    title: str
    icon: Optional[str] = None
    parent_id: Optional[int] = Field(default=None, alias="parentId")
    workspace_id: Optional[WireId] = Field(default=None, alias="workspaceId")


class UpdatePageMessage(InboundMessage):
    type: Literal[MSG_UPDATE_PAGE]
    id: int
    title: Optional[str] = None
    icon: Optional[str] = None
    parent_id: Optional[int] = Field(default=None, alias="parentId")

    def patch(self) -> Dict[str, Any]:
        """Only the fields the client actually sent."""
        return self.model_dump(include={"title", "icon", "parent_id"}, exclude_unset=True)


class DeletePageMessage(InboundMessage):
    type: Literal[MSG_DELETE_PAGE]
    id: int
    workspace_id: Optional[WireId] = Field(default=None, alias="workspaceId")


class CreateBlockMessage(InboundMessage):
    type: Literal[MSG_CREATE_BLOCK]
    block_type: str = Field(alias="blockType")
    content: Any = None
    position: int = 0
    page_id: Optional[WireId] = Field(default=None, alias="pageId")


class UpdateBlockMessage(InboundMessage):
    type: Literal[MSG_UPDATE_BLOCK]
    id: int
    block_type: Optional[str] = Field(default=None, alias="blockType")
    content: Any = None
    position: Optional[int] = None
    page_id: Optional[WireId] = Field(default=None, alias="pageId")

    def patch(self) -> Dict[str, Any]:
        """Only the fields the client actually sent, keyed by column name."""
        patch = self.model_dump(include={"content", "position"}, exclude_unset=True)
        if "block_type" in self.model_fields_set:
            patch["type"] = self.block_type
        return patch


class DeleteBlockMessage(InboundMessage):
    type: Literal[MSG_DELETE_BLOCK]
    id: int
    page_id: Optional[WireId] = Field(default=None, alias="pageId")


class ReorderBlocksMessage(InboundMessage):
    type: Literal[MSG_REORDER_BLOCKS]
    block_ids: List[int] = Field(alias="blockIds")
    page_id: Optional[WireId] = Field(default=None, alias="pageId")


class BlockEditMessage(InboundMessage):
    """Unsaved keystrokes in a block, relayed live to the page."""

    type: Literal[MSG_BLOCK_EDIT]
    block_id: WireId = Field(alias="blockId")
    content: Any = None


class HeartbeatMessage(InboundMessage):
    type: Literal[MSG_HEARTBEAT]


MESSAGE_MODELS: Tuple[type, ...] = (
    JoinWorkspaceMessage,
    LeaveWorkspaceMessage,
    JoinPageMessage,
    LeavePageMessage,
    CursorMoveMessage,
    CursorHideMessage,
    TypingMessage,
    CreatePageMessage,
    UpdatePageMessage,
    DeletePageMessage,
    CreateBlockMessage,
    UpdateBlockMessage,
    DeleteBlockMessage,
    ReorderBlocksMessage,
    BlockEditMessage,
    HeartbeatMessage,
)

ClientMessage = Annotated[
    Union[
        JoinWorkspaceMessage,
        LeaveWorkspaceMessage,
        JoinPageMessage,
        LeavePageMessage,
        CursorMoveMessage,
        CursorHideMessage,
        TypingMessage,
        CreatePageMessage,
        UpdatePageMessage,
        DeletePageMessage,
        CreateBlockMessage,
        UpdateBlockMessage,
        DeleteBlockMessage,
        ReorderBlocksMessage,
        BlockEditMessage,
        HeartbeatMessage,
    ],
    Field(discriminator="type"),
]

MESSAGE_TYPES = frozenset(
    message_type
    for model in MESSAGE_MODELS
    for message_type in get_args(model.model_fields["type"].annotation)
)

_client_message_adapter = TypeAdapter(ClientMessage)


def _describe_validation_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"][1:]) or "message"
    return f"{location}: {first['msg']}"


def parse_client_message(raw: Union[str, bytes]) -> InboundMessage:
    """
    Decode one inbound frame into its typed message.

    Raises:
        MalformedMessageError: Invalid JSON, not an object, or bad fields
        UnknownMessageTypeError: The declared type has no handler
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise MalformedMessageError("Invalid message format")

    if not isinstance(data, dict):
        raise MalformedMessageError("Invalid message format")

    request_id = data.get("requestId")
    if not isinstance(request_id, (str, int)) or isinstance(request_id, bool):
        request_id = None

    message_type = data.get("type")
    if not isinstance(message_type, str) or not message_type:
        raise MalformedMessageError("Missing message type", request_id)
    if message_type not in MESSAGE_TYPES:
        raise UnknownMessageTypeError(message_type, request_id)

    nested = data.get("data")
    if isinstance(nested, dict):
        data = {**nested, **{k: v for k, v in data.items() if k != "data"}}

    try:
        return _client_message_adapter.validate_python(data)
    except ValidationError as e:
        raise MalformedMessageError(
            f"Invalid {message_type} message: {_describe_validation_error(e)}",
            request_id,
        )


def envelope(
    message_type: str,
    data: Any = None,
    *,
    error: Optional[str] = None,
    request_id: Optional[RequestId] = None,
) -> Dict[str, Any]:
    """Build an outbound frame, leaving out absent keys."""
    frame: Dict[str, Any] = {"type": message_type}
    if data is not None:
        frame["data"] = data
    if error is not None:
        frame["error"] = error
    if request_id is not None:
        frame["requestId"] = request_id
    return frame


def encode(frame: Dict[str, Any]) -> str:
    return json.dumps(frame, default=str)
