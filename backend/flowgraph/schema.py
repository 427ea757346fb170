"""Node, edge and snapshot models for chatbot flows.

Each node type carries its own payload model, and ``Node`` is a tagged union
keyed by ``type``. Payload keys are camelCase on the wire (``triggerEvent``,
``mediaURL``, ``contentBlocks``) to match what the canvas sends.
"""

import re
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

TRIGGER_NODE_ID = "trigger_1"
DEFAULT_SOURCE_HANDLE = "source"
TARGET_HANDLE = "target"
MAX_BUTTONS = 3

NODE_TYPES = ("trigger", "message", "media")
BUTTON_HANDLE_PATTERN = re.compile(r"^button-(\d+)$")


class TriggerEvent(str, Enum):
    keyword = "keyword"
    start_conversation = "start_conversation"
    button_selected = "button_selected"
    contact_added = "contact_added"


class MediaType(str, Enum):
    image = "image"
    video = "video"
    audio = "audio"
    document = "document"


class ContentBlockType(str, Enum):
    text = "text"
    media = "media"


class _Model(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")


class Position(_Model):
    x: float = 0.0
    y: float = 0.0


class Button(_Model):
    """A quick reply button. Each one gets its own source handle."""

    text: str = ""


# ── Payloads ─────────────────────────────────────────────────


class TriggerData(_Model):
    trigger_event: TriggerEvent = Field(TriggerEvent.keyword, alias="triggerEvent")
    keywords: list[str] = Field(default_factory=list)

    @field_validator("keywords")
    @classmethod
    def normalise_keywords(cls, keywords):
        seen = []
        for keyword in keywords:
            keyword = keyword.strip()
            if keyword and keyword not in seen:
                seen.append(keyword)
        return seen


class MessageData(_Model):
    message: str = ""
    buttons: list[Button] = Field(default_factory=list, max_length=MAX_BUTTONS)


class ContentBlock(_Model):
    type: ContentBlockType
    text: str | None = None
    media_type: MediaType | None = Field(None, alias="mediaType")
    media_url: str | None = Field(None, alias="mediaURL")


class MediaData(_Model):
    media_type: MediaType = Field(MediaType.image, alias="mediaType")
    media_url: str = Field("", alias="mediaURL")
    caption: str = ""
    buttons: list[Button] = Field(default_factory=list, max_length=MAX_BUTTONS)
    content_blocks: list[ContentBlock] = Field(default_factory=list, alias="contentBlocks")


DATA_MODELS = {
    "trigger": TriggerData,
    "message": MessageData,
    "media": MediaData,
}


# ── Nodes & edges ────────────────────────────────────────────


class _BaseNode(_Model):
    id: str
    position: Position = Field(default_factory=Position)

    @property
    def label(self):
        """Human-readable type name used in validation messages."""
        return self.type.capitalize()

    @property
    def buttons(self):
        return list(getattr(self.data, "buttons", []))

    @property
    def has_target_handle(self):
        return self.type != "trigger"

    def source_handles(self):
        """Outgoing handles this node exposes, in render order.

        The default ``source`` handle only exists while the node has no
        buttons; otherwise every button gets ``button-<index>``.
        """
        if not self.buttons:
            return [DEFAULT_SOURCE_HANDLE]
        return [button_handle(i) for i in range(len(self.buttons))]


class TriggerNode(_BaseNode):
    type: Literal["trigger"] = "trigger"
    data: TriggerData = Field(default_factory=TriggerData)


class MessageNode(_BaseNode):
    type: Literal["message"] = "message"
    data: MessageData = Field(default_factory=MessageData)


class MediaNode(_BaseNode):
    type: Literal["media"] = "media"
    data: MediaData = Field(default_factory=MediaData)


Node = Annotated[Union[TriggerNode, MessageNode, MediaNode], Field(discriminator="type")]

NODE_CLASSES = {
    "trigger": TriggerNode,
    "message": MessageNode,
    "media": MediaNode,
}


class Edge(_Model):
    id: str
    source: str
    target: str
    source_handle: str = Field(DEFAULT_SOURCE_HANDLE, alias="sourceHandle")
    target_handle: str = Field(TARGET_HANDLE, alias="targetHandle")


class FlowSnapshot(_Model):
    """Serializable state of a flow. Edges refer to nodes by id only."""

    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)

    def to_dict(self):
        return self.model_dump(mode="json", by_alias=True)


def button_handle(index):
    return f"button-{index}"


def parse_button_handle(handle):
    """Return the button index encoded in ``handle``, or None."""
    match = BUTTON_HANDLE_PATTERN.match(handle or "")
    return int(match.group(1)) if match else None


def parse_node_data(node_type, data):
    """Validate ``data`` as the payload for ``node_type``.

    Accepts a dict (camelCase or snake_case keys) or a payload model.
    Raises pydantic.ValidationError when the payload does not fit.
    """
    model = DATA_MODELS[node_type]
    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True)
    return model.model_validate(data or {})


def build_node(node_type, node_id, position=None, data=None):
    cls = NODE_CLASSES[node_type]
    if position is not None and not isinstance(position, Position):
        position = Position.model_validate(position)
    return cls(
        id=node_id,
        position=position or Position(),
        data=parse_node_data(node_type, data),
    )


def default_trigger():
    return build_node("trigger", TRIGGER_NODE_ID, Position(x=100, y=100))
