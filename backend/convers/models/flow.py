# /convers/models/flow.py

import json
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, field_validator

# Flow definitions as served by the tenant's remote flow source.
# Blocks are a closed set of variants keyed by their "type" tag; any tag
# outside the known set parses as UnknownBlock, which is terminal.

MESSAGE = "message"
QUESTION = "question"
YES_NO = "yes_no"
UNKNOWN = "unknown"

_TRUTHY_FLAGS = {"1", "true", "yes", "on"}


def is_truthy_flag(value: Any) -> bool:
    """Interpret the boolean-ish flags sent by the remote source (1/0, "true", ...)."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY_FLAGS
    return False


def _coerce_text(value: Any) -> Any:
    # Numeric texts (e.g. "content": 42) arrive from PHP-backed sources.
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(int(value)) if float(value).is_integer() else str(value)
    return value


def _coerce_ref(value: Any) -> Optional[str]:
    # Remote ids are frequently numeric; references compare as strings.
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = str(int(value)) if float(value).is_integer() else str(value)
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return None


class BaseBlock(BaseModel):
    """Fields shared by every block variant."""
    model_config = ConfigDict(extra="ignore")

    id: str
    content: Optional[str] = None
    question: Optional[str] = None
    title: Optional[str] = None
    fallback_text: Optional[str] = None
    next: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        ref = _coerce_ref(v)
        if ref is None:
            raise ValueError("block id is required")
        return ref

    @field_validator("content", "question", "title", "fallback_text", mode="before")
    @classmethod
    def coerce_texts(cls, v):
        return _coerce_text(v)

    @field_validator("next", mode="before")
    @classmethod
    def coerce_next(cls, v):
        return _coerce_ref(v)

    @property
    def opening_text(self) -> str:
        """Text for the entry block of a new conversation (legacy field names accepted)."""
        for candidate in (self.content, self.question, self.title, self.fallback_text):
            if candidate:
                return candidate
        return ""

    @property
    def reply_text(self) -> str:
        return self.content or ""

    def successor_ids(self) -> List[str]:
        return [self.next] if self.next else []


class MessageBlock(BaseBlock):
    type: Literal["message"] = MESSAGE


class QuestionBlock(BaseBlock):
    type: Literal["question"] = QUESTION
    next_options: Dict[str, str] = Field(default_factory=dict)

    @field_validator("next_options", mode="before")
    @classmethod
    def coerce_options(cls, v):
        if not v:
            return {}
        if not isinstance(v, dict):
            raise ValueError("next_options must be an object")
        options = {}
        for label, target in v.items():
            target_id = _coerce_ref(target)
            if target_id is not None:
                options[str(label)] = target_id
        return options

    def successor_ids(self) -> List[str]:
        return super().successor_ids() + list(self.next_options.values())


class YesNoBlock(BaseBlock):
    type: Literal["yes_no"] = YES_NO
    next_yes: Optional[str] = None
    next_no: Optional[str] = None

    @field_validator("next_yes", "next_no", mode="before")
    @classmethod
    def coerce_branches(cls, v):
        return _coerce_ref(v)

    def successor_ids(self) -> List[str]:
        return super().successor_ids() + [ref for ref in (self.next_yes, self.next_no) if ref]


class UnknownBlock(BaseBlock):
    type: Optional[str] = UNKNOWN

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v):
        return _coerce_text(v)


def _block_tag(value: Any) -> str:
    raw = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    tag = raw.strip().lower() if isinstance(raw, str) else None
    return tag if tag in (MESSAGE, QUESTION, YES_NO) else UNKNOWN


Block = Annotated[
    Union[
        Annotated[MessageBlock, Tag(MESSAGE)],
        Annotated[QuestionBlock, Tag(QUESTION)],
        Annotated[YesNoBlock, Tag(YES_NO)],
        Annotated[UnknownBlock, Tag(UNKNOWN)],
    ],
    Discriminator(_block_tag),
]


class FlowData(BaseModel):
    blocks: List[Block] = Field(default_factory=list)

    @field_validator("blocks", mode="before")
    @classmethod
    def normalize_block_tags(cls, v):
        if v is None:
            return []
        if isinstance(v, list):
            # Known tags are matched case-insensitively.
            return [
                {**item, "type": item["type"].strip().lower()}
                if isinstance(item, dict) and isinstance(item.get("type"), str) else item
                for item in v
            ]
        return v


class Flow(BaseModel):
    """A named, versioned automation owned by one tenant."""
    model_config = ConfigDict(extra="ignore")

    id: str
    name: Optional[str] = None
    version: Optional[str] = None
    is_active: bool = False
    flow_data: FlowData = Field(default_factory=FlowData)

    @field_validator("id", "version", mode="before")
    @classmethod
    def coerce_identifiers(cls, v):
        return _coerce_ref(v)

    @field_validator("is_active", mode="before")
    @classmethod
    def parse_active_flag(cls, v):
        return is_truthy_flag(v)

    @field_validator("flow_data", mode="before")
    @classmethod
    def decode_flow_data(cls, v):
        # CMS-backed sources often store the graph as a JSON string.
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError as e:
                raise ValueError(f"flow_data is not valid JSON: {e.msg}")
        return v

    @property
    def blocks(self) -> List[BaseBlock]:
        return self.flow_data.blocks
