"""Timeline event models."""

import random
import string
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    """Kinds of timeline events."""

    TOOL = "tool"
    NUDGE = "nudge"
    COMMIT = "commit"
    TEST = "test"
    CONSULTATION = "consultation"


class TimeRange(str, Enum):
    """Supported timeline windows."""

    LAST_HOUR = "1h"
    LAST_4_HOURS = "4h"
    TODAY = "today"
    ALL = "all"


# =============================================================================
# Details payloads (tagged by ``kind``)
# =============================================================================


class ToolDetails(BaseModel):
    """A tool-log line."""

    kind: Literal["tool"] = "tool"
    tool: str
    target: str


class NudgeDetails(BaseModel):
    """The raw nudge record, field types as written."""

    model_config = ConfigDict(extra="allow")

    kind: Literal["nudge"] = "nudge"
    timestamp: Any = None
    type: Any = None
    message: Any = None
    content: Any = None


class ConsultationDetails(BaseModel):
    """The raw consultation ledger entry."""

    model_config = ConfigDict(extra="allow")

    kind: Literal["consultation"] = "consultation"
    timestamp: Any = None
    query: Any = None
    agent: Any = None


TimelineDetails = Annotated[
    Union[ToolDetails, NudgeDetails, ConsultationDetails],
    Field(discriminator="kind"),
]


class TimelineEvent(BaseModel):
    """One normalized event. Never persisted."""

    id: str
    type: EventType
    timestamp: str
    title: str
    description: str
    details: Optional[TimelineDetails] = None


def make_event_id(source: str, timestamp: str) -> str:
    """``<source>-<timestamp>-<6 random chars>`` so merged events never collide."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"{source}-{timestamp}-{suffix}"
