"""Result models for calendar decoding."""

from enum import Enum
from typing import TYPE_CHECKING, Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..exceptions import CalendarDecodeError

if TYPE_CHECKING:
    from ..events.event import AlarmEvent


class DecodeErrorKind(str, Enum):
    """Reasons a calendar item could not be decoded."""

    NOT_AN_EVENT = "not_an_event"
    NO_USABLE_ALARMS = "no_usable_alarms"
    UNKNOWN_CATEGORY = "unknown_category"
    ID_MISMATCH = "id_mismatch"
    MALFORMED_TOKEN = "malformed_token"  # warning only
    STALE_FORMAT = "stale_format"
    PARSE_ERROR = "parse_error"


class DecodeResult(BaseModel):
    """Result of decoding one VEVENT."""

    success: bool = Field(..., description="Whether an event was decoded")
    event: Optional[Any] = Field(default=None, description="The decoded AlarmEvent")
    error_kind: Optional[DecodeErrorKind] = Field(default=None, description="Failure reason")
    error_message: Optional[str] = Field(default=None, description="Failure details")
    warnings: List[str] = Field(default_factory=list, description="Recoverable problems")

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @classmethod
    def failure(cls, kind: DecodeErrorKind, message: str) -> "DecodeResult":
        return cls(success=False, error_kind=kind, error_message=message)

    def unwrap(self) -> "AlarmEvent":
        """Return the decoded event.

        Raises:
            CalendarDecodeError: If decoding failed
        """
        if not self.success or self.event is None:
            raise CalendarDecodeError(
                self.error_message or "Decode failed",
                error_kind=self.error_kind.value if self.error_kind else None,
            )
        return self.event


class ReinstateResult(BaseModel):
    """An event recovered from the displaying calendar."""

    event: Any = Field(..., description="The reinstated AlarmEvent, category ACTIVE")
    resource_id: int = Field(default=-1, description="Resource the event originally came from")
    show_edit: bool = Field(default=False, description="Whether to offer an Edit button")
    show_defer: bool = Field(default=False, description="Whether to offer a Defer button")

    model_config = ConfigDict(arbitrary_types_allowed=True)


class CalendarDecodeResult(BaseModel):
    """Result of decoding a whole calendar."""

    success: bool
    events: List[Any] = Field(default_factory=list, description="Decoded AlarmEvents")
    failures: List[DecodeResult] = Field(default_factory=list, description="Events not decoded")
    calendar_version: Optional[str] = None
    error_kind: Optional[DecodeErrorKind] = None
    error_message: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def event_count(self) -> int:
        return len(self.events)
