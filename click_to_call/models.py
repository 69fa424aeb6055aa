import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .errors import InvalidInputError

EXTENSION_RE = re.compile(r"[0-9]+")
NUMBER_RE = re.compile(r"\+?[0-9]+")


class SessionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


@dataclass(frozen=True)
class ProtocolResponse:
    """One reply block from the manager interface, plus any event blocks that belong to it."""

    headers: Tuple[Tuple[str, str], ...] = ()
    body: str = ""
    raw: str = ""
    events: Tuple["ProtocolResponse", ...] = ()

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """First value for key (case-insensitive), or default"""
        wanted = key.lower()
        for name, value in self.headers:
            if name.lower() == wanted:
                return value
        return default

    def get_all(self, key: str) -> List[str]:
        wanted = key.lower()
        return [value for name, value in self.headers if name.lower() == wanted]

    @property
    def status(self) -> Optional[str]:
        return self.get("Response")

    @property
    def message(self) -> Optional[str]:
        return self.get("Message")

    @property
    def is_success(self) -> bool:
        return self.status == "Success"

    def attribute(self, key: str) -> Optional[str]:
        """Look up key in the reply itself, then in its event blocks"""
        value = self.get(key)
        if value is not None:
            return value
        for event in self.events:
            value = event.get(key)
            if value is not None:
                return value
        return None

    def with_events(self, events: List["ProtocolResponse"]) -> "ProtocolResponse":
        raw = self.raw + "".join(event.raw for event in events)
        return ProtocolResponse(
            headers=self.headers,
            body=self.body,
            raw=raw,
            events=self.events + tuple(events),
        )


@dataclass(frozen=True)
class CallRequest:
    extension: str
    number: str

    @classmethod
    def from_raw(cls, extension: Optional[str], number: Optional[str]) -> "CallRequest":
        return cls(extension=(extension or "").strip(), number=(number or "").strip())

    def validate(self) -> None:
        """Raise InvalidInputError if the extension or number is malformed"""
        if not EXTENSION_RE.fullmatch(self.extension):
            raise InvalidInputError(f"Invalid extension format: {self.extension}")
        if not NUMBER_RE.fullmatch(self.number):
            raise InvalidInputError(f"Invalid number format: {self.number}")


@dataclass(frozen=True)
class CallResult:
    success: bool
    valid_input: bool = True
    description: str = ""
    technology: str = ""
    originate_response_raw: str = ""

    def __post_init__(self):
        if not self.valid_input and self.success:
            raise ValueError("an invalid request cannot succeed")

    @classmethod
    def failure(cls, description: str, valid_input: bool = True,
                technology: str = "", originate_response_raw: str = "") -> "CallResult":
        return cls(
            success=False,
            valid_input=valid_input,
            description=description,
            technology=technology,
            originate_response_raw=originate_response_raw,
        )

    def to_dict(self) -> Dict:
        return {
            "Success": self.success,
            "ValidInput": self.valid_input,
            "Description": self.description,
            "Technology": self.technology,
            "OriginateResponse": self.originate_response_raw,
        }
