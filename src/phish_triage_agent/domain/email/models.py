"""Email domain models."""

from __future__ import annotations

from datetime import datetime, timezone
import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

_IPV4_PATTERN = re.compile(r"\[?(\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})\]?")
_ANGLE_ADDRESS_PATTERN = re.compile(r"<(.+?)>")


class NormalizedEmail(BaseModel):
    """Forwarded email already cleared by upstream intake (loop, rate-limit, dedup)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    sender: str = Field(alias="from")
    recipient: str = Field(default="", alias="to")
    subject: str = ""
    body: str = ""
    html: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("headers", mode="before")
    @classmethod
    def _lowercase_header_keys(cls, value: object) -> dict[str, str]:
        if not isinstance(value, dict):
            return {}
        return {str(key).strip().lower(): str(item) for key, item in value.items()}

    @property
    def sender_address(self) -> str:
        match = _ANGLE_ADDRESS_PATTERN.search(self.sender)
        return (match.group(1) if match else self.sender).strip()

    @property
    def display_name(self) -> str:
        if "<" not in self.sender:
            return ""
        return self.sender.split("<", 1)[0].strip().strip('"')

    @property
    def sender_ip(self) -> str | None:
        """First IPv4 literal found in the originating-ip or received headers."""

        for key in ("x-originating-ip", "x-sender-ip", "received"):
            match = _IPV4_PATTERN.search(self.headers.get(key, ""))
            if match:
                return match.group(1)
        return None
