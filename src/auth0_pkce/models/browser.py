"""Results returned by a browser authenticator."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class BrowserResultType(str, Enum):
    SUCCESS = "success"
    CANCEL = "cancel"
    ERROR = "error"


@dataclass(frozen=True)
class BrowserResult:
    """Terminal outcome of one browser authentication session.

    ``url`` is the callback URL the user agent was redirected to, set only
    for successful sessions.
    """

    type: BrowserResultType
    url: str | None = None
    message: str | None = None

    @classmethod
    def success(cls, url: str) -> BrowserResult:
        return cls(BrowserResultType.SUCCESS, url=url)

    @classmethod
    def cancel(cls, message: str | None = None) -> BrowserResult:
        return cls(BrowserResultType.CANCEL, message=message)

    @classmethod
    def error(cls, message: str) -> BrowserResult:
        return cls(BrowserResultType.ERROR, message=message)

    def is_success(self) -> bool:
        return self.type is BrowserResultType.SUCCESS

    def is_cancel(self) -> bool:
        return self.type is BrowserResultType.CANCEL

    def is_error(self) -> bool:
        return self.type is BrowserResultType.ERROR
