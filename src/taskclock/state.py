# SPDX-License-Identifier: MIT

"""Per-invocation CLI state, set by the root callback and read by commands and views."""

from contextvars import ContextVar
from typing import Optional

_task: ContextVar[Optional[str]] = ContextVar("task", default=None)
_show_header: ContextVar[bool] = ContextVar("show_header", default=True)


def set_task(value: Optional[str]) -> None:
    _task.set(value)


def get_task() -> Optional[str]:
    return _task.get()


def set_show_header(value: bool) -> None:
    _show_header.set(value)


def get_show_header() -> bool:
    return _show_header.get()
