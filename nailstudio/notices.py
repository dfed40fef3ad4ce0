"""User-facing messages produced while applying side effects.

Routes return them under ``notices`` so the front end can show them as
toasts. Each notice is also written to the application log.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from flask import current_app

_LOG_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(frozen=True)
class Notice:
    level: str
    title: str
    message: str


class NoticeLog:
    def __init__(self) -> None:
        self._items: list[Notice] = []

    def add(self, level: str, title: str, message: str) -> Notice:
        notice = Notice(level, title, message)
        self._items.append(notice)
        current_app.logger.log(_LOG_LEVELS.get(level, logging.INFO), "%s: %s", title, message)
        return notice

    def info(self, title: str, message: str) -> Notice:
        return self.add("info", title, message)

    def success(self, title: str, message: str) -> Notice:
        return self.add("success", title, message)

    def warning(self, title: str, message: str) -> Notice:
        return self.add("warning", title, message)

    def error(self, title: str, message: str) -> Notice:
        return self.add("error", title, message)

    def titles(self) -> list[str]:
        return [notice.title for notice in self._items]

    def to_list(self) -> list[dict[str, str]]:
        return [asdict(notice) for notice in self._items]

    def __len__(self) -> int:
        return len(self._items)
