"""
Study text plus the AI suggestions attached to it, newest first.
"""
from __future__ import annotations

import threading
import time
from datetime import datetime
from typing import List, Optional

from confusense.models import Suggestion

DEFAULT_CONTENT = (
    "A closure is a function that has access to variables in its outer (enclosing) scope "
    "even after the outer function has returned. This is possible because functions in "
    "JavaScript form closures. The closure has access to variables in three scopes: "
    "variables in its own scope, variables in the enclosing function's scope, and global "
    "variables."
)


class StudyDocument:
    def __init__(self, content: str = DEFAULT_CONTENT):
        self.content = content
        self._suggestions: List[Suggestion] = []
        self._lock = threading.Lock()

    @property
    def suggestions(self) -> List[Suggestion]:
        with self._lock:
            return list(self._suggestions)

    def set_content(self, content: str) -> None:
        self.content = content

    def add_suggestion(self, text: str, provider: Optional[str] = None, ts: float | None = None) -> Suggestion:
        s = Suggestion(time=time.time() if ts is None else ts, text=text, provider=provider)
        with self._lock:
            self._suggestions.insert(0, s)
        return s

    def clear_suggestions(self) -> None:
        with self._lock:
            self._suggestions.clear()

    def render(self) -> str:
        parts = [self.content.rstrip()]
        for s in self.suggestions:
            stamp = datetime.fromtimestamp(s.time).strftime("%H:%M:%S")
            parts.append(f"AI ({stamp}):\n{s.text}")
        return "\n\n".join(parts)
