from dataclasses import dataclass, field
from itertools import count
from typing import List, Literal


ToastLevel = Literal["success", "error"]

_ids = count(1)


@dataclass
class Toast:
    level: ToastLevel
    text: str
    id: int = field(default_factory=lambda: next(_ids))


class ToastQueue:
    """Transient, dismissible user notifications."""

    def __init__(self) -> None:
        self._items: List[Toast] = []

    def success(self, text: str) -> Toast:
        return self._push(Toast("success", text))

    def error(self, text: str) -> Toast:
        return self._push(Toast("error", text))

    def dismiss(self, toast_id: int) -> None:
        self._items = [t for t in self._items if t.id != toast_id]

    def clear(self) -> None:
        self._items.clear()

    @property
    def items(self) -> List[Toast]:
        return list(self._items)

    def texts(self, level: ToastLevel | None = None) -> List[str]:
        return [t.text for t in self._items if level is None or t.level == level]

    def _push(self, toast: Toast) -> Toast:
        self._items.append(toast)
        return toast
