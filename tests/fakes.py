from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Callable, Iterable, List, Optional

from breadcount.config import EstimatorConfig
from breadcount.estimator import BreadCountEstimator

IMAGE = "data:image/jpeg;base64,/9j/4AAQSkZJRgABAQAAAQABAAD"


class FakeCompletions:
    """Stands in for `client.chat.completions`; replays canned replies or raises."""

    def __init__(self, replies: Iterable[Any]) -> None:
        self.replies: List[Any] = list(replies)
        self.calls: List[dict] = []

    def create(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        message = SimpleNamespace(content=reply)
        return SimpleNamespace(id=f"cmpl-{len(self.calls)}", choices=[SimpleNamespace(message=message)])


class FakeClient:
    def __init__(self, replies: Iterable[Any]) -> None:
        self.chat = SimpleNamespace(completions=FakeCompletions(replies))
        self.closed = 0

    def close(self) -> None:
        self.closed += 1


def fake_client(*replies: Any) -> FakeClient:
    return FakeClient(replies)


def stepping_clock(*stamps: str) -> Callable[[], str]:
    pending = list(stamps)

    def _now() -> str:
        return pending.pop(0)

    return _now


def make_estimator(*replies: Any, api_key: Optional[str] = "test-key") -> BreadCountEstimator:
    config = EstimatorConfig(api_key=api_key, model_name="test-vision-model")
    return BreadCountEstimator(config, client=fake_client(*replies))
