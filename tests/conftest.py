import io
import json
from typing import Any, Dict, List, Optional

import pytest

from argo_bridge.logging_utils import StructuredLogger


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None, url: str = "") -> None:
        self.status_code = status_code
        self.url = url
        self.content = json.dumps(body).encode("utf-8") if body is not None else b""

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")

    def json(self) -> Any:
        return json.loads(self.content)


class FakeSession:
    """Stands in for the ``requests`` module: replays queued responses and records every call."""

    def __init__(self, *responses: Any) -> None:
        self.responses: List[Any] = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def queue(self, *responses: Any) -> "FakeSession":
        self.responses.extend(responses)
        return self

    def request(self, method: str, url: str, timeout: Optional[float] = None, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, "timeout": timeout, **kwargs})
        if not self.responses:
            raise AssertionError(f"unexpected request: {method} {url}")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


class LogCapture:
    def __init__(self) -> None:
        self.out = io.StringIO()
        self.err = io.StringIO()
        self.logger = StructuredLogger("DEBUG", json_output=True, stream=self.out, err_stream=self.err)

    def entries(self) -> List[Dict[str, Any]]:
        lines = self.out.getvalue().splitlines() + self.err.getvalue().splitlines()
        return [json.loads(line) for line in lines if line.strip()]

    def messages(self, level: Optional[str] = None) -> List[str]:
        return [e["msg"] for e in self.entries() if level is None or e["level"] == level]


@pytest.fixture
def logs() -> LogCapture:
    return LogCapture()


@pytest.fixture
def log(logs: LogCapture) -> StructuredLogger:
    return logs.logger
