import pathlib
import sys
from typing import Any, AsyncIterator, Iterable

import pytest
from pydantic import SecretStr

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from playground.chat.notifications import LoggingNotifier  # noqa: E402
from playground.chat.types import StreamDelta  # noqa: E402
from playground.config import Settings  # noqa: E402
from playground.errors import TransportError  # noqa: E402
from playground.schemas.image import GenerateContentResponse  # noqa: E402


class FakeChatTransport:
    """Replay scripted deltas, optionally failing after them."""

    def __init__(
        self,
        deltas: Iterable[StreamDelta] = (),
        *,
        error: Exception | None = None,
    ) -> None:
        self.deltas = list(deltas)
        self.error = error
        self.requests: list[Any] = []

    async def stream_chat(self, request: Any) -> AsyncIterator[StreamDelta]:
        self.requests.append(request)
        for delta in self.deltas:
            yield delta
        if self.error is not None:
            raise self.error


class FakeImageTransport:
    def __init__(
        self,
        body: dict[str, Any] | None = None,
        *,
        error: Exception | None = None,
    ) -> None:
        self.body = body or {}
        self.error = error
        self.requests: list[Any] = []

    async def generate_image(self, request: Any) -> GenerateContentResponse:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return GenerateContentResponse.model_validate(self.body)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        openai_api_key=SecretStr("test-openai"),
        gemini_api_key=SecretStr("test-gemini"),
        default_model=None,
    )


@pytest.fixture
def notifier() -> LoggingNotifier:
    return LoggingNotifier()


@pytest.fixture
def transport_error() -> TransportError:
    return TransportError(503, {"message": "upstream unavailable"})
