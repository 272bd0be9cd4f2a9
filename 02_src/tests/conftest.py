"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from agent_bridge.config import Settings  # noqa: E402
from agent_bridge.presenter import RenderError  # noqa: E402


class RecordingSink:
    """In-memory render sink that records every call."""

    def __init__(self):
        self.created: list[tuple[str, str, str]] = []
        self.updates: list[tuple[str, str, str, str | None]] = []
        self.texts: list[tuple[str, str]] = []
        self.files: list[tuple[str, Path, str]] = []
        self.fail_create = False
        self.fail_update = False

    async def create_card(self, receive_id: str, title: str, body: str) -> str:
        if self.fail_create:
            raise RenderError("create failed")
        self.created.append((receive_id, title, body))
        return f"om_{len(self.created)}"

    async def update_card(self, handle, title, body, copy_text=None) -> None:
        if self.fail_update:
            raise RenderError("update failed")
        self.updates.append((handle, title, body, copy_text))

    async def send_text(self, receive_id: str, text: str) -> None:
        self.texts.append((receive_id, text))

    async def send_file(self, receive_id: str, path: Path, category: str) -> None:
        self.files.append((receive_id, path, category))

    def bodies_for(self, receive_id: str) -> list[str]:
        return [body for rid, _, body in self.created if rid == receive_id]

    @property
    def final_update(self) -> tuple[str, str, str, str | None]:
        return self.updates[-1]


class ScriptedProvider:
    """Provider that replays a script of events.

    A script item that is callable is awaited instead of yielded, which lets
    tests act in the middle of a turn. The provider stops early once the
    cancel token is signalled, as real backends do. `on_close` is awaited
    while the stream is being closed.
    """

    name = "claude"
    display_name = "Claude Code"

    def __init__(self, script=None, error: Exception | None = None):
        self.script = list(script or [])
        self.error = error
        self.calls: list[dict] = []
        self.on_close = None

    async def stream(self, prompt, resume_token, capabilities):
        self.calls.append(
            {
                "prompt": prompt,
                "resume_token": resume_token,
                "capabilities": capabilities,
            }
        )
        try:
            for item in self.script:
                if capabilities.cancel_token.cancelled:
                    return
                if callable(item):
                    await item()
                    continue
                yield item
            if self.error is not None:
                raise self.error
        finally:
            if self.on_close is not None:
                await self.on_close()


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from agent_bridge.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def tracker(storage):
    """Create Tracker with storage."""
    from agent_bridge.tracker import Tracker

    return Tracker(storage)


@pytest.fixture
def settings():
    """Settings that pass validation without touching the environment."""
    return Settings(
        feishu_app_id="cli_test",
        feishu_app_secret="secret",
        ai_provider="codex",
        workspace="/tmp/agent-workspace",
    )


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def selector(settings, provider):
    """Selector whose "claude" entry returns the scripted provider."""
    from agent_bridge.providers import ProviderSelector

    sel = ProviderSelector(settings)
    sel.register("claude", lambda _settings: provider, "Claude Code")
    return sel


@pytest.fixture
def orchestrator(selector, sink, tracker):
    """Orchestrator wired to the scripted provider and recording sink."""
    from agent_bridge.orchestrator import ConversationOrchestrator

    return ConversationOrchestrator(
        selector=selector,
        sink=sink,
        tracker=tracker,
        provider_name="claude",
        file_sender=sink,
    )
