"""
Shared fixtures for the workbench tests.
"""

import asyncio

import pytest

from workbench.entities.models import PresetInput
from workbench.entities.orchestrator import RequestOrchestrator
from workbench.entities.presets import PresetRegistry
from workbench.entities.session import Workbench
from workbench.entities.storage import MemoryStorage, configure_storage
from workbench.entities.threads import ThreadRegistry


class FakeClock:
    """Deterministic millisecond clock that ticks on every read."""

    def __init__(self, start: int = 1_700_000_000_000, step: int = 1000):
        self.now = start
        self.step = step

    def __call__(self) -> int:
        self.now += self.step
        return self.now


class StubCompletion:
    """
    Stands in for CompletionClient.

    Records every call. When ``gate`` is set the call blocks until the event
    fires, which keeps a request in flight for as long as a test needs.
    """

    def __init__(self, reply: str = "Hello from the assistant", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.gate: asyncio.Event | None = None
        self.calls: list[dict] = []

    async def complete(self, endpoint, api_key, model, messages, extra_parameters=None):
        self.calls.append({
            "endpoint": endpoint,
            "api_key": api_key,
            "model": model,
            "messages": messages,
            "extra_parameters": extra_parameters,
        })
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.reply


async def settle(rounds: int = 5) -> None:
    """Let scheduled tasks run up to their next suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture(autouse=True)
def storage():
    """Fresh in-memory backends for both scopes in every test."""
    local, session = MemoryStorage(), MemoryStorage()
    configure_storage(local=local, session=session)
    yield local, session
    configure_storage(local=None, session=None)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def threads(clock):
    return ThreadRegistry(clock=clock)


@pytest.fixture
def presets():
    return PresetRegistry()


@pytest.fixture
def stub():
    return StubCompletion()


@pytest.fixture
def orchestrator(threads, presets, stub, clock):
    return RequestOrchestrator(threads, presets, stub, clock=clock)


@pytest.fixture
def keyed_preset(presets):
    """An active preset with an API key, instructions and extra parameters."""
    return presets.create(PresetInput(
        name="Test preset",
        model="openai/gpt-4o-mini",
        instructions="  Be brief.  ",
        api_key="sk-test",
        api_endpoint="https://example.test/v1/chat/completions",
        request_parameters=[{"name": "temperature", "value": 0.2}],
    ))


@pytest.fixture
def workbench(threads, presets, orchestrator, clock):
    return Workbench(threads, presets, orchestrator, clock=clock)
