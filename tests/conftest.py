"""Shared fixtures for Concierge tests."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio
from fakeredis import FakeAsyncRedis, FakeServer

from concierge.cache.suggestions import SuggestionCache
from concierge.cache.volatile import VolatileCache
from concierge.events.bus import ConciergeEvent, EventBus
from concierge.llm.completion import (
    CompletionRequest,
    CompletionResponse,
    TextBlock,
    ToolCallBlock,
)
from concierge.models.config import ConciergeConfig, MemoryConfig, StoreConfig
from concierge.models.conversation import Message, Role
from concierge.service import ConciergeService
from concierge.services.verifier import VerifierClient
from concierge.store.conversations import ConversationStore
from concierge.store.database import Database
from concierge.store.memory import UserMemoryStore
from concierge.store.messages import MessageStore
from concierge.store.pool import StorePool

OWNER = "0xowner"


# ── Test doubles ───────────────────────────────────────────────────────────────


Responder = CompletionResponse | Exception | Callable[[CompletionRequest], CompletionResponse]


class ScriptedEngine:
    """
    Completion engine double.

    Queued responses are handed out in order; once the queue is empty the
    ``default`` responder answers. Every request is recorded.
    """

    def __init__(self, *responses: Responder, default: Responder | None = None) -> None:
        self.queue: list[Responder] = list(responses)
        self.default = default
        self.requests: list[CompletionRequest] = []

    def push(self, *responses: Responder) -> None:
        self.queue.extend(responses)

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        self.requests.append(request)
        responder = self.queue.pop(0) if self.queue else self.default
        if responder is None:
            raise AssertionError("ScriptedEngine ran out of responses")
        if isinstance(responder, Exception):
            raise responder
        if callable(responder):
            return responder(request)
        return responder


def text_response(text: str) -> CompletionResponse:
    return CompletionResponse(blocks=[TextBlock(text=text)], model="test-model")


def tool_call(name: str, arguments: dict[str, Any] | None) -> ToolCallBlock:
    raw = json.dumps(arguments) if arguments is not None else "not json"
    return ToolCallBlock(name=name, arguments=arguments, raw_arguments=raw, id=f"call_{name}")


def tool_response(*calls: ToolCallBlock, text: str = "") -> CompletionResponse:
    blocks: list[Any] = [TextBlock(text=text)] if text else []
    blocks.extend(calls)
    return CompletionResponse(blocks=blocks, model="test-model")


class FakeVerifier:
    """
    Scriptable verifier server behind ``httpx.MockTransport``.

    Routes mirror the real service. Set ``status`` to fail every request
    with that HTTP status, or add paths to ``failing`` to fail only those.
    """

    def __init__(self) -> None:
        self.installed: set[str] = set()
        self.configuration_schema: dict[str, Any] = {
            "type": "object",
            "properties": {
                "from": {"type": "object"},
                "fromAmount": {"type": "string"},
                "frequency": {"type": "string"},
            },
        }
        self.configuration_example: list[dict[str, Any]] | None = None
        self.suggest: dict[str, Any] = {
            "rules": [{"resource": "ethereum.swap"}],
            "rateLimitWindow": 3600,
            "maxTxsPerWindow": 1,
        }
        self.available: list[dict[str, Any]] = []
        self.status: int | None = None
        self.failing: set[str] = set()
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status is not None:
            return httpx.Response(self.status, text="verifier unavailable")

        path = request.url.path
        if path in self.failing:
            return httpx.Response(500, text="internal error")
        if path == "/plugins/installed":
            return httpx.Response(
                200, json={"data": {"plugins": [{"id": p} for p in sorted(self.installed)]}}
            )
        if path == "/plugins/available":
            return httpx.Response(200, json={"data": {"plugins": self.available}})
        if path.endswith("/recipe-specification/suggest"):
            return httpx.Response(200, json={"data": self.suggest})
        if path.endswith("/recipe-specification"):
            return httpx.Response(
                200,
                json={
                    "data": {
                        "supported_resources": [{"resource_path": "ethereum.swap"}],
                        "configuration": self.configuration_schema,
                        "configuration_example": self.configuration_example,
                    }
                },
            )
        return httpx.Response(404, json={"error": "not found"})

    def client(self) -> VerifierClient:
        return VerifierClient(
            "https://verifier.test", transport=httpx.MockTransport(self.handler)
        )

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


def make_message(
    conversation_id: str,
    role: Role = Role.USER,
    content: str = "hello",
) -> Message:
    """Helper to create an unsaved test Message."""
    return Message(conversation_id=conversation_id, role=role, content=content)


# ── Fixtures ───────────────────────────────────────────────────────────────────


@pytest.fixture
def config(tmp_path):
    """ConciergeConfig with a temp database path and default window settings."""
    return ConciergeConfig(store=StoreConfig(db_path=str(tmp_path / "test.db")))


@pytest_asyncio.fixture
async def pool():
    """StorePool for the test database. Closed after each test."""
    p = StorePool()
    yield p
    await p.close_all()


@pytest_asyncio.fixture
async def db(config, pool):
    """Initialized Database backed by a temp SQLite file (pool-managed)."""
    d = Database(config.store, pool=pool)
    await d.initialize()
    yield d
    await d.close()


@pytest.fixture
def messages(db):
    return MessageStore(db)


@pytest.fixture
def conversations(db):
    return ConversationStore(db)


@pytest.fixture
def memory_store(db):
    return UserMemoryStore(db, max_chars=4000)


@pytest_asyncio.fixture
async def conversation(conversations):
    """A pre-created conversation owned by ``OWNER``."""
    return await conversations.create(OWNER)


@pytest.fixture
def redis_server():
    """In-process Redis server. Set ``connected = False`` to simulate an outage."""
    return FakeServer()


@pytest_asyncio.fixture
async def fake_redis(redis_server):
    client = FakeAsyncRedis(server=redis_server, decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def volatile(fake_redis):
    return VolatileCache(fake_redis)


@pytest.fixture
def suggestion_cache(volatile):
    return SuggestionCache(volatile, ttl=3600)


@pytest.fixture
def engine():
    return ScriptedEngine()


@pytest.fixture
def event_bus():
    """EventBus with a .collected list for asserting events."""
    bus = EventBus()
    collected: list[tuple[ConciergeEvent, dict[str, Any]]] = []

    def _collect(event: ConciergeEvent, payload: dict[str, Any]) -> None:
        collected.append((event, payload))

    bus.subscribe_all(_collect)
    bus.collected = collected  # type: ignore[attr-defined]
    return bus


@pytest.fixture
def verifier_server():
    return FakeVerifier()


@pytest_asyncio.fixture
async def verifier(verifier_server):
    client = verifier_server.client()
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def service(config, pool, volatile, engine, verifier, event_bus):
    """ConciergeService wired to the test doubles, memory side-channel enabled."""
    svc = await ConciergeService.create(
        config,
        pool=pool,
        cache=volatile,
        engine=engine,  # type: ignore[arg-type]
        verifier=verifier,
        event_bus=event_bus,
    )
    yield svc
    await svc.close()


@pytest_asyncio.fixture
async def service_without_memory(config, pool, volatile, engine, verifier, event_bus):
    """ConciergeService with the memory side-channel disabled, so tools are forced."""
    cfg = config.model_copy(update={"memory": MemoryConfig(enabled=False)})
    svc = await ConciergeService.create(
        cfg,
        pool=pool,
        cache=volatile,
        engine=engine,  # type: ignore[arg-type]
        verifier=verifier,
        event_bus=event_bus,
    )
    yield svc
    await svc.close()
