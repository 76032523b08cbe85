"""ConciergeService: the inbound API of the agent."""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from concierge.agent.base import AgentDeps
from concierge.agent.memory import MemoryChannel
from concierge.agent.router import AbilityRouter
from concierge.cache.suggestions import SuggestionCache
from concierge.cache.volatile import VolatileCache
from concierge.compaction.summarizer import Summarizer
from concierge.context.window import ContextWindowManager
from concierge.errors import ConversationAccessError, ValidationError
from concierge.events.bus import ConciergeEvent, EventBus
from concierge.llm.completion import CompletionEngine
from concierge.models.agent import SendMessageRequest, SendMessageResponse
from concierge.models.config import ConciergeConfig
from concierge.models.conversation import Conversation, ConversationWithMessages
from concierge.services.plugins import PluginSkillsProvider
from concierge.services.verifier import VerifierClient
from concierge.store.conversations import ConversationStore
from concierge.store.database import ConversationNotFoundError, Database
from concierge.store.memory import UserMemoryStore
from concierge.store.messages import MessageStore
from concierge.store.pool import StorePool


class ConciergeService:
    """
    Wire the stores, caches and clients together and expose the turn API.

    Usage::

        async with await ConciergeService.create(ConciergeConfig.from_env()) as service:
            conversation = await service.create_conversation("0xabc")
            response = await service.send_message(
                conversation.id,
                SendMessageRequest(owner_key="0xabc", content="How do I DCA into ETH?"),
                timeout=30,
            )

    Every collaborator can be injected, which is how tests swap in an
    in-memory Redis double, a scripted completion engine or a stubbed
    verifier transport. Injected resources stay owned by the caller:
    ``close()`` only releases what ``create()`` opened itself.
    """

    def __init__(
        self,
        config: ConciergeConfig,
        database: Database,
        router: AbilityRouter,
        deps: AgentDeps,
        event_bus: EventBus,
        *,
        owned_cache: VolatileCache | None = None,
        owned_verifier: VerifierClient | None = None,
    ) -> None:
        self._config = config
        self._database = database
        self._router = router
        self._deps = deps
        self._event_bus = event_bus
        self._owned_cache = owned_cache
        self._owned_verifier = owned_verifier
        self._logger = structlog.get_logger("concierge.service")

    @classmethod
    async def create(
        cls,
        config: ConciergeConfig | None = None,
        *,
        pool: StorePool | None = None,
        cache: VolatileCache | None = None,
        engine: CompletionEngine | None = None,
        verifier: VerifierClient | None = None,
        event_bus: EventBus | None = None,
    ) -> ConciergeService:
        """
        Build a ready-to-use service.

        Args:
            config: Deployment configuration. Defaults to ``ConciergeConfig()``.
            pool: Optional shared SQLite connection pool. The caller closes it.
            cache: Volatile cache to use instead of connecting to
                ``config.cache.redis_url``.
            engine: Completion engine to use instead of the litellm adapter.
            verifier: Verifier client to use instead of the one built from
                ``config.verifier``. Build and plugin discovery are disabled
                when neither is available.
            event_bus: Bus to publish lifecycle events on.

        Raises:
            aiosqlite.Error: If the database cannot be initialized.
        """
        cfg = config or ConciergeConfig()
        bus = event_bus or EventBus()

        database = Database(cfg.store, pool=pool)
        await database.initialize()

        owned_cache = None
        if cache is None:
            cache = owned_cache = VolatileCache.from_url(
                cfg.cache.redis_url, key_prefix=cfg.cache.key_prefix
            )
        owned_verifier = None
        if verifier is None:
            verifier = owned_verifier = VerifierClient.from_config(cfg.verifier)

        engine = engine or CompletionEngine(cfg.completion)
        messages = MessageStore(database)
        conversations = ConversationStore(database)
        memory_store = (
            UserMemoryStore(database, max_chars=cfg.memory.max_chars)
            if cfg.memory.enabled
            else None
        )
        skills = (
            PluginSkillsProvider(verifier, volatile=cache, ttl=cfg.cache.skills_ttl_seconds)
            if verifier is not None
            else None
        )

        deps = AgentDeps(
            messages=messages,
            conversations=conversations,
            engine=engine,
            suggestions=SuggestionCache(cache, ttl=cfg.cache.suggestion_ttl_seconds),
            memory=MemoryChannel(memory_store, bus),
            verifier=verifier,
            skills=skills,
            event_bus=bus,
        )
        summarizer = Summarizer(conversations, engine, cfg.context, bus)
        window_manager = ContextWindowManager(messages, conversations, summarizer, cfg.context)
        router = AbilityRouter(deps, window_manager)

        return cls(
            cfg,
            database,
            router,
            deps,
            bus,
            owned_cache=owned_cache,
            owned_verifier=owned_verifier,
        )

    async def close(self) -> None:
        """Release the database connection and any clients ``create()`` opened."""
        if self._owned_verifier is not None:
            await self._owned_verifier.aclose()
        if self._owned_cache is not None:
            await self._owned_cache.close()
        await self._database.close()
        self._logger.info("service_closed")

    async def __aenter__(self) -> ConciergeService:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    @property
    def config(self) -> ConciergeConfig:
        return self._config

    @property
    def event_bus(self) -> EventBus:
        """The bus lifecycle events are published on."""
        return self._event_bus

    @property
    def router(self) -> AbilityRouter:
        return self._router

    # ── Turns ──────────────────────────────────────────────────────────────

    async def send_message(
        self,
        conversation_id: str,
        request: SendMessageRequest,
        *,
        timeout: float | None = None,
    ) -> SendMessageResponse:
        """
        Process one user turn and return the stored assistant reply.

        Args:
            conversation_id: Conversation the turn belongs to.
            request: Turn payload; ``owner_key`` must own the conversation.
            timeout: Optional deadline in seconds for the whole turn.

        Raises:
            ValidationError: If the request carries nothing actionable.
            ConversationAccessError: If the conversation is missing, archived
                or owned by someone else.
            SuggestionNotFoundError: If the selected suggestion expired.
            UpstreamError: If the completion engine, verifier, cache or store failed.
            MalformedOutputError: If the model skipped a required tool.
            TimeoutError: If *timeout* elapsed first.
        """
        async with asyncio.timeout(timeout):
            return await self._router.process_message(conversation_id, request)

    # ── Conversations ──────────────────────────────────────────────────────

    async def create_conversation(
        self, owner_key: str, *, title: str | None = None
    ) -> Conversation:
        if not owner_key:
            raise ValidationError("owner_key is required")
        conversation = await self._deps.conversations.create(owner_key, title=title)
        self._event_bus.publish(
            ConciergeEvent.CONVERSATION_CREATED,
            {"conversation_id": conversation.id},
        )
        return conversation

    async def get_conversation(
        self, conversation_id: str, owner_key: str
    ) -> ConversationWithMessages:
        try:
            return await self._deps.conversations.get_with_messages(conversation_id, owner_key)
        except ConversationNotFoundError as exc:
            raise ConversationAccessError(conversation_id) from exc

    async def list_conversations(
        self, owner_key: str, *, limit: int = 20, offset: int = 0
    ) -> tuple[list[Conversation], int]:
        """Return a page of live conversations, newest activity first, and the total."""
        if limit < 1 or offset < 0:
            raise ValidationError("limit must be positive and offset non-negative")
        return await self._deps.conversations.list(owner_key, limit=limit, offset=offset)

    async def archive_conversation(self, conversation_id: str, owner_key: str) -> None:
        try:
            await self._deps.conversations.archive(conversation_id, owner_key)
        except ConversationNotFoundError as exc:
            raise ConversationAccessError(conversation_id) from exc
        self._event_bus.publish(
            ConciergeEvent.CONVERSATION_ARCHIVED,
            {"conversation_id": conversation_id},
        )
