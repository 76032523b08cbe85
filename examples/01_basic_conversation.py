"""
Example 01: Basic Conversation
==============================

Demonstrates the simplest end-to-end usage of ConciergeService:
- Building the service from CONCIERGE_* environment variables
- Creating a conversation and sending a few turns
- Watching the rolling summary kick in with a small window
- Selecting a suggestion when the verifier is configured

Requires a reachable Redis (CONCIERGE_REDIS_URL) and a provider key for the
configured model, e.g.:
    ANTHROPIC_API_KEY=sk-... uv run python examples/01_basic_conversation.py

Set CONCIERGE_VERIFIER_URL to enable plugin suggestions and policy building.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path when running directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


async def main() -> None:
    from concierge import (
        ConciergeConfig,
        ConciergeEvent,
        ConciergeService,
        ContextConfig,
        SendMessageRequest,
        StoreConfig,
        configure_logging,
    )

    print("=== Concierge Basic Conversation Example ===\n")

    env = ConciergeConfig.from_env()
    # Small window so summarisation happens within a short demo
    config = env.model_copy(
        update={
            "context": ContextConfig(window_size=4, summarize_trigger=6),
            "store": StoreConfig(db_path="/tmp/concierge_example_01.db"),
        }
    )
    configure_logging(config.logging)

    owner = "0xexampleowner"
    async with await ConciergeService.create(config) as service:
        service.event_bus.subscribe(
            ConciergeEvent.SUMMARIZATION_COMPLETED,
            lambda event, payload: print(f"  *** summarised {payload['summarized_count']} messages ***"),
        )

        conv = await service.create_conversation(owner)
        print(f"Conversation created: {conv.id}\n")

        turns = [
            "Hi! I'm new to self-custody.",
            "How do vaults work?",
            "I hold some USDC on Ethereum.",
            "I'd like to buy a little ETH every week.",
            "What fees should I expect?",
        ]

        last = None
        for i, text in enumerate(turns, 1):
            print(f"Turn {i}: {text}")
            last = await service.send_message(conv.id, SendMessageRequest(owner_key=owner, content=text))
            print(f"  Assistant: {last.message.content[:120]}")
            for suggestion in last.suggestions:
                print(f"  Suggestion {suggestion.id}: {suggestion.title} ({suggestion.plugin_id})")
            print()

        if last is not None and last.suggestions:
            picked = last.suggestions[0]
            print(f"Selecting suggestion: {picked.title}")
            built = await service.send_message(
                conv.id,
                SendMessageRequest(owner_key=owner, selected_suggestion_id=picked.id),
            )
            print(f"  Assistant: {built.message.content[:120]}")
            if built.policy_ready:
                print(f"  Policy configuration: {built.policy_ready.configuration}")

        full = await service.get_conversation(conv.id, owner)
        print(f"\nTitle: {full.conversation.title}")
        print(f"Messages stored: {len(full.messages)}")
        if full.conversation.summary:
            print(f"Summary so far: {full.conversation.summary[:200]}")

    print("\nService closed cleanly.")


if __name__ == "__main__":
    asyncio.run(main())
