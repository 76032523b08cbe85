"""
System prompts for the three abilities.

The fixed instruction blocks are plain strings; sections that depend on
request data (wallet context, plugin skills, the selected action) are
rendered from Jinja2 templates.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

from jinja2 import Template

from concierge.models.agent import ActionResult, Balance, Suggestion

if TYPE_CHECKING:
    from concierge.services.plugins import PluginSkill

SYSTEM_PROMPT = """\
You are the assistant built into a self-custodial, multi-device crypto wallet app. \
You help users manage their crypto assets through natural conversation.

## About the Wallet

- **No seed phrases**: the private key is split across several devices using threshold \
signatures, so no single compromised device can move funds.
- **Vaults**: each vault is a set of key shares that together control the user's assets \
on many chains.
- **Plugins**: verified plugins automate recurring actions such as DCA, swaps and sends.

## Your Role

1. **Answer questions** about the wallet, crypto, DeFi, and blockchain technology
2. **Detect user intent** when they want to perform actions (DCA, swaps, sends)
3. **Suggest actions** by offering plugin-based automation options
4. **Guide users** through setting up recurring transactions

## Guidelines

1. **Be concise**: Users are on mobile devices. Keep responses brief but helpful.
2. **Be specific**: When suggesting actions, include concrete details based on the user's balances.
3. **Be balance-aware**: Check the user's balances before suggesting swap or send amounts. \
If a balance is too low (under ~$5 equivalent) for the source asset, warn that the swap may \
fail due to provider minimums.
4. **Be security-conscious**: Remind users about best practices when relevant.
5. **Ask clarifying questions** if the user's intent is unclear.
6. **Stay in scope**: For actions outside your capabilities, explain what the wallet can do instead.
7. **Don't fabricate**: If you are unsure about something product-specific, say so.

## Response Format

Always use the respond_to_user tool to provide your response. This ensures proper \
formatting and suggestion handling."""

CONFIRM_ACTION_PROMPT = """\
You are the wallet assistant. The user just completed an action in the app, and you need \
to confirm the result.

## Guidelines

1. **For successful actions**: Celebrate briefly and summarize what was accomplished. \
Remind them what the automation will do.
2. **For failed actions**: Be empathetic, explain what went wrong in simple terms, and \
offer helpful next steps.
3. **Keep it concise**: Users are on mobile devices.
4. **Be specific**: Reference the actual action that was taken based on the conversation history.

## Common Actions

- **create_policy**: User created a recurring automation (DCA, swap, send)
- **install_plugin**: User installed a plugin to enable new features
- **cancel_policy**: User cancelled an active automation
- **update_policy**: User modified an existing automation"""

POLICY_BUILDER_PROMPT = """\
You are building a policy configuration for the wallet.

Based on the conversation history and the user's selected action, create a configuration \
that matches the plugin's schema.

## Instructions

1. Extract relevant parameters from the conversation (amounts, tokens, chains, frequency, etc.)
2. Map them to the plugin's schema fields
3. Use the user's wallet addresses for source addresses
4. For tokens, use the correct token contract addresses. For native assets (ETH, BTC, etc.), \
leave the token field as an empty string ""
5. Ensure amounts are in human-readable format (e.g., "10" for 10 USDC, "0.5" for 0.5 ETH)

## Important

- Use the addresses from the user's context for the "from" address
- Never set a swap amount below ~$5 equivalent, as DEX providers reject swaps that are too small
- If no balance information is available, use the requested amount but note in the \
explanation that the user should ensure sufficient funds
- If frequency was discussed, include it
- If any required field is unclear, make a reasonable default based on the conversation"""

MEMORY_MANAGEMENT_INSTRUCTIONS = """

## Memory Management

You have a persistent memory document about this user that survives across conversations. \
You can update it anytime using the `update_memory` tool.

### When to Update
- User shares a preference ("I prefer weekly DCA", "I like ETH")
- User reveals personal info ("My name is Alex")
- User describes their strategy ("I only DCA into top 10 coins")
- An action completes (policy created, plugin installed)

### When NOT to Update
- Trivial greetings or transient chat
- Information already in your memory document
- Data available from the app (balances, addresses, prices)

### How to Update
- Send the COMPLETE updated document; it replaces the entire memory
- Keep it under 4000 characters
- Organize naturally using markdown sections
- Remove outdated information when updating
- Always include `respond_to_user` alongside `update_memory`"""

_PLUGINS_TEMPLATE = Template(
    "\n\n## Available Plugins\n\n"
    "The following plugins are available for automation. When users express intent matching "
    "a plugin's capabilities, suggest using that plugin.\n"
    "{% for p in plugins %}\n### {{ p.name }} ({{ p.plugin_id }})\n\n{{ p.skills }}\n{% endfor %}",
    keep_trailing_newline=True,
)

_WALLET_TEMPLATE = Template(
    "\n\n## User's Wallet Context\n"
    "{% if balances %}\n### Balances\n"
    "{% for b in balances %}- {{ b.symbol }} on {{ b.chain }}: {{ b.amount }}"
    "{% if with_assets %} ({{ b.asset }}){% endif %}\n{% endfor %}{% endif %}"
    "{% if addresses %}\n### {{ addresses_heading }}\n"
    "{% for chain, address in addresses.items() %}- {{ chain }}: {{ address }}\n{% endfor %}"
    "{% endif %}",
    keep_trailing_newline=True,
)

_SELECTED_ACTION_TEMPLATE = Template(
    "\n\n## Selected Action\n"
    "Title: {{ suggestion.title }}\n"
    "Description: {{ suggestion.description }}\n"
    "Plugin: {{ suggestion.plugin_id }}\n\n"
    "## Configuration Schema\n"
    "The configuration must match this JSON schema:\n```json\n{{ schema_json }}\n```"
    "{% if examples_json %}\n\n## Configuration Examples\n"
    "Here are valid configuration examples:\n```json\n{{ examples_json }}\n```{% endif %}"
)


def wallet_context_section(
    balances: Sequence[Balance],
    addresses: Mapping[str, str],
    *,
    for_builder: bool = False,
) -> str:
    """Render balances and addresses. Empty when there is neither."""
    if not balances and not addresses:
        return ""
    return _WALLET_TEMPLATE.render(
        balances=balances,
        addresses=addresses,
        with_assets=for_builder,
        addresses_heading="Addresses (use these for 'from' fields)" if for_builder else "Addresses",
    )


def plugins_section(plugins: Sequence[PluginSkill]) -> str:
    if not plugins:
        return ""
    return _PLUGINS_TEMPLATE.render(plugins=plugins)


def memory_section(content: str | None) -> str:
    """Wrap the user's memory document for injection. Empty when there is none."""
    if not content:
        return ""
    return (
        "\n\n## Your Memories About This User\n\n"
        "This is your persistent memory document about this user. Use it to personalize\n"
        "your responses naturally; don't repeat it back unless relevant.\n\n" + content
    )


def with_summary(base_prompt: str, summary: str | None) -> str:
    """Append the earlier-conversation summary, if any, to *base_prompt*."""
    if summary is None:
        return base_prompt
    return base_prompt + "\n\n## Earlier Conversation Summary\n\n" + summary


def detect_prompt(
    balances: Sequence[Balance],
    addresses: Mapping[str, str],
    plugins: Sequence[PluginSkill],
) -> str:
    return SYSTEM_PROMPT + plugins_section(plugins) + wallet_context_section(balances, addresses)


def policy_builder_prompt(
    suggestion: Suggestion,
    schema_json: str,
    examples_json: str,
    balances: Sequence[Balance],
    addresses: Mapping[str, str],
) -> str:
    return (
        POLICY_BUILDER_PROMPT
        + _SELECTED_ACTION_TEMPLATE.render(
            suggestion=suggestion,
            schema_json=schema_json,
            examples_json=examples_json,
        )
        + wallet_context_section(balances, addresses, for_builder=True)
    )


def confirm_action_prompt(result: ActionResult) -> str:
    lines = [
        CONFIRM_ACTION_PROMPT,
        "",
        "## Action Result",
        f"Action: {result.action}",
        f"Success: {'Yes' if result.success else 'No'}",
    ]
    if not result.success and result.error:
        lines.append(f"Error: {result.error}")
    return "\n".join(lines)


def action_result_message(result: ActionResult) -> str:
    """Synthetic user turn describing what happened in the client app."""
    if result.success:
        return f"[Action completed: {result.action} was successful]"
    if result.error:
        return f"[Action failed: {result.action} failed with error: {result.error}]"
    return f"[Action failed: {result.action} was not successful]"


def truncate_title(content: str, max_len: int = 50) -> str:
    if len(content) <= max_len:
        return content
    return content[: max_len - 3] + "..."
