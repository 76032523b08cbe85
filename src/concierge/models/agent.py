"""Request and response models for the inbound send-message operation."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from concierge.models.conversation import Message


class Balance(BaseModel):
    """A token balance in the user's wallet."""

    chain: str
    asset: str = ""
    symbol: str
    amount: str
    decimals: int = 18


class MessageContext(BaseModel):
    """Wallet state the client sends along with a turn."""

    vault_address: str | None = None
    balances: list[Balance] = Field(default_factory=list)
    addresses: dict[str, str] = Field(default_factory=dict)


class ActionResult(BaseModel):
    """Outcome of an action the user performed in the client app."""

    action: str
    success: bool
    error: str | None = None


class SendMessageRequest(BaseModel):
    """
    One inbound turn.

    Exactly which ability handles the turn depends on which fields are set:
    ``action_result`` wins over ``selected_suggestion_id``, which wins over
    plain ``content``.
    """

    owner_key: str
    content: str = ""
    context: MessageContext | None = None
    selected_suggestion_id: str | None = None
    action_result: ActionResult | None = None
    access_token: str | None = Field(
        default=None,
        exclude=True,
        description="Bearer token forwarded to the verifier. Never serialised.",
    )

    @property
    def balances(self) -> list[Balance]:
        return self.context.balances if self.context else []

    @property
    def addresses(self) -> dict[str, str]:
        return self.context.addresses if self.context else {}


class Suggestion(BaseModel):
    """An ephemeral, cached proposal to act through a plugin."""

    id: str
    plugin_id: str
    title: str
    description: str


class InstallRequired(BaseModel):
    """Signals that a plugin must be installed before a policy can be built."""

    plugin_id: str
    title: str
    description: str


class PolicyReady(BaseModel):
    """A built policy awaiting the user's confirmation."""

    plugin_id: str
    configuration: dict[str, Any]
    policy_suggest: Any = None


class SendMessageResponse(BaseModel):
    """Envelope returned for every successfully handled turn."""

    message: Message
    suggestions: list[Suggestion] = Field(default_factory=list)
    policy_ready: PolicyReady | None = None
    install_required: InstallRequired | None = None
