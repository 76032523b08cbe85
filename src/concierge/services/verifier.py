"""HTTP client for the plugin/policy verifier service."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
import structlog
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from concierge.models.config import VerifierConfig

_logger = structlog.get_logger("concierge.verifier")


class VerifierError(Exception):
    """Raised when a verifier call fails at the transport, status or decoding level."""

    def __init__(self, operation: str, reason: str, status_code: int | None = None) -> None:
        super().__init__(f"verifier {operation} failed: {reason}")
        self.operation = operation
        self.reason = reason
        self.status_code = status_code


class RecipeSchema(BaseModel):
    """A plugin's recipe specification: what a policy configuration must look like."""

    supported_resources: list[dict[str, Any]] = Field(default_factory=list)
    configuration: dict[str, Any] | None = None
    configuration_example: list[dict[str, Any]] | None = None


class AvailablePlugin(BaseModel):
    id: str
    name: str = ""
    skills_md: str = ""


class VerifierClient:
    """
    Async client for the verifier REST API.

    Every response wraps its payload in a ``data`` object. Non-200 statuses,
    transport failures and undecodable bodies all raise ``VerifierError``.

    Args:
        base_url: Verifier root URL, e.g. ``https://verifier.example.com``.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport, used by tests to stub the server.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: VerifierConfig) -> VerifierClient | None:
        if not config.url:
            return None
        return cls(config.url, timeout=config.timeout_seconds)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, headers=headers, json=json_body)
        except httpx.HTTPError as exc:
            raise VerifierError(operation, f"http request: {exc}") from exc

        if response.status_code != httpx.codes.OK:
            raise VerifierError(
                operation,
                f"unexpected status {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise VerifierError(operation, f"decode response: {exc}") from exc
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise VerifierError(operation, "decode response: missing data object")
        return data

    async def is_plugin_installed(self, access_token: str, plugin_id: str) -> bool:
        """Check whether *plugin_id* is installed for the bearer of *access_token*."""
        data = await self._request(
            "is_plugin_installed",
            "GET",
            "/plugins/installed",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        plugins = data.get("plugins") or []
        return any(isinstance(p, dict) and p.get("id") == plugin_id for p in plugins)

    async def get_recipe_schema(self, plugin_id: str) -> RecipeSchema:
        data = await self._request(
            "get_recipe_schema",
            "GET",
            f"/plugins/{quote(plugin_id, safe='')}/recipe-specification",
        )
        try:
            return RecipeSchema.model_validate(data)
        except PydanticValidationError as exc:
            raise VerifierError("get_recipe_schema", f"decode response: {exc}") from exc

    async def get_policy_suggest(
        self, plugin_id: str, configuration: dict[str, Any]
    ) -> dict[str, Any]:
        """
        Ask the plugin to turn *configuration* into policy rules.

        Returns the raw ``data`` object (``rules``, ``rateLimitWindow``,
        ``maxTxsPerWindow``), which is passed to the client untouched.
        """
        return await self._request(
            "get_policy_suggest",
            "POST",
            f"/plugins/{quote(plugin_id, safe='')}/recipe-specification/suggest",
            json_body={"configuration": configuration},
        )

    async def list_available_plugins(self) -> list[AvailablePlugin]:
        """List plugins that publish skills markdown. Plugins without it are skipped."""
        data = await self._request("list_available_plugins", "GET", "/plugins/available")
        try:
            plugins = [AvailablePlugin.model_validate(p) for p in data.get("plugins") or []]
        except PydanticValidationError as exc:
            raise VerifierError("list_available_plugins", f"decode response: {exc}") from exc
        available = [p for p in plugins if p.skills_md]
        _logger.debug("plugins_listed", total=len(plugins), with_skills=len(available))
        return available
