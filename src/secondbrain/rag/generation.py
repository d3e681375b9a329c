"""Text generation through a local (Ollama) or hosted (Workers AI) provider."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional, Protocol

import httpx
from pydantic import BaseModel, ValidationError

from secondbrain.config import AppConfig, HostedProviderConfig, LocalProviderConfig
from secondbrain.errors import ConfigurationError, ProviderError
from secondbrain.models import GenerationResponse

LOGGER = logging.getLogger(__name__)

UNABLE_TO_ANSWER = "Unable to generate answer."
_BODY_PREVIEW = 500


class OllamaGenerateResponse(BaseModel):
    response: str
    model: Optional[str] = None
    eval_count: int = 0
    prompt_eval_count: int = 0
    total_duration: int = 0
    eval_duration: int = 0
    prompt_eval_duration: int = 0


class WorkersAIResult(BaseModel):
    response: Optional[str] = None


class WorkersAIResponse(BaseModel):
    success: bool
    result: Optional[WorkersAIResult] = None
    errors: list[Any] = []


class ProviderReply(BaseModel):
    """What a provider extracted from a successful HTTP exchange."""

    text: str
    token_count: Optional[int] = None
    metrics: Dict[str, Any] = {}


class GenerationProvider(Protocol):
    name: str

    def resolve_model(self, override: Optional[str] = None) -> str: ...

    def complete(self, prompt: str, model: str) -> ProviderReply: ...


def _post_json(
    client: httpx.Client,
    url: str,
    payload: Dict[str, Any],
    *,
    timeout: float,
    headers: Optional[Dict[str, str]] = None,
) -> Any:
    try:
        response = client.post(url, json=payload, headers=headers, timeout=timeout)
    except httpx.TimeoutException as exc:
        raise ProviderError(f"Request to {url} timed out after {timeout:.0f}s") from exc
    except httpx.HTTPError as exc:
        raise ProviderError(f"Request to {url} failed: {exc}") from exc

    if not response.is_success:
        raise ProviderError(
            f"Provider returned an error for {url}",
            status_code=response.status_code,
            body=response.text[:_BODY_PREVIEW],
        )
    try:
        return response.json()
    except ValueError as exc:
        raise ProviderError(
            "Provider returned a response that is not JSON",
            status_code=response.status_code,
            body=response.text[:_BODY_PREVIEW],
        ) from exc


def _validate(model: type[BaseModel], data: Any) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ProviderError(f"Malformed provider response: {exc}", body=str(data)[:_BODY_PREVIEW]) from exc


class LocalProvider:
    """Ollama-style `/api/generate` endpoint."""

    name = "local"

    def __init__(self, config: LocalProviderConfig, client: httpx.Client) -> None:
        self.config = config
        self.client = client

    def resolve_model(self, override: Optional[str] = None) -> str:
        if override and override.strip():
            return override.strip()
        return self.config.model

    def complete(self, prompt: str, model: str) -> ProviderReply:
        url = f"{self.config.endpoint.rstrip('/')}/api/generate"
        data = _post_json(
            self.client,
            url,
            {"model": model, "prompt": prompt, "stream": False},
            timeout=self.config.timeout_seconds,
        )
        parsed: OllamaGenerateResponse = _validate(OllamaGenerateResponse, data)
        return ProviderReply(
            text=parsed.response,
            token_count=parsed.eval_count or None,
            metrics={
                "prompt_eval_count": parsed.prompt_eval_count,
                "eval_duration_ns": parsed.eval_duration,
                "total_duration_ns": parsed.total_duration,
            },
        )


class HostedProvider:
    """Cloudflare Workers AI `/accounts/{id}/ai/run/{model}` endpoint."""

    name = "hosted"

    def __init__(self, config: HostedProviderConfig, client: httpx.Client) -> None:
        self.config = config
        self.client = client

    def resolve_model(self, override: Optional[str] = None) -> str:
        if override and override.strip() and override.strip() != self.config.generation_model:
            LOGGER.debug("Ignoring model %r in hosted mode", override)
        return self.config.generation_model

    def complete(self, prompt: str, model: str) -> ProviderReply:
        if not self.config.api_token.strip():
            raise ProviderError("Hosted mode requires an API token (hosted.api_token)")
        if not self.config.account_id.strip():
            raise ProviderError("Hosted mode requires an account id (hosted.account_id)")

        url = (
            f"{self.config.endpoint.rstrip('/')}/accounts/{self.config.account_id}"
            f"/ai/run/{model}"
        )
        data = _post_json(
            self.client,
            url,
            {"prompt": prompt},
            timeout=self.config.timeout_seconds,
            headers={"Authorization": f"Bearer {self.config.api_token}"},
        )
        parsed: WorkersAIResponse = _validate(WorkersAIResponse, data)
        if not parsed.success:
            raise ProviderError(
                f"Hosted provider reported failure: {parsed.errors}", body=str(data)[:_BODY_PREVIEW]
            )
        return ProviderReply(text=(parsed.result.response if parsed.result else None) or "")


class GenerationRouter:
    """Runs prompts through the provider chosen at construction."""

    def __init__(
        self,
        provider: GenerationProvider,
        *,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.provider = provider
        self.timer = timer

    @property
    def mode(self) -> str:
        return self.provider.name

    def resolve_model(self, override: Optional[str] = None) -> str:
        return self.provider.resolve_model(override)

    def generate(self, prompt: str, model_hint: Optional[str] = None) -> GenerationResponse:
        """Generate an answer, substituting `UNABLE_TO_ANSWER` for an empty one.

        Raises `ProviderError` for transport failures, error statuses and
        malformed bodies.
        """
        model = self.resolve_model(model_hint)
        started = self.timer()
        reply = self.provider.complete(prompt, model)
        elapsed_ms = (self.timer() - started) * 1000

        text = reply.text.strip()
        if not text:
            LOGGER.warning("Provider %s returned an empty answer", self.provider.name)
            text = UNABLE_TO_ANSWER

        response = GenerationResponse(
            text=text,
            elapsed_ms=elapsed_ms,
            model=model,
            token_count=reply.token_count,
            metrics=dict(reply.metrics),
        )
        if response.tokens_per_second is not None:
            LOGGER.info(
                "Generation metrics - Tokens: %d, Time: %.0fms, Speed: %.2f tokens/sec",
                response.token_count,
                elapsed_ms,
                response.tokens_per_second,
            )
        else:
            LOGGER.info("Generation with %s took %.0fms", model, elapsed_ms)
        return response


def build_router(config: AppConfig, client: Optional[httpx.Client] = None) -> GenerationRouter:
    """Create the router for the configured mode."""
    client = client or httpx.Client()
    if config.mode == "local":
        provider: GenerationProvider = LocalProvider(config.local, client)
    elif config.mode == "hosted":
        provider = HostedProvider(config.hosted, client)
    else:
        raise ConfigurationError(f"Unknown mode {config.mode!r}")
    return GenerationRouter(provider)
