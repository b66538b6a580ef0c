from __future__ import annotations

from dataclasses import dataclass

from finapi.core.config import Settings, settings as default_settings


PROVIDERS = ("groq", "custom")


@dataclass(frozen=True)
class AIBackendConfig:
    provider: str
    base_url: str
    model: str
    api_key: str
    api_key_header: str = "Authorization"
    api_key_prefix: str = "Bearer"
    timeout: float = 30.0
    max_attempts: int = 3
    retry_delay: float = 1.0

    @property
    def enabled(self) -> bool:
        return bool(self.base_url and self.api_key)

    def headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        header = self.api_key_header or "Authorization"
        prefix = self.api_key_prefix or ""
        if header.lower() == "authorization" and prefix and not prefix.endswith(" "):
            prefix = prefix + " "
        return {header: f"{prefix}{self.api_key}" if prefix else self.api_key}


def _provider(s: Settings) -> str:
    p = (s.ai_provider or "").strip().lower()
    if p in PROVIDERS:
        return p
    if s.ai_base_url:
        return "custom"
    return "groq"


def resolve_ai_backend(s: Settings | None = None) -> AIBackendConfig:
    s = s or default_settings
    provider = _provider(s)
    if provider == "groq":
        base_url = s.groq_base_url
        model = s.ai_model or s.groq_model
        api_key = s.groq_api_key or s.ai_api_key or ""
        header, prefix = "Authorization", "Bearer"
    else:
        base_url = s.ai_base_url or ""
        model = s.ai_model or s.groq_model
        api_key = s.ai_api_key or ""
        header, prefix = s.ai_api_key_header, s.ai_api_key_prefix
    return AIBackendConfig(
        provider=provider,
        base_url=(base_url or "").strip().rstrip("/"),
        model=(model or "").strip(),
        api_key=(api_key or "").strip(),
        api_key_header=(header or "Authorization").strip(),
        api_key_prefix=(prefix or "").strip(),
        timeout=s.ai_timeout_seconds,
        max_attempts=max(1, s.ai_max_attempts),
        retry_delay=max(0.0, s.ai_retry_delay_seconds),
    )
