"""Built-in provider descriptors."""

from typing import Dict, List

from jarvisrouter.llm.models import ProviderDescriptor

GROQ = ProviderDescriptor(
    id="groq",
    display_name="Groq",
    base_url="https://api.groq.com/openai/v1",
    credential_env_key="GROQ_API_KEY",
    credential_prefix="gsk_",
    request_timeout_ms=25000,
    model="llama-3.1-8b-instant",
)

GEMINI = ProviderDescriptor(
    id="gemini",
    display_name="Google Gemini",
    base_url="https://generativelanguage.googleapis.com/v1beta/openai/",
    credential_env_key="GEMINI_API_KEY",
    credential_prefix="AIzaSy",
    request_timeout_ms=20000,
    model="gemini-1.5-flash",
)

GITHUB = ProviderDescriptor(
    id="github",
    display_name="GitHub Models",
    base_url="https://models.github.ai/inference",
    credential_env_key="GITHUB_TOKEN",
    credential_prefix="github_pat_",
    request_timeout_ms=45000,
    model="openai/gpt-4o-mini",
)

OPENROUTER = ProviderDescriptor(
    id="openrouter",
    display_name="OpenRouter",
    base_url="https://openrouter.ai/api/v1",
    credential_env_key="OPENROUTER_API_KEY",
    credential_prefix="sk-or-v1-",
    request_timeout_ms=30000,
    model="deepseek/deepseek-r1:free",
)

BUILTIN_PROVIDERS: Dict[str, ProviderDescriptor] = {
    descriptor.id: descriptor for descriptor in (GEMINI, GROQ, GITHUB, OPENROUTER)
}


def builtin_descriptors() -> List[ProviderDescriptor]:
    return list(BUILTIN_PROVIDERS.values())
