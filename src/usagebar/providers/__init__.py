"""Provider integrations: descriptors and usage fetchers."""

from usagebar.config.settings import Settings
from usagebar.models.usage import ProviderKind

from .base import FetchContext, HttpUsageFetcher, UsageFetcher
from .claude import ClaudeFetcher
from .codex import CodexFetcher
from .copilot import CopilotFetcher
from .openrouter import OpenRouterFetcher
from .registry import FetchStrategy, ProviderDescriptor, all_descriptors, descriptor
from .synthetic import SyntheticFetcher
from .zai import ZaiFetcher


def build_fetchers(settings: Settings | None = None) -> dict[ProviderKind, UsageFetcher]:
    """Create one fetcher per provider, applying configured overrides.

    Args:
        settings: Loaded settings; defaults are used when None

    Returns:
        Mapping from provider to its fetcher

    """
    settings = settings or Settings()
    base_urls = settings.providers.base_urls
    return {
        ProviderKind.CLAUDE: ClaudeFetcher(
            base_url=base_urls.get(ProviderKind.CLAUDE),
            credentials_path=settings.credentials.claude_credentials_path,
        ),
        ProviderKind.CODEX: CodexFetcher(codex_home=settings.credentials.codex_home),
        ProviderKind.COPILOT: CopilotFetcher(base_url=base_urls.get(ProviderKind.COPILOT)),
        ProviderKind.SYNTHETIC: SyntheticFetcher(base_url=base_urls.get(ProviderKind.SYNTHETIC)),
        ProviderKind.ZAI: ZaiFetcher(base_url=base_urls.get(ProviderKind.ZAI)),
        ProviderKind.OPENROUTER: OpenRouterFetcher(
            base_url=base_urls.get(ProviderKind.OPENROUTER)
        ),
    }


__all__ = [
    "ClaudeFetcher",
    "CodexFetcher",
    "CopilotFetcher",
    "FetchContext",
    "FetchStrategy",
    "HttpUsageFetcher",
    "OpenRouterFetcher",
    "ProviderDescriptor",
    "SyntheticFetcher",
    "UsageFetcher",
    "ZaiFetcher",
    "all_descriptors",
    "build_fetchers",
    "descriptor",
]
