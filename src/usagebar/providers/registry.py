"""Static descriptors for every supported provider."""

from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType

from usagebar.models.usage import ProviderKind


class FetchStrategy(StrEnum):
    """How a provider's usage is obtained."""

    API_KEY = "api_key"
    OAUTH = "oauth"
    LOCAL_CLI = "local_cli"


@dataclass(frozen=True)
class ProviderDescriptor:
    """Display and credential metadata for one provider."""

    kind: ProviderKind
    display_name: str
    session_label: str
    weekly_label: str
    fetch_strategy: FetchStrategy
    search_label: str = "Search"
    api_key_env: tuple[str, ...] = ()
    cli_name: str | None = None
    install_hint: str | None = None
    dashboard_url: str | None = None

    @property
    def provider_id(self) -> str:
        """Stable id used as the credential store key."""
        return self.kind.value


_DESCRIPTORS: MappingProxyType[ProviderKind, ProviderDescriptor] = MappingProxyType(
    {
        ProviderKind.CLAUDE: ProviderDescriptor(
            kind=ProviderKind.CLAUDE,
            display_name="Claude",
            session_label="Session",
            weekly_label="Weekly",
            fetch_strategy=FetchStrategy.OAUTH,
            api_key_env=("CLAUDE_CODE_OAUTH_TOKEN",),
            cli_name="claude",
            install_hint="Install Claude Code and run `claude login`",
            dashboard_url="https://claude.ai/settings/usage",
        ),
        ProviderKind.CODEX: ProviderDescriptor(
            kind=ProviderKind.CODEX,
            display_name="Codex",
            session_label="Session",
            weekly_label="Weekly",
            fetch_strategy=FetchStrategy.LOCAL_CLI,
            cli_name="codex",
            install_hint="Install the Codex CLI: npm install -g @openai/codex",
            dashboard_url="https://chatgpt.com/codex/settings/usage",
        ),
        ProviderKind.COPILOT: ProviderDescriptor(
            kind=ProviderKind.COPILOT,
            display_name="Copilot",
            session_label="Premium",
            weekly_label="Chat",
            fetch_strategy=FetchStrategy.OAUTH,
            api_key_env=("COPILOT_API_TOKEN", "GITHUB_TOKEN", "GH_TOKEN"),
            cli_name="gh",
            install_hint="Run `usagebar auth set-key copilot <token>` or `gh auth login`",
            dashboard_url="https://github.com/settings/copilot",
        ),
        ProviderKind.SYNTHETIC: ProviderDescriptor(
            kind=ProviderKind.SYNTHETIC,
            display_name="Synthetic",
            session_label="Subscription",
            weekly_label="Weekly",
            fetch_strategy=FetchStrategy.API_KEY,
            search_label="Search (hourly)",
            api_key_env=("SYNTHETIC_API_KEY",),
            install_hint="Set SYNTHETIC_API_KEY or run `usagebar auth set-key synthetic <key>`",
            dashboard_url="https://synthetic.new/billing",
        ),
        ProviderKind.ZAI: ProviderDescriptor(
            kind=ProviderKind.ZAI,
            display_name="z.ai",
            session_label="Tokens",
            weekly_label="MCP",
            fetch_strategy=FetchStrategy.API_KEY,
            api_key_env=("ZAI_API_KEY", "Z_AI_API_KEY"),
            install_hint="Set ZAI_API_KEY or run `usagebar auth set-key zai <key>`",
            dashboard_url="https://z.ai/manage-apikey/subscription",
        ),
        ProviderKind.OPENROUTER: ProviderDescriptor(
            kind=ProviderKind.OPENROUTER,
            display_name="OpenRouter",
            session_label="Credits",
            weekly_label="Weekly",
            fetch_strategy=FetchStrategy.API_KEY,
            api_key_env=("OPENROUTER_API_KEY",),
            install_hint="Set OPENROUTER_API_KEY or run `usagebar auth set-key openrouter <key>`",
            dashboard_url="https://openrouter.ai/settings/credits",
        ),
    }
)


def descriptor(kind: ProviderKind) -> ProviderDescriptor:
    """Look up the descriptor for a provider.

    Args:
        kind: Provider to describe

    Returns:
        The provider's descriptor

    Raises:
        KeyError: If the provider has no descriptor

    """
    return _DESCRIPTORS[kind]


def all_descriptors() -> list[ProviderDescriptor]:
    """Return descriptors in ProviderKind declaration order."""
    return [_DESCRIPTORS[kind] for kind in ProviderKind]
