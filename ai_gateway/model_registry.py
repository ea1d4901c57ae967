"""Model resolution and capability registry."""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from .constants import SECONDARY_MODEL_PREFIX


class Provider(str, Enum):
    PRIMARY = "openai"
    SECONDARY = "anthropic"


@dataclass(frozen=True)
class ResolvedModel:
    provider: Provider
    upstream_model_id: str
    logical_name: str


@dataclass(frozen=True)
class ModelCapability:
    supports_temperature: bool
    supports_reasoning_effort: bool
    supports_verbosity: bool = False


_CHAT_MODEL = ModelCapability(supports_temperature=True, supports_reasoning_effort=False)
_REASONING_MODEL = ModelCapability(
    supports_temperature=False, supports_reasoning_effort=True, supports_verbosity=True
)
_REASONING_MODEL_PREFIXES = ("o1", "o3", "o4", "gpt-5")

MODEL_DISPLAY_NAMES: dict[str, str] = {
    "gpt-5": "GPT-5",
    "gpt-5-mini": "GPT-5-mini",
    "gpt-5-nano": "GPT-5-nano",
    "gpt-4.1": "GPT-4.1",
    "gpt-4.1-mini": "GPT-4.1-mini",
    "gpt-4o": "GPT-4o",
    "claude-opus-4-1-20250805": "Claude Opus 4.1",
    "claude-opus-4-20250514": "Claude Opus 4",
    "claude-sonnet-4-20250514": "Claude Sonnet 4",
    "claude-3-7-sonnet-20250219": "Claude Sonnet 3.7",
    "claude-3-5-haiku-20241022": "Claude Haiku 3.5",
}


def model_capability(upstream_model_id: str) -> ModelCapability:
    """Return what generation parameters a PrimaryProvider model accepts."""
    if upstream_model_id.startswith(_REASONING_MODEL_PREFIXES):
        return _REASONING_MODEL
    return _CHAT_MODEL


def display_name(model: str) -> str:
    return MODEL_DISPLAY_NAMES.get(model, model)


class ModelResolver:
    """Maps logical model names to a provider and a concrete upstream model id.

    Claude-family names (matched by prefix, case-insensitively) always go to the
    secondary provider untouched. Every other name goes to the primary provider,
    rewritten through the alias table when it has an entry.
    """

    def __init__(
        self,
        alias_table: Mapping[str, str],
        secondary_prefix: str = SECONDARY_MODEL_PREFIX,
    ) -> None:
        self._alias_table = MappingProxyType(dict(alias_table))
        self._secondary_prefix = secondary_prefix.lower()

    @property
    def alias_table(self) -> Mapping[str, str]:
        return self._alias_table

    def resolve(self, logical_name: str) -> ResolvedModel:
        if logical_name.lower().startswith(self._secondary_prefix):
            return ResolvedModel(
                provider=Provider.SECONDARY,
                upstream_model_id=logical_name,
                logical_name=logical_name,
            )
        return ResolvedModel(
            provider=Provider.PRIMARY,
            upstream_model_id=self._alias_table.get(logical_name, logical_name),
            logical_name=logical_name,
        )

    def list_models(self) -> list[ResolvedModel]:
        names = list(self._alias_table)
        names += [
            name
            for name in MODEL_DISPLAY_NAMES
            if name not in self._alias_table
        ]
        return [self.resolve(name) for name in names]
