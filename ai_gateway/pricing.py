"""Per-model token pricing (USD per 1K tokens)."""

from dataclasses import dataclass

from .model_registry import Provider, ResolvedModel
from .schemas import Cost, Usage


@dataclass(frozen=True)
class ModelPrice:
    input: float
    output: float


DEFAULT_PRICE = ModelPrice(input=1, output=1)

# Logical names first: the gateway's own tier pricing overrides what the
# upstream model it is served by would cost.
MODEL_PRICES: dict[Provider, dict[str, ModelPrice]] = {
    Provider.PRIMARY: {
        "gpt-5-mini": ModelPrice(input=1.1, output=8.4),
        "gpt-5": ModelPrice(input=5.3, output=42),
        "gpt-4-turbo": ModelPrice(input=10, output=30),
        "gpt-4": ModelPrice(input=30, output=60),
        "gpt-3.5-turbo": ModelPrice(input=0.5, output=1.5),
        "gpt-4o": ModelPrice(input=5, output=15),
        "gpt-4o-mini": ModelPrice(input=0.15, output=0.6),
    },
    Provider.SECONDARY: {
        "claude-3-haiku-20240307": ModelPrice(input=0.25, output=1.25),
        "claude-3-5-haiku-20241022": ModelPrice(input=1, output=5),
        "claude-3-5-sonnet-20241022": ModelPrice(input=3, output=15),
        "claude-3-7-sonnet-20250219": ModelPrice(input=3, output=15),
        "claude-sonnet-4-20250514": ModelPrice(input=3, output=15),
        "claude-opus-4-20250514": ModelPrice(input=15, output=75),
        "claude-opus-4-1-20250805": ModelPrice(input=15, output=75),
        "claude-3-opus-20240229": ModelPrice(input=15, output=75),
    },
}


def price_for(resolved: ResolvedModel) -> ModelPrice:
    prices = MODEL_PRICES.get(resolved.provider, {})
    return (
        prices.get(resolved.logical_name)
        or prices.get(resolved.upstream_model_id)
        or DEFAULT_PRICE
    )


def calculate_cost(resolved: ResolvedModel, usage: Usage) -> Cost:
    price = price_for(resolved)
    input_cost = usage.prompt_tokens / 1000 * price.input
    output_cost = usage.completion_tokens / 1000 * price.output
    return Cost(
        input_cost=round(input_cost, 6),
        output_cost=round(output_cost, 6),
        total_cost=round(input_cost + output_cost, 6),
    )
