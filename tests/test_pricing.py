import unittest

from ai_gateway.model_registry import Provider, ResolvedModel
from ai_gateway.pricing import DEFAULT_PRICE, calculate_cost, price_for
from ai_gateway.schemas import Usage


def _resolved(provider: Provider, upstream: str, logical: str | None = None) -> ResolvedModel:
    return ResolvedModel(
        provider=provider, upstream_model_id=upstream, logical_name=logical or upstream
    )


class PricingTests(unittest.TestCase):
    def test_logical_name_price_wins_over_upstream(self) -> None:
        price = price_for(_resolved(Provider.PRIMARY, "gpt-4o", logical="gpt-5"))

        self.assertEqual((price.input, price.output), (5.3, 42))

    def test_upstream_price_used_when_logical_name_unknown(self) -> None:
        price = price_for(_resolved(Provider.PRIMARY, "gpt-4o-mini", logical="gpt-5-nano"))

        self.assertEqual((price.input, price.output), (0.15, 0.6))

    def test_unknown_model_uses_default_price(self) -> None:
        self.assertEqual(price_for(_resolved(Provider.SECONDARY, "claude-next")), DEFAULT_PRICE)

    def test_calculate_cost_per_thousand_tokens(self) -> None:
        usage = Usage.from_counts(2000, 1000)

        cost = calculate_cost(_resolved(Provider.SECONDARY, "claude-opus-4-20250514"), usage)

        self.assertEqual(cost.input_cost, 30.0)
        self.assertEqual(cost.output_cost, 75.0)
        self.assertEqual(cost.total_cost, 105.0)
        self.assertEqual(cost.currency, "USD")

    def test_zero_usage_costs_nothing(self) -> None:
        cost = calculate_cost(_resolved(Provider.PRIMARY, "gpt-4o"), Usage())

        self.assertEqual(cost.total_cost, 0)


class UsageTests(unittest.TestCase):
    def test_missing_counts_default_to_zero(self) -> None:
        usage = Usage.from_counts(None, None)

        self.assertEqual(usage.prompt_tokens, 0)
        self.assertEqual(usage.completion_tokens, 0)
        self.assertEqual(usage.total_tokens, 0)

    def test_total_defaults_to_sum(self) -> None:
        self.assertEqual(Usage.from_counts(12, 30).total_tokens, 42)
        self.assertEqual(Usage.from_counts(12, 30, 50).total_tokens, 50)


if __name__ == "__main__":
    unittest.main()
