import unittest

from ai_gateway.credentials import Credential, CredentialPool
from ai_gateway.errors import NoHealthyCredentialError
from ai_gateway.model_registry import Provider


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class CredentialPoolTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.pool = CredentialPool.from_secrets(
            {
                Provider.PRIMARY: ["sk-a", "sk-b", "sk-c"],
                Provider.SECONDARY: ["sk-ant-a"],
            },
            cool_down_seconds=60,
            clock=self.clock,
        )

    def test_from_secrets_assigns_stable_key_ids(self) -> None:
        credential = self.pool.acquire(Provider.SECONDARY)

        self.assertEqual(credential.key_id, "anthropic-0")
        self.assertEqual(credential.secret, "sk-ant-a")
        self.assertIs(credential.provider, Provider.SECONDARY)

    def test_secret_is_not_in_repr(self) -> None:
        credential = self.pool.acquire(Provider.PRIMARY)

        self.assertNotIn(credential.secret, repr(credential))

    def test_acquire_round_robins_across_keys(self) -> None:
        key_ids = [self.pool.acquire(Provider.PRIMARY).key_id for _ in range(4)]

        self.assertEqual(key_ids, ["openai-0", "openai-1", "openai-2", "openai-0"])

    def test_cooling_down_key_is_skipped_until_cool_down_passes(self) -> None:
        first = self.pool.acquire(Provider.PRIMARY)
        self.pool.report_rate_limited(first)

        for _ in range(6):
            self.assertNotEqual(self.pool.acquire(Provider.PRIMARY).key_id, first.key_id)
        self.clock.now += 59
        for _ in range(6):
            self.assertNotEqual(self.pool.acquire(Provider.PRIMARY).key_id, first.key_id)

        self.clock.now += 1
        key_ids = {self.pool.acquire(Provider.PRIMARY).key_id for _ in range(3)}
        self.assertIn(first.key_id, key_ids)

    def test_cool_down_is_local_to_one_credential(self) -> None:
        first = self.pool.acquire(Provider.PRIMARY)
        self.pool.report_rate_limited(first)

        second = self.pool.acquire(Provider.PRIMARY)

        self.assertNotEqual(second.key_id, first.key_id)

    def test_all_keys_cooling_down_raises(self) -> None:
        only = self.pool.acquire(Provider.SECONDARY)
        self.pool.report_rate_limited(only)

        with self.assertRaises(NoHealthyCredentialError):
            self.pool.acquire(Provider.SECONDARY)

    def test_provider_without_keys_raises(self) -> None:
        pool = CredentialPool([], clock=self.clock)

        with self.assertRaisesRegex(NoHealthyCredentialError, "openai"):
            pool.acquire(Provider.PRIMARY)

    def test_report_success_is_idempotent_on_available_credential(self) -> None:
        credential = self.pool.acquire(Provider.SECONDARY)
        before = self.pool.snapshot()

        for _ in range(3):
            self.pool.report_success(credential)

        after = self.pool.snapshot()
        self.assertEqual(
            [status.available for status in before], [status.available for status in after]
        )
        self.assertIs(self.pool.acquire(Provider.SECONDARY), credential)

    def test_snapshot_reports_cool_down_and_counters_without_secrets(self) -> None:
        credential = self.pool.acquire(Provider.SECONDARY)
        self.pool.report_success(credential)
        self.pool.report_rate_limited(credential)
        self.clock.now += 15

        status = next(s for s in self.pool.snapshot() if s.key_id == "anthropic-0")

        self.assertFalse(status.available)
        self.assertEqual(status.cooling_down_for, 45.0)
        self.assertEqual(status.success_count, 1)
        self.assertEqual(status.rate_limited_count, 1)
        self.assertNotIn("sk-ant-a", status.model_dump_json())

    def test_unknown_credential_report_raises(self) -> None:
        stranger = Credential(provider=Provider.PRIMARY, key_id="openai-99", secret="sk-x")

        with self.assertRaises(KeyError):
            self.pool.report_rate_limited(stranger)


if __name__ == "__main__":
    unittest.main()
