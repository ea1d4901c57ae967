import unittest

from ai_gateway.message_mappers import build_anthropic_messages, build_openai_messages
from ai_gateway.schemas import Message


def _messages(*pairs: tuple[str, str]) -> list[Message]:
    return [Message(role=role, content=content) for role, content in pairs]


class OpenAIMessageTests(unittest.TestCase):
    def test_keeps_roles_and_order(self) -> None:
        messages = _messages(("system", "be brief"), ("user", "hi"), ("assistant", "hello"))

        self.assertEqual(
            build_openai_messages(messages),
            [
                {"role": "system", "content": "be brief"},
                {"role": "user", "content": "hi"},
                {"role": "assistant", "content": "hello"},
            ],
        )


class AnthropicMessageTests(unittest.TestCase):
    def test_leading_system_messages_become_system_prompt(self) -> None:
        system, turns = build_anthropic_messages(
            _messages(("system", "be brief"), ("system", "answer in English"), ("user", "hi"))
        )

        self.assertEqual(system, "be brief\n\nanswer in English")
        self.assertEqual(turns, [{"role": "user", "content": "hi"}])

    def test_no_system_prompt_without_system_messages(self) -> None:
        system, turns = build_anthropic_messages(_messages(("user", "hi")))

        self.assertIsNone(system)
        self.assertEqual(turns, [{"role": "user", "content": "hi"}])

    def test_later_system_message_is_merged_into_user_turn(self) -> None:
        system, turns = build_anthropic_messages(
            _messages(
                ("user", "hi"),
                ("assistant", "hello"),
                ("system", "be formal"),
                ("user", "bye"),
            )
        )

        self.assertIsNone(system)
        self.assertEqual(
            turns,
            [
                {"role": "user", "content": "hi"},
                {"role": "assistant", "content": "hello"},
                {"role": "user", "content": "be formal\n\nbye"},
            ],
        )

    def test_consecutive_same_role_turns_are_merged(self) -> None:
        _, turns = build_anthropic_messages(
            _messages(("user", "one"), ("user", "two"), ("assistant", "three"))
        )

        self.assertEqual(
            turns,
            [
                {"role": "user", "content": "one\n\ntwo"},
                {"role": "assistant", "content": "three"},
            ],
        )

    def test_system_only_request_becomes_single_user_turn(self) -> None:
        system, turns = build_anthropic_messages(_messages(("system", "say hi")))

        self.assertIsNone(system)
        self.assertEqual(turns, [{"role": "user", "content": "say hi"}])


if __name__ == "__main__":
    unittest.main()
