import unittest

from backend.prompts import (
    HISTORY_WINDOW,
    INTRO_PROMPT,
    NO_SOURCES_MARKER,
    SYSTEM_PROMPT,
    build_messages,
    needs_introduction,
)


def _history(n):
    roles = ["user", "assistant"]
    return [{"role": roles[i % 2], "content": f"turn {i}"} for i in range(n)]


class TestNeedsIntroduction(unittest.TestCase):
    def test_keywords(self):
        for message in ["I want an introduction", "Let's START", "explain sockets", "What is DNS"]:
            self.assertTrue(needs_introduction(message, "Invention Phase"), message)

    def test_topic_title_forces_introduction(self):
        self.assertTrue(needs_introduction("hello", "Introduction to the Web"))

    def test_plain_dialogue(self):
        self.assertFalse(needs_introduction("Servers answer requests", "Invention Phase"))


class TestBuildMessages(unittest.TestCase):
    def test_dialogue_layout(self):
        messages = build_messages("Invention Phase", "", [], "hello", introduction=False)
        self.assertEqual([m["role"] for m in messages], ["system", "system", "system", "user"])
        self.assertEqual(messages[0]["content"], SYSTEM_PROMPT)
        self.assertEqual(messages[1]["content"], "CURRENT RESEARCH TOPIC: Invention Phase")
        self.assertEqual(messages[2]["content"], NO_SOURCES_MARKER)
        self.assertIn('User message: "hello"', messages[-1]["content"])
        self.assertIn("productive doubt", messages[-1]["content"])

    def test_introduction_adds_format_block_and_framing(self):
        messages = build_messages("Introduction to the Web", "ctx", [], "intro please", introduction=True)
        self.assertTrue(messages[0]["content"].startswith(SYSTEM_PROMPT))
        self.assertTrue(messages[0]["content"].endswith(INTRO_PROMPT))
        self.assertIn("150+ word", messages[0]["content"])
        self.assertTrue(messages[-1]["content"].startswith(
            'User is requesting an introduction to: "Introduction to the Web"'))

    def test_context_is_verbatim(self):
        context = "[Source 1] A\nbody\nURL: https://a"
        messages = build_messages("t", context, [], "m", introduction=False)
        self.assertTrue(messages[2]["content"].endswith(context))

    def test_history_window(self):
        history = _history(10)
        messages = build_messages("t", "", history, "m", introduction=False)
        replayed = messages[3:-1]
        self.assertEqual(len(replayed), HISTORY_WINDOW)
        self.assertEqual(replayed, history[-HISTORY_WINDOW:])

    def test_short_history_kept_whole(self):
        history = _history(2)
        messages = build_messages("t", "", history, "m", introduction=False)
        self.assertEqual(messages[3:-1], history)


if __name__ == '__main__':
    unittest.main()
