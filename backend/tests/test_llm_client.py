import unittest
from unittest.mock import patch

import requests

from backend import llm_client
from backend.errors import UpstreamError, UpstreamTimeout
from backend.llm_client import (
    DIALOGUE_PARAMS,
    FALLBACK_REPLY,
    INTRO_PARAMS,
    GenerationParams,
    send_messages,
)
from test_helpers import gemini_payload, groq_payload, mock_response

MESSAGES = [
    {"role": "system", "content": "Be Socratic."},
    {"role": "system", "content": "CURRENT RESEARCH TOPIC: Web"},
    {"role": "user", "content": "hi"},
    {"role": "assistant", "content": "Why are you here?"},
    {"role": "user", "content": "To learn"},
]


class TestGenerationParams(unittest.TestCase):
    def test_defaults(self):
        self.assertEqual(INTRO_PARAMS.max_tokens, 1200)
        self.assertEqual(DIALOGUE_PARAMS.max_tokens, 600)
        self.assertEqual(DIALOGUE_PARAMS.temperature, 0.7)

    def test_rejects_out_of_range(self):
        with self.assertRaises(ValueError):
            GenerationParams(temperature=1.5)
        with self.assertRaises(ValueError):
            GenerationParams(max_tokens=0)


class TestGroqClient(unittest.TestCase):
    @patch('backend.llm_client.requests.post')
    def test_send_messages_returns_content(self, mock_post):
        mock_post.return_value = mock_response(200, groq_payload("  What is a server?  "))

        text = send_messages(MESSAGES, INTRO_PARAMS)

        self.assertEqual(text, "What is a server?")
        mock_post.assert_called_once()
        args, kwargs = mock_post.call_args
        self.assertTrue(args[0].endswith("/chat/completions"))
        self.assertEqual(kwargs["json"]["messages"], MESSAGES)
        self.assertEqual(kwargs["json"]["max_tokens"], 1200)
        self.assertEqual(kwargs["json"]["temperature"], 0.7)
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer mock_groq_key")
        self.assertEqual(kwargs["timeout"], llm_client.REQUEST_TIMEOUT)

    @patch('backend.llm_client.requests.post')
    def test_empty_content_falls_back(self, mock_post):
        for payload in (groq_payload(""), groq_payload(None), {"choices": []}):
            mock_post.return_value = mock_response(200, payload)
            self.assertEqual(send_messages(MESSAGES), FALLBACK_REPLY)

    @patch('backend.llm_client.requests.post')
    def test_error_status_raises_with_details(self, mock_post):
        mock_post.return_value = mock_response(429, text='{"error": "rate limited"}')

        with self.assertRaises(UpstreamError) as ctx:
            send_messages(MESSAGES)

        self.assertEqual(ctx.exception.error, "Groq API Error")
        self.assertIn("rate limited", ctx.exception.details)

    @patch('backend.llm_client.requests.post')
    def test_malformed_payload(self, mock_post):
        mock_post.return_value = mock_response(200, {"unexpected": True})
        with self.assertRaises(UpstreamError):
            send_messages(MESSAGES)

        mock_post.return_value = mock_response(200, text="<html>oops</html>")
        with self.assertRaises(UpstreamError):
            send_messages(MESSAGES)

    @patch('backend.llm_client.requests.post')
    def test_non_object_choice_is_upstream_error(self, mock_post):
        mock_post.return_value = mock_response(200, {"choices": ["oops"]})
        with self.assertRaises(UpstreamError) as ctx:
            send_messages(MESSAGES)
        self.assertEqual(ctx.exception.error, "Groq API Error")

    @patch('backend.llm_client.requests.post')
    def test_timeout(self, mock_post):
        mock_post.side_effect = requests.exceptions.Timeout("read timed out")
        with self.assertRaises(UpstreamTimeout):
            send_messages(MESSAGES)

    @patch('backend.llm_client.requests.post')
    def test_connection_error(self, mock_post):
        mock_post.side_effect = requests.exceptions.ConnectionError("refused")
        with self.assertRaises(UpstreamError) as ctx:
            send_messages(MESSAGES)
        self.assertNotIsInstance(ctx.exception, UpstreamTimeout)

    @patch('backend.llm_client.requests.post')
    def test_missing_key(self, mock_post):
        with patch.object(llm_client, "GROQ_API_KEY", ""):
            with self.assertRaises(UpstreamError):
                send_messages(MESSAGES)
        mock_post.assert_not_called()


class TestGeminiClient(unittest.TestCase):
    @patch('backend.llm_client.requests.post')
    def test_payload_mapping(self, mock_post):
        mock_post.return_value = mock_response(200, gemini_payload("Which layer fails first?"))

        text = send_messages(MESSAGES, DIALOGUE_PARAMS, provider="gemini")

        self.assertEqual(text, "Which layer fails first?")
        args, kwargs = mock_post.call_args
        self.assertIn(":generateContent", args[0])
        self.assertEqual(kwargs["params"], {"key": "mock_gemini_key"})
        body = kwargs["json"]
        self.assertEqual(
            body["systemInstruction"]["parts"][0]["text"],
            "Be Socratic.\n\nCURRENT RESEARCH TOPIC: Web",
        )
        self.assertEqual([c["role"] for c in body["contents"]], ["user", "model", "user"])
        self.assertEqual(body["generationConfig"], {"temperature": 0.7, "maxOutputTokens": 600})

    @patch('backend.llm_client.requests.post')
    def test_no_parts_falls_back(self, mock_post):
        mock_post.return_value = mock_response(200, gemini_payload(None))
        self.assertEqual(send_messages(MESSAGES, provider="gemini"), FALLBACK_REPLY)

    @patch('backend.llm_client.requests.post')
    def test_error_label(self, mock_post):
        mock_post.return_value = mock_response(400, text="bad request")
        with self.assertRaises(UpstreamError) as ctx:
            send_messages(MESSAGES, provider="gemini")
        self.assertEqual(ctx.exception.error, "Gemini API Error")

    @patch('backend.llm_client.requests.post')
    def test_non_object_candidate_is_upstream_error(self, mock_post):
        for payload in ({"candidates": [{"content": "text"}]}, {"candidates": ["oops"]},
                        {"candidates": [{"content": {"parts": "text"}}]}):
            mock_post.return_value = mock_response(200, payload)
            with self.assertRaises(UpstreamError) as ctx:
                send_messages(MESSAGES, provider="gemini")
            self.assertEqual(ctx.exception.error, "Gemini API Error")

    def test_unknown_provider(self):
        with self.assertRaises(UpstreamError):
            send_messages(MESSAGES, provider="openai")


if __name__ == '__main__':
    unittest.main()
