import json
import unittest

import httpx

from relaybot.llm.client import LLMClient
from relaybot.llm.errors import (
    LLMAuthError,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
    parse_error_message,
)


API_BASE = "https://llm.example.com/v1"


def completion(content="4", choices=True):
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 0,
        "model": "m1",
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}
        ] if choices else [],
    }


class TestLLMClient(unittest.IsolatedAsyncioTestCase):
    def make_client(self, handler):
        self.requests = []

        def recording(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(recording))
        client = LLMClient(API_BASE, "sk-test", http_client=http_client)
        self.addAsyncCleanup(client.close)
        return client

    async def test_returns_first_choice_text(self):
        client = self.make_client(lambda r: httpx.Response(200, json=completion("The answer is 4.")))
        messages = [
            {"role": "system", "content": "You are a helpful assistant answering concisely."},
            {"role": "user", "content": "2+2?"},
        ]

        answer = await client.create_chat_completion(model="m1", messages=messages)

        self.assertEqual(answer, "The answer is 4.")
        self.assertEqual(len(self.requests), 1)
        request = self.requests[0]
        self.assertEqual(request.method, "POST")
        self.assertEqual(str(request.url), f"{API_BASE}/chat/completions")
        self.assertEqual(request.headers["Authorization"], "Bearer sk-test")
        body = json.loads(request.content)
        self.assertEqual(body["model"], "m1")
        self.assertEqual(body["messages"], messages)

    async def test_null_content_becomes_empty_string(self):
        client = self.make_client(lambda r: httpx.Response(200, json=completion(None)))
        self.assertEqual(await client.create_chat_completion("m1", [{"role": "user", "content": "hi"}]), "")

    async def test_no_choices_is_an_error(self):
        client = self.make_client(lambda r: httpx.Response(200, json=completion(choices=False)))
        with self.assertRaises(LLMError):
            await client.create_chat_completion("m1", [{"role": "user", "content": "hi"}])

    async def test_http_errors_are_mapped_without_retry(self):
        cases = [(401, LLMAuthError), (429, LLMRateLimitError), (500, LLMError)]
        for status, expected in cases:
            client = self.make_client(lambda r, s=status: httpx.Response(s, json={"error": {"message": "nope"}}))
            with self.assertRaises(expected):
                await client.create_chat_completion("m1", [{"role": "user", "content": "hi"}])
            self.assertEqual(len(self.requests), 1, f"status {status} was retried")

    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = self.make_client(handler)
        with self.assertRaises(LLMConnectionError):
            await client.create_chat_completion("m1", [{"role": "user", "content": "hi"}])


class TestParseErrorMessage(unittest.TestCase):
    def test_known_kinds(self):
        self.assertIn("Rate Limited", parse_error_message(LLMRateLimitError("slow down")))
        self.assertIn("Authentication", parse_error_message(LLMAuthError("bad key")))
        self.assertIn("Connection", parse_error_message(LLMConnectionError("down")))

    def test_unknown_error_is_condensed(self):
        message = parse_error_message(RuntimeError("first line\nsecond line"))
        self.assertEqual(message, "❌ RuntimeError: first line")


if __name__ == "__main__":
    unittest.main()
