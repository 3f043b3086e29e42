import json
import os
import tempfile
import unittest

import httpx

from relaybot.llm.models import (
    DEFAULT_FALLBACK_MODELS,
    MAX_CHOICES,
    ModelRegistry,
    extract_model_ids,
    get_model_choices,
)


API_BASE = "https://llm.example.com/v1/"
API_KEY = "sk-test"


class TestModelRegistry(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.cache_file = os.path.join(self.tmp.name, "models.json")
        self.requests = []

    def make_registry(self, status=200, payload=None, cache_file=None):
        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return httpx.Response(status, json=payload if payload is not None else {})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        self.addAsyncCleanup(client.aclose)
        return ModelRegistry(cache_file=cache_file or self.cache_file, http_client=client)

    def write_cache(self, content):
        with open(self.cache_file, "w", encoding="utf-8") as f:
            f.write(content)

    async def test_disk_cache_skips_api(self):
        self.write_cache(json.dumps({"models": ["a", "b"], "updatedAt": "2025-01-01T00:00:00Z"}))
        registry = self.make_registry(payload={"data": [{"id": "remote"}]})

        models = await registry.get_available_models(API_BASE, API_KEY)

        self.assertEqual(models, ["a", "b"])
        self.assertEqual(self.requests, [])

    async def test_fetches_from_api_and_saves_cache(self):
        payload = {"data": [{"id": "m1"}, {"name": "m2"}, "m3", {"id": ""}, None]}
        registry = self.make_registry(payload=payload)

        models = await registry.get_available_models(API_BASE, API_KEY)

        self.assertEqual(models, ["m1", "m2", "m3"])
        self.assertEqual(len(self.requests), 1)
        request = self.requests[0]
        self.assertEqual(str(request.url), "https://llm.example.com/v1/models")
        self.assertEqual(request.headers["Authorization"], "Bearer sk-test")

        with open(self.cache_file, encoding="utf-8") as f:
            saved = json.load(f)
        self.assertEqual(saved["models"], ["m1", "m2", "m3"])
        self.assertIn("updatedAt", saved)

    async def test_memory_cache_is_reused(self):
        registry = self.make_registry(payload=[{"id": "m1"}])
        await registry.get_available_models(API_BASE, API_KEY)
        os.remove(self.cache_file)

        models = await registry.get_available_models(API_BASE, API_KEY)

        self.assertEqual(models, ["m1"])
        self.assertEqual(len(self.requests), 1)

    async def test_api_failure_uses_fallback(self):
        registry = self.make_registry(status=500)
        with self.assertLogs(level="WARNING"):
            models = await registry.get_available_models(API_BASE, API_KEY)
        self.assertEqual(models, list(DEFAULT_FALLBACK_MODELS))
        self.assertFalse(os.path.exists(self.cache_file))

    async def test_empty_api_list_uses_fallback(self):
        registry = self.make_registry(payload={"data": []})
        models = await registry.get_available_models(API_BASE, API_KEY)
        self.assertGreater(len(models), 0)

    async def test_every_source_failing_is_still_non_empty(self):
        self.write_cache("{not json")
        unwritable = os.path.join(self.tmp.name, "missing-dir", "models.json")
        registry = self.make_registry(status=503, cache_file=unwritable)
        models = await registry.get_available_models(API_BASE, API_KEY, force_refresh=True)
        self.assertGreater(len(models), 0)

    async def test_malformed_or_empty_cache_is_a_miss(self):
        for content in ("{not json", json.dumps({"models": []}), json.dumps(["a"])):
            self.requests.clear()
            self.write_cache(content)
            registry = self.make_registry(payload={"data": [{"id": "fresh"}]})
            models = await registry.get_available_models(API_BASE, API_KEY)
            self.assertEqual(models, ["fresh"])
            self.assertEqual(len(self.requests), 1)

    async def test_force_refresh_bypasses_and_overwrites_caches(self):
        self.write_cache(json.dumps({"models": ["old"]}))
        registry = self.make_registry(payload={"data": [{"id": "new"}]})
        self.assertEqual(await registry.get_available_models(API_BASE, API_KEY), ["old"])

        models = await registry.get_available_models(API_BASE, API_KEY, force_refresh=True)

        self.assertEqual(models, ["new"])
        self.assertEqual(await registry.get_available_models(API_BASE, API_KEY), ["new"])
        with open(self.cache_file, encoding="utf-8") as f:
            self.assertEqual(json.load(f)["models"], ["new"])

    async def test_save_failure_is_swallowed(self):
        unwritable = os.path.join(self.tmp.name, "missing-dir", "models.json")
        registry = self.make_registry(payload={"data": [{"id": "m1"}]}, cache_file=unwritable)
        with self.assertLogs(level="WARNING") as logs:
            models = await registry.get_available_models(API_BASE, API_KEY)
        self.assertEqual(models, ["m1"])
        self.assertTrue(any("Failed to save models cache" in line for line in logs.output))

    async def test_clear_cache(self):
        registry = self.make_registry(payload={"data": [{"id": "m1"}]})
        await registry.get_available_models(API_BASE, API_KEY)
        os.remove(self.cache_file)
        registry.clear_cache()
        await registry.get_available_models(API_BASE, API_KEY)
        self.assertEqual(len(self.requests), 2)


class TestModelChoices(unittest.TestCase):
    def test_small_lists_are_unchanged(self):
        models = [f"model-{i}" for i in range(MAX_CHOICES)]
        choices = get_model_choices(models)
        self.assertEqual([c.value for c in choices], models)
        self.assertEqual([c.name for c in choices], models)

    def test_large_lists_are_truncated_with_warning(self):
        models = [f"model-{i}" for i in range(40)]
        with self.assertLogs(level="WARNING") as logs:
            choices = get_model_choices(models)
        self.assertEqual(len(choices), MAX_CHOICES)
        self.assertEqual([c.value for c in choices], models[:MAX_CHOICES])
        self.assertIn("truncated from 40 to 25", logs.output[0])

    def test_overlong_ids_are_skipped(self):
        long_id = "x" * 150
        edge_id = "y" * 100
        with self.assertLogs(level="WARNING") as logs:
            choices = get_model_choices(["a", long_id, edge_id])
        self.assertEqual([c.value for c in choices], ["a", edge_id])
        self.assertTrue(all(len(c.name) <= 100 and len(c.value) <= 100 for c in choices))
        self.assertIn("Skipping model id", logs.output[0])

    def test_skipped_ids_do_not_count_against_the_limit(self):
        models = ["z" * 101] + [f"model-{i}" for i in range(MAX_CHOICES)]
        with self.assertLogs(level="WARNING"):
            choices = get_model_choices(models)
        self.assertEqual([c.value for c in choices], models[1:])


class TestExtractModelIds(unittest.TestCase):
    def test_bare_list(self):
        self.assertEqual(extract_model_ids(["a", {"id": "b"}]), ["a", "b"])

    def test_unexpected_shape_raises(self):
        with self.assertRaises(ValueError):
            extract_model_ids({"data": "nope"})


if __name__ == "__main__":
    unittest.main()
