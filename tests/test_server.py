import unittest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient
from comicgen.core.config import Settings
from comicgen.core.run_state import ComicStory, StoryStatus
from comicgen.server.app import app, get_gateway, get_llm, get_pipeline, get_settings


class TestServer(unittest.TestCase):
    def setUp(self):
        self.llm = MagicMock()
        self.gateway = MagicMock()
        self.pipeline = MagicMock()
        app.dependency_overrides[get_settings] = lambda: Settings()
        app.dependency_overrides[get_llm] = lambda: self.llm
        app.dependency_overrides[get_gateway] = lambda: self.gateway
        app.dependency_overrides[get_pipeline] = lambda: self.pipeline
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()

    def test_health(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "healthy"})

    def test_generate_story(self):
        self.llm.generate_text.return_value = "Once upon a time"

        response = self.client.post("/api/generate", json={"type": "story", "prompt": "Tell a story"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"story": "Once upon a time"})
        self.llm.generate_text.assert_called_once_with(
            "Tell a story", max_tokens=4096, temperature=0.7, stop=["\n\nHuman:"])

    def test_generate_image(self):
        self.gateway.invoke.return_value = {"images": ["aW1n"]}

        response = self.client.post("/api/generate", json={"type": "image", "prompt": "A knight.", "seed": 12})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"image": "aW1n"})
        model_id, payload = self.gateway.invoke.call_args.args
        self.assertEqual(model_id, "stability.stable-image-ultra-v1:0")
        self.assertEqual(payload, {"prompt": "A knight.", "seed": 12})

    def test_generate_image_without_images(self):
        """Verify that an empty image list is reported as a server error."""
        self.gateway.invoke.return_value = {"images": []}

        response = self.client.post("/api/generate", json={"type": "image", "prompt": "A knight."})

        self.assertEqual(response.status_code, 500)
        self.assertIn("error", response.json())

    def test_generate_provider_failure(self):
        self.llm.generate_text.side_effect = RuntimeError("provider down")

        response = self.client.post("/api/generate", json={"type": "story", "prompt": "hi"})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "provider down"})

    def test_generate_invalid_type(self):
        for body in ({"type": "video", "prompt": "hi"}, {"prompt": "hi"}):
            response = self.client.post("/api/generate", json=body)
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.json(), {"error": "Invalid request type"})
        self.llm.generate_text.assert_not_called()
        self.gateway.invoke.assert_not_called()

    def test_create_comic(self):
        self.pipeline.run.return_value = ComicStory(id="abc123", title="The Dragon", status=StoryStatus.COMPLETED)

        response = self.client.post("/api/comics", json={"description": "A knight.", "numberOfPanels": 3})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["id"], "abc123")
        self.assertEqual(body["status"], "completed")
        prompt = self.pipeline.run.call_args.args[0]
        self.assertEqual(prompt.number_of_panels, 3)

    def test_create_comic_rejects_invalid_prompt(self):
        response = self.client.post("/api/comics", json={"description": "A knight.", "numberOfPanels": 20})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Invalid request")
        self.pipeline.run.assert_not_called()

if __name__ == "__main__":
    unittest.main()
