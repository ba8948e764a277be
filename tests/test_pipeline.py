import unittest
import json
from unittest.mock import MagicMock
from comicgen.agents.production.image_generators import BedrockImageGenerator, MockImageGenerator
from comicgen.agents.visual.seeding import seed_for
from comicgen.core.config import Settings
from comicgen.core.errors import MalformedResponseError
from comicgen.core.models import PanelStatus, StoryPrompt
from comicgen.core.run_state import StoryStatus
from comicgen.main import ComicPipeline, ERROR_CHARACTERS, ERROR_OUTLINE, STATUS_COMPLETE, STATUS_EXTRACTING, STATUS_OUTLINING

STORY = "A knight named Sir Aldric battles a red dragon at dawn."

CHARACTERS = json.dumps([
    {"name": "Sir Aldric", "appearance": "male knight, short brown hair, steel plate armor"},
    {"name": "Dragon", "appearance": "giant red dragon, golden eyes"},
])

OUTLINE = json.dumps({"panels": [
    {"scene": "Aldric climbs.", "characters": ["Sir Aldric"],
     "imagePrompt": "Panel 1 of 3. A knight climbs a mountain."},
    {"scene": "The Dragon appears.", "characters": ["Sir Aldric", "Dragon"],
     "imagePrompt": "Panel 2 of 3. A dragon swoops at a knight."},
    {"scene": "They fight.", "characters": ["dragon ", "SIR ALDRIC"],
     "imagePrompt": "Panel 3 of 3. Knight and dragon clash."},
]})


class TestComicPipeline(unittest.TestCase):
    def setUp(self):
        self.events = []
        self.payloads = []
        self.image_results = []
        self.llm = MagicMock()
        self.llm.generate_text.side_effect = [CHARACTERS, OUTLINE]

        self.gateway = MagicMock()
        self.gateway.invoke.side_effect = self._invoke
        generator = BedrockImageGenerator(self.gateway, sleep=lambda d: self.events.append(("sleep", d)))
        self.pipeline = ComicPipeline(Settings(), llm=self.llm, image_generator=generator)
        self.prompt = StoryPrompt(title="The Dragon", description=STORY, number_of_panels=3)

    def _invoke(self, model_id, payload):
        self.events.append(("invoke", model_id))
        self.payloads.append(payload)
        if self.image_results:
            return self.image_results.pop(0)
        return {"images": ["aW1n"]}

    def test_end_to_end(self):
        """Verify a full run: three sequential image calls, each after the delay, all panels completed."""
        updates = []

        story = self.pipeline.run(self.prompt, on_progress=updates.append)

        self.assertEqual(story.status, StoryStatus.COMPLETED)
        self.assertEqual(story.title, "The Dragon")
        self.assertEqual([c.name for c in story.characters], ["Sir Aldric", "Dragon"])
        self.assertEqual(len(story.panels), 3)
        self.assertTrue(all(p.status == PanelStatus.COMPLETED for p in story.panels))
        self.assertTrue(all(p.image_url == "data:image/png;base64,aW1n" for p in story.panels))
        self.assertEqual(len({p.id for p in story.panels}), 3)

        self.assertEqual(self.events, [("sleep", 2.0), ("invoke", "stability.stable-image-ultra-v1:0")] * 3)

        statuses = [u.status for u in updates]
        self.assertEqual(statuses[:2], [STATUS_EXTRACTING, STATUS_OUTLINING])
        self.assertEqual(statuses[-1], STATUS_COMPLETE)
        self.assertEqual([u.current_panel for u in updates[-4:-1]], [1, 2, 3])
        self.assertAlmostEqual(updates[-2].progress, 100.0)
        self.assertEqual(story.progress.status, STATUS_COMPLETE)

    def test_seeds_and_negative_prompts_follow_the_cast(self):
        story = self.pipeline.run(self.prompt)

        self.assertEqual(story.panels[0].seed, seed_for(["Sir Aldric"]))
        self.assertEqual(story.panels[1].seed, story.panels[2].seed)
        self.assertEqual([p["seed"] for p in self.payloads], [p.seed for p in story.panels])

        self.assertTrue(self.payloads[0]["negative_prompt"].startswith("inconsistent sir aldric"))
        self.assertNotIn("inconsistent dragon", self.payloads[0]["negative_prompt"])
        self.assertIn("inconsistent dragon", self.payloads[1]["negative_prompt"])
        self.assertIn("giant red dragon, golden eyes", self.payloads[1]["prompt"])

    def test_failed_panel_does_not_stop_the_run(self):
        self.image_results = [{"images": ["aW1n"]}, {"images": []}]

        story = self.pipeline.run(self.prompt)

        self.assertEqual(story.status, StoryStatus.COMPLETED)
        self.assertEqual([p.status for p in story.panels],
                         [PanelStatus.COMPLETED, PanelStatus.ERROR, PanelStatus.COMPLETED])
        self.assertIsNone(story.panels[1].image_url)
        self.assertEqual(story.progress.status, "Complete with errors: 1 of 3 panels failed to render.")

    def test_character_failure_stops_before_outline(self):
        self.llm.generate_text.side_effect = MalformedResponseError("no content")

        story = self.pipeline.run(self.prompt)

        self.assertEqual(story.status, StoryStatus.ERROR)
        self.assertEqual(story.progress.status, ERROR_CHARACTERS)
        self.assertEqual(self.llm.generate_text.call_count, 1)
        self.gateway.invoke.assert_not_called()

    def test_no_characters_is_a_failure(self):
        self.llm.generate_text.side_effect = ["I could not find anyone."]

        story = self.pipeline.run(self.prompt)

        self.assertEqual(story.progress.status, ERROR_CHARACTERS)

    def test_short_outline_stops_before_images(self):
        short = json.dumps({"panels": json.loads(OUTLINE)["panels"][:1]})
        self.llm.generate_text.side_effect = [CHARACTERS, short]

        story = self.pipeline.run(self.prompt)

        self.assertEqual(story.status, StoryStatus.ERROR)
        self.assertEqual(story.progress.status, ERROR_OUTLINE)
        self.assertEqual(len(story.characters), 2)
        self.gateway.invoke.assert_not_called()

    def test_portraits_condition_panels(self):
        """Verify the portrait variant renders image-to-image from the cast's reference portrait."""
        generator = MockImageGenerator()
        pipeline = ComicPipeline(Settings(generate_portraits=True), llm=self.llm, image_generator=generator)

        story = pipeline.run(self.prompt)

        self.assertEqual(story.status, StoryStatus.COMPLETED)
        self.assertTrue(all(c.reference_image for c in story.characters))
        # Two portraits followed by three panels
        self.assertEqual(len(generator.calls), 5)
        self.assertEqual(generator.calls[2]["reference_image"], story.characters[0].reference_image)
        self.assertEqual(generator.calls[2]["strength"], 0.7)

if __name__ == "__main__":
    unittest.main()
