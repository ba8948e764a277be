import unittest
from pydantic import ValidationError
from comicgen.core.models import Character, ComicPanel, GenerationProgress, Panel, PanelStatus, StoryPrompt, StructuredAppearance

class TestCharacterAppearance(unittest.TestCase):
    def test_plain_appearance_is_trimmed(self):
        character = Character(name="Mira", appearance="  female mage, silver hair ")
        self.assertEqual(character.appearance_text, "female mage, silver hair")

    def test_structured_appearance_is_flattened(self):
        """Verify that nested face/clothing records become one comma list led by the type tag."""
        character = Character.model_validate({
            "name": "Mira",
            "appearance": {
                "type": "female mage",
                "face": {"hair": {"color": "silver", "length": "long"}, "eyeColor": "violet"},
                "clothing": {"robe": {"color": "deep blue"}},
                "accessories": {"staff": ""},
                "visualAnchors": ["crescent pendant"],
            },
        })

        self.assertIsInstance(character.appearance, StructuredAppearance)
        self.assertEqual(
            character.appearance_text,
            "female mage, hair color silver, hair length long, eye color violet, robe color deep blue, crescent pendant",
        )

    def test_reference_image_aliases(self):
        character = Character.model_validate({"name": "Mira", "appearance": "female mage", "base64Image": "abc"})
        self.assertEqual(character.reference_image, "abc")


class TestPanel(unittest.TestCase):
    def test_camel_case_fields(self):
        panel = Panel.model_validate({
            "description": "The dragon lands.",
            "visualComposition": "low angle",
            "continuityNotes": "same cave",
            "imagePrompt": "Panel 2 of 3. A dragon.",
            "characters": ["Dragon"],
        })
        self.assertEqual(panel.scene, "The dragon lands.")
        self.assertEqual(panel.visual_composition, "low angle")
        self.assertEqual(panel.continuity_notes, "same cave")
        self.assertEqual(panel.image_prompt, "Panel 2 of 3. A dragon.")
        self.assertEqual(panel.negative_prompt, "")

    def test_null_and_structured_values_become_text(self):
        panel = Panel.model_validate({
            "scene": None,
            "lighting": ["dawn", "backlit"],
            "characters": "Sir Aldric, Dragon",
        })
        self.assertEqual(panel.scene, "")
        self.assertEqual(panel.lighting, "dawn, backlit")
        self.assertEqual(panel.characters, ["Sir Aldric", "Dragon"])

    def test_cast_falls_back_to_main_character(self):
        self.assertEqual(Panel(mainCharacterName="Dragon").cast, ["Dragon"])
        self.assertEqual(Panel(characters=["Sir Aldric"], main_character_name="Dragon").cast, ["Sir Aldric"])
        self.assertEqual(Panel().cast, [])


class TestStoryPrompt(unittest.TestCase):
    def test_defaults(self):
        prompt = StoryPrompt(description="A knight fights a dragon.")
        self.assertEqual(prompt.number_of_panels, 6)
        self.assertEqual(prompt.style, "comic book")
        self.assertEqual(prompt.theme, "adventure")

    def test_camel_case_panel_count(self):
        prompt = StoryPrompt.model_validate({"description": "A story.", "numberOfPanels": 3})
        self.assertEqual(prompt.number_of_panels, 3)

    def test_panel_count_bounds(self):
        for count in (0, 13):
            with self.assertRaises(ValidationError):
                StoryPrompt(description="A story.", number_of_panels=count)

    def test_empty_description_rejected(self):
        with self.assertRaises(ValidationError):
            StoryPrompt(description="")


class TestProgressModels(unittest.TestCase):
    def test_defaults(self):
        progress = GenerationProgress()
        self.assertEqual(progress.status, "Initializing...")
        self.assertEqual(progress.progress, 0.0)
        self.assertEqual(ComicPanel(id="panel-1").status, PanelStatus.PENDING)

    def test_progress_range(self):
        with self.assertRaises(ValidationError):
            GenerationProgress(progress=101)

if __name__ == "__main__":
    unittest.main()
