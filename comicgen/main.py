import argparse
import base64
import logging
import os
import sys
from typing import Any, Callable, Optional

from comicgen.agents.infrastructure.resilience_agent import ResilienceAgent
from comicgen.agents.narrative.character_extractor import CharacterExtractorAgent
from comicgen.agents.narrative.outline_writer import OutlineWriterAgent
from comicgen.agents.production.illustrator import IllustratorAgent
from comicgen.agents.production.image_generators import BedrockImageGenerator, MockImageGenerator, render_placeholder
from comicgen.agents.visual.consistency_manager import ConsistencyManager
from comicgen.core.config import Settings
from comicgen.core.image_interface import ImageGeneratorInterface
from comicgen.core.models import GenerationProgress, Outline, StoryPrompt
from comicgen.core.run_state import ComicStory, RunContext, StoryStatus
from comicgen.utils.gateway import InferenceGateway
from comicgen.utils.llm_interface import LLMInterface

logger = logging.getLogger("ComicGen")

STATUS_EXTRACTING = "Extracting characters..."
STATUS_OUTLINING = "Generating story outline..."
STATUS_COMPLETE = "Complete!"
ERROR_CHARACTERS = "Error: Failed to extract characters."
ERROR_OUTLINE = "Error: Story outline generation failed."
ERROR_UNEXPECTED = "Error generating story"


def panel_count(value: str) -> int:
    try:
        count = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid panel count: '{value}'")
    if not 1 <= count <= 12:
        raise argparse.ArgumentTypeError(f"panel count must be between 1 and 12, got {count}")
    return count


class ComicPipeline:
    """
    Character extraction -> outline -> per-panel image synthesis, run sequentially.
    """
    def __init__(self, settings: Optional[Settings] = None, llm: Optional[LLMInterface] = None,
                 image_generator: Optional[ImageGeneratorInterface] = None):
        self.settings = settings or Settings.from_env()
        s = self.settings

        resilience = ResilienceAgent(config={"max_retries": s.max_retries, "initial_delay": s.retry_delay})
        self.llm = llm or LLMInterface(model_name=s.text_model, max_tokens=s.max_tokens, temperature=s.temperature,
                                       top_p=s.top_p, resilience=resilience, aws_region=s.aws_region)
        if image_generator is None:
            gateway = InferenceGateway(region_name=s.aws_region, resilience=resilience)
            image_generator = BedrockImageGenerator(gateway, model_id=s.image_model, request_delay=s.image_request_delay)
        self.image_generator = image_generator

        self.character_extractor = CharacterExtractorAgent(
            "CharacterExtractor", config={"generate_portraits": s.generate_portraits},
            llm=self.llm, image_generator=image_generator)
        self.outline_writer = OutlineWriterAgent("OutlineWriter", llm=self.llm, consistency_manager=ConsistencyManager())
        self.illustrator = IllustratorAgent(
            "Illustrator", image_generator=image_generator,
            config={"use_reference_images": s.generate_portraits, "blend_strength": s.blend_strength})

    def _fail(self, context: RunContext, status: str) -> ComicStory:
        context.update_progress(status=status)
        return context.to_story(StoryStatus.ERROR)

    def run(self, prompt: StoryPrompt, on_progress: Optional[Callable[[GenerationProgress], Any]] = None) -> ComicStory:
        """
        Runs one generation. Stage failures are reported in the returned story's
        status and progress message rather than raised.
        """
        context = RunContext(prompt=prompt, on_progress=on_progress)
        try:
            # Step 1: Characters
            context.update_progress(status=STATUS_EXTRACTING)
            try:
                context.characters = self.character_extractor.run(prompt.description)
            except Exception as e:
                logger.error(f"Character extraction failed: {e}")
                return self._fail(context, ERROR_CHARACTERS)
            if not context.characters:
                return self._fail(context, ERROR_CHARACTERS)

            # Step 2: Outline
            context.update_progress(status=STATUS_OUTLINING)
            try:
                context.outline = self.outline_writer.run(
                    prompt.description, context.characters, prompt.number_of_panels,
                    style=prompt.style, theme=prompt.theme, expected_schema=Outline)
            except Exception as e:
                logger.error(f"Outline generation failed: {e}")
                return self._fail(context, ERROR_OUTLINE)

            # Step 3: Images
            self.illustrator.run(context)
        except Exception as e:
            logger.exception(f"Pipeline failed during the {context.stage} stage: {e}")
            return self._fail(context, ERROR_UNEXPECTED)

        failed = context.failed_panels
        if failed:
            context.update_progress(status=f"Complete with errors: {len(failed)} of {len(context.panels)} panels failed to render.")
        else:
            context.update_progress(status=STATUS_COMPLETE)
        return context.to_story(StoryStatus.COMPLETED)


def save_story(story: ComicStory, output_dir: str) -> list:
    """Writes one PNG per panel (placeholders for failed ones) plus story.json."""
    os.makedirs(output_dir, exist_ok=True)
    paths = []
    for i, panel in enumerate(story.panels):
        if panel.image_url:
            data = panel.image_url.split(",", 1)[1]
        else:
            data = render_placeholder(panel.description or "Image unavailable")
        path = os.path.join(output_dir, f"panel_{i + 1:02d}.png")
        with open(path, "wb") as f:
            f.write(base64.b64decode(data))
        paths.append(path)

    story_path = os.path.join(output_dir, "story.json")
    with open(story_path, "w", encoding="utf-8") as f:
        f.write(story.model_dump_json(indent=2))
    paths.append(story_path)
    return paths


def main(argv=None):
    parser = argparse.ArgumentParser(description="AI Comic Book Generator")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--prompt", type=str, help="Story description")
    source.add_argument("--input", type=str, help="Path to a text file holding the story description")
    parser.add_argument("--panels", type=panel_count, default=6, help="Number of panels (1-12)")
    parser.add_argument("--title", type=str, default=None, help="Comic title")
    parser.add_argument("--style", type=str, default="comic book", help="Art style hint")
    parser.add_argument("--theme", type=str, default="adventure", help="Theme hint")
    parser.add_argument("--output", type=str, default="output", help="Output directory")
    parser.add_argument("--portraits", action="store_true", help="Render reference portraits and draw panels image-to-image")
    parser.add_argument("--mock-images", action="store_true", help="Use placeholder images instead of the diffusion model")
    parser.add_argument("--text-model", type=str, help="Override the language model id")
    parser.add_argument("--image-model", type=str, help="Override the diffusion model id")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler("pipeline.log", mode='w'),
            logging.StreamHandler(sys.stdout)
        ]
    )

    description = args.prompt
    if args.input:
        with open(args.input, 'r', encoding='utf-8') as f:
            description = f.read()
    if not description or not description.strip():
        logger.error("Story description is empty!")
        return 1

    overrides = {"generate_portraits": args.portraits or None, "text_model": args.text_model, "image_model": args.image_model}
    settings = Settings.from_env().model_copy(update={k: v for k, v in overrides.items() if v is not None})

    prompt = StoryPrompt(title=args.title, description=description, number_of_panels=args.panels,
                         style=args.style, theme=args.theme)

    logger.info(f"🧠 Text Model: {settings.text_model}")
    logger.info(f"🎨 Image Model: {'mock' if args.mock_images else settings.image_model}")

    pipeline = ComicPipeline(settings, image_generator=MockImageGenerator() if args.mock_images else None)
    story = pipeline.run(prompt)

    logger.info(f"Status: {story.progress.status}")
    if story.status == StoryStatus.ERROR:
        return 1

    for p in save_story(story, args.output):
        logger.info(f"  - {p}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
