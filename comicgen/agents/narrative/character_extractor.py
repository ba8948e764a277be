from typing import Any, Dict, List, Optional
from comicgen.core.agent import BaseAgent
from comicgen.core.errors import JSONSalvageError
from comicgen.core.image_interface import ImageGeneratorInterface
from comicgen.core.models import Character
from comicgen.utils.json_resilience import JSONResilienceAgent
from comicgen.utils.llm_interface import LLMInterface

APPEARANCE_SOFT_LIMIT = 200

EXTRACTION_PROMPT = """You are an expert in visual storytelling. Analyze the story description below and extract every major character or creature that plays a key visual role.

For each one, write an "appearance" string that:
1. STARTS with a gender/type tag (e.g. "male knight", "female elf", "giant red dragon").
2. Continues with comma-separated visual details: hair (color, length, style) or fur/scales, eyes, build, clothing, colors, accessories, distinguishing marks.
3. Stays under {limit} characters.

Your output must be a valid JSON array of objects in exactly this format:
[
  {{
    "name": "Sir Aldric",
    "appearance": "male knight, short brown hair, green eyes, steel plate armor, blue cape, scar over left eye"
  }}
]

Only include characters that are either mentioned or strongly implied in the story. Return ONLY the JSON array.

Story Description:
"{story}\""""

PORTRAIT_PROMPT = "full-body portrait of {appearance}, neutral pose, white background. Consistent character visuals"


class CharacterExtractorAgent(BaseAgent):
    def __init__(self, agent_name: str = "CharacterExtractor", config: Dict[str, Any] = None,
                 llm: Optional[LLMInterface] = None, image_generator: Optional[ImageGeneratorInterface] = None):
        super().__init__(agent_name, config)
        self.llm = llm or LLMInterface(model_name=self.config.get("model_name", "bedrock/anthropic.claude-3-5-sonnet-20241022-v2:0"))
        self.image_generator = image_generator
        self.generate_portraits = self.config.get("generate_portraits", False)
        self.resilience = JSONResilienceAgent()

    def build_prompt(self, story_text: str) -> str:
        return EXTRACTION_PROMPT.format(limit=APPEARANCE_SOFT_LIMIT, story=story_text.strip())

    def process(self, story_text: str) -> List[Character]:
        """
        Enumerates the story's characters with short visual descriptions.
        Raises MalformedResponseError or JSONSalvageError when the model output is unusable.
        """
        self.logger.info("Extracting character definitions...")
        raw = self.llm.generate_text(self.build_prompt(story_text))
        self.logger.debug(f"Raw character definitions response: {raw}")

        try:
            parsed = self.resilience.parse_list(raw, Character)
        except JSONSalvageError:
            self.logger.error(f"Failed to parse character definitions. Problematic text: {raw}")
            raise

        characters = []
        seen = set()
        for char in parsed:
            key = char.name.strip().lower()
            if not key:
                continue
            if key in seen:
                self.logger.info(f"Dropping duplicate character '{char.name}'.")
                continue
            seen.add(key)
            characters.append(char)

        self.logger.info(f"Extracted {len(characters)} characters: {[c.name for c in characters]}")

        if self.generate_portraits and self.image_generator:
            characters = [self._with_portrait(c) for c in characters]
        return characters

    def _with_portrait(self, character: Character) -> Character:
        """
        Renders a neutral reference portrait. A failure leaves the character without one.
        """
        try:
            portrait = self.image_generator.generate(PORTRAIT_PROMPT.format(appearance=character.appearance_text))
        except Exception as e:
            self.logger.error(f"Failed to generate reference image for {character.name}: {e}")
            return character
        if not portrait:
            self.logger.warning(f"No reference image returned for {character.name}.")
            return character
        self.logger.info(f"Generated reference image for {character.name}")
        return character.model_copy(update={"reference_image": portrait})
