from typing import Any, Dict, List, Optional
from comicgen.agents.visual.consistency_manager import ConsistencyManager
from comicgen.core.agent import BaseAgent
from comicgen.core.errors import IncompleteOutlineError, JSONSalvageError
from comicgen.core.models import Character, Outline, Panel
from comicgen.utils.json_resilience import JSONResilienceAgent
from comicgen.utils.llm_interface import LLMInterface

IMAGE_PROMPT_LIMIT = 420
OUTLINE_LIMIT = 9000

OUTLINE_PROMPT = """You are a comic writer and visual scene planner for AI-generated comics.

Break the story described below into EXACTLY {count} comic panels. Each panel should advance the plot with clear actions, scene setting and character interactions. Each panel must follow logically from the previous one; characters stay in frame unless the story removes them.

For each panel provide:
- "scene": a short narrative description of what happens
- "visualComposition": camera angle, framing and placement of characters
- "lighting": light sources, time of day, mood
- "background": environment details
- "characters": array with the exact names (from the Character Definitions) of everyone visible
- "continuityNotes": what must match the previous panel
- "poseDetails": body positions and gestures
- "expressions": facial expressions per character
- "motionEffects": speed lines, debris, smoke, or "none"
- "scaleRelationship": relative sizes of characters and objects
- "damage": visible damage or wear, or "none"
- "imagePrompt": one sentence for an image model, starting with "Panel X of {count}.", restating the full appearance of every character present

Formatting rules:
- Each imagePrompt must stay under {prompt_limit} characters.
- The whole JSON must stay under {outline_limit} characters.
- Only describe things that can be drawn: no internal thoughts.
- Art direction: {style} style, {theme} theme.

Character Definitions:
{characters}

Story Description:
"{story}"

Return ONLY this JSON structure:
{{
  "panels": [
    {{
      "scene": "...",
      "visualComposition": "...",
      "lighting": "...",
      "background": "...",
      "characters": ["..."],
      "continuityNotes": "...",
      "poseDetails": "...",
      "expressions": "...",
      "motionEffects": "...",
      "scaleRelationship": "...",
      "damage": "...",
      "imagePrompt": "Panel 1 of {count}. ..."
    }}
  ]
}}"""


class OutlineWriterAgent(BaseAgent):
    def __init__(self, agent_name: str = "OutlineWriter", config: Dict[str, Any] = None,
                 llm: Optional[LLMInterface] = None, consistency_manager: Optional[ConsistencyManager] = None):
        super().__init__(agent_name, config)
        self.llm = llm or LLMInterface(model_name=self.config.get("model_name", "bedrock/anthropic.claude-3-5-sonnet-20241022-v2:0"))
        self.consistency_manager = consistency_manager or ConsistencyManager()
        self.resilience = JSONResilienceAgent()

    def build_prompt(self, story_text: str, characters: List[Character], panel_count: int,
                     style: str = "comic book", theme: str = "adventure") -> str:
        character_descriptions = "\n".join(f"{c.name}: {c.appearance_text}" for c in characters)
        return OUTLINE_PROMPT.format(
            count=panel_count,
            prompt_limit=IMAGE_PROMPT_LIMIT,
            outline_limit=OUTLINE_LIMIT,
            style=style,
            theme=theme,
            characters=character_descriptions or "(none identified)",
            story=story_text.strip(),
        )

    def process(self, story_text: str, characters: List[Character], panel_count: int,
                style: str = "comic book", theme: str = "adventure") -> Outline:
        """
        Splits the story into exactly `panel_count` panels.

        Fewer panels than requested raises IncompleteOutlineError; extra panels
        are dropped. Each kept panel gets its negative prompt derived from the cast.
        """
        if panel_count < 1:
            raise ValueError(f"panel_count must be positive, got {panel_count}")

        self.logger.info(f"Generating story outline with {panel_count} panels for {len(characters)} characters...")
        raw = self.llm.generate_text(self.build_prompt(story_text, characters, panel_count, style, theme))

        try:
            panels = self.resilience.parse_list(raw, Panel, key="panels")
        except JSONSalvageError:
            self.logger.error(f"Failed to parse story outline. Raw text: {raw}")
            raise

        if len(panels) < panel_count:
            self.logger.error(f"Outline returned {len(panels)} panels, expected {panel_count}.")
            raise IncompleteOutlineError(expected=panel_count, actual=len(panels))
        if len(panels) > panel_count:
            self.logger.info(f"Outline returned {len(panels)} panels; keeping the first {panel_count}.")
            panels = panels[:panel_count]

        return Outline(panels=[self.consistency_manager.process(p, characters) for p in panels])
