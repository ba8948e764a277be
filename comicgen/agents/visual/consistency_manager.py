from typing import Any, Dict, Iterable, List, Optional
from comicgen.core.agent import BaseAgent
from comicgen.core.models import Character, Panel

BASE_NEGATIVE_PROMPTS = [
    "photorealistic", "blurry", "low quality", "distorted", "deformed", "bad anatomy",
    "extra limbs", "mutated", "cloned face", "duplicate", "poorly drawn", "out of frame",
    "text", "watermark", "signature", "low contrast", "grayscale",
]

NEGATIVE_PROMPT_LIMIT = 500
ELLIPSIS = "..."


def key_features(appearance: str) -> List[str]:
    """Comma-separated descriptors after the leading gender/type tag."""
    tokens = [t.strip() for t in appearance.split(",")]
    return [t for t in tokens[1:] if t]


def merge_negative_prompts(*parts: Optional[str]) -> str:
    """Joins comma lists, dropping repeated terms but keeping first-seen order."""
    seen = set()
    merged = []
    for part in parts:
        for term in (part or "").split(","):
            term = term.strip()
            if term and term.lower() not in seen:
                seen.add(term.lower())
                merged.append(term)
    return ", ".join(merged)


def truncate_phrases(text: str, limit: int = NEGATIVE_PROMPT_LIMIT) -> str:
    """
    Cuts a comma list to at most `limit` characters including the ellipsis,
    at the last phrase boundary that fits.
    """
    if len(text) <= limit:
        return text
    room = limit - len(ELLIPSIS)
    boundary = text.rfind(", ", 0, room + 1)
    if boundary <= 0:
        return text[:room] + ELLIPSIS
    return text[:boundary] + ELLIPSIS


class ConsistencyManager(BaseAgent):
    def __init__(self, agent_name: str = "ConsistencyManager", config: Dict[str, Any] = None):
        super().__init__(agent_name, config)
        self.base_negative = self.config.get("negative_prompt", ", ".join(BASE_NEGATIVE_PROMPTS))

    @staticmethod
    def find_character(name: str, characters: Iterable[Character]) -> Optional[Character]:
        wanted = name.strip().lower()
        for c in characters:
            if c.name.strip().lower() == wanted:
                return c
        return None

    def negative_prompt_for(self, panel: Panel, characters: List[Character]) -> str:
        """
        Builds the exclusion list for a panel: one "inconsistent <name>" per cast member,
        the baseline artifacts, then "changing <name>'s <feature>" per key feature.
        Cast-level phrases come first so truncation drops feature phrases before them.
        """
        cast_phrases = []
        feature_phrases = []
        for name in panel.cast:
            label = name.strip().lower()
            if not label:
                continue
            cast_phrases.append(f"inconsistent {label}")
            character = self.find_character(name, characters)
            if character:
                for feature in key_features(character.appearance_text):
                    feature_phrases.append(f"changing {label}'s {feature}")

        combined = merge_negative_prompts(", ".join(cast_phrases), self.base_negative, ", ".join(feature_phrases))
        return truncate_phrases(combined)

    def ensure_character_descriptions(self, image_prompt: str, panel: Panel, characters: List[Character]) -> str:
        """Appends "<Name>: <appearance>." for each cast member the prompt does not describe yet."""
        result = image_prompt
        for name in panel.cast:
            character = self.find_character(name, characters)
            if not character:
                continue
            desc = character.appearance_text
            if desc and desc not in result:
                result += f" {character.name}: {desc}."
        return result.strip()

    def process(self, panel: Panel, characters: List[Character]) -> Panel:
        """
        Returns a copy of the panel with a consistent image prompt and its derived negative prompt.
        """
        self.logger.debug(f"Deriving prompts for cast {panel.cast}...")
        return panel.model_copy(update={
            "image_prompt": self.ensure_character_descriptions(panel.image_prompt, panel, characters),
            "negative_prompt": self.negative_prompt_for(panel, characters),
        })
