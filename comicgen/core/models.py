from enum import Enum
from typing import Any, Dict, List, Optional, Union
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class StructuredAppearance(BaseModel):
    """
    Nested appearance record (face/body/clothing/accessories).
    Normalized to a flat string by Character.appearance_text before any prompt sees it.
    """
    model_config = ConfigDict(populate_by_name=True)

    kind: Optional[str] = Field(None, validation_alias=AliasChoices("kind", "type", "gender"), description="Gender/type tag, e.g. 'male knight'")
    face: Dict[str, Any] = Field(default_factory=dict, description="Hair, eyes, nose, face shape, facial features")
    body: Dict[str, Any] = Field(default_factory=dict, description="Height, build, posture, age")
    clothing: Dict[str, Any] = Field(default_factory=dict, description="Garments by item")
    accessories: Dict[str, Any] = Field(default_factory=dict, description="Carried items by name")
    visual_anchors: List[str] = Field(default_factory=list, alias="visualAnchors")

    def flatten(self) -> str:
        parts = []
        if self.kind:
            parts.append(self.kind.strip())
        for section in (self.face, self.body, self.clothing, self.accessories):
            parts.extend(_flatten_leaves(section, []))
        parts.extend(a.strip() for a in self.visual_anchors if a and a.strip())
        return ", ".join(parts)


def _flatten_leaves(value: Any, path: List[str]) -> List[str]:
    if isinstance(value, dict):
        leaves = []
        for key, child in value.items():
            leaves.extend(_flatten_leaves(child, path + [_split_camel(key)]))
        return leaves
    if value is None or str(value).strip() == "":
        return []
    # Prefix with the innermost keys so "color: black" keeps its subject ("hair color black")
    label = " ".join(path[-2:])
    return [f"{label} {str(value).strip()}".strip()]


def _split_camel(key: str) -> str:
    out = []
    for ch in key:
        if ch.isupper() and out:
            out.append(" ")
        out.append(ch.lower())
    return "".join(out)


def _as_text(value: Any) -> str:
    """Models sometimes write null, a list or a per-character mapping where a sentence is expected."""
    if value is None:
        return ""
    if isinstance(value, dict):
        return ", ".join(f"{k}: {_as_text(v)}" for k, v in value.items() if v is not None)
    if isinstance(value, list):
        return ", ".join(_as_text(v) for v in value if v is not None)
    return str(value)


class Character(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., description="The unique, canonical name of the character")
    appearance: Union[str, StructuredAppearance] = Field(..., description="Visual description, starting with a gender/type tag")
    reference_image: Optional[str] = Field(None, validation_alias=AliasChoices("reference_image", "referenceImage", "base64Image"), description="Base64 portrait used to condition later panels")

    @field_validator("name", "appearance", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def appearance_text(self) -> str:
        if isinstance(self.appearance, StructuredAppearance):
            return self.appearance.flatten()
        return self.appearance.strip()


class Panel(BaseModel):
    """One outline entry. Accepts the camelCase names the language model writes."""
    model_config = ConfigDict(populate_by_name=True)

    scene: str = Field("", validation_alias=AliasChoices("scene", "description"), description="What happens in the panel")
    visual_composition: str = Field("", alias="visualComposition")
    lighting: str = ""
    background: str = ""
    characters: List[str] = Field(default_factory=list, description="Names of the characters present, in order")
    continuity_notes: str = Field("", alias="continuityNotes")
    pose_details: str = Field("", alias="poseDetails")
    expressions: str = ""
    motion_effects: str = Field("", alias="motionEffects")
    scale_relationship: str = Field("", alias="scaleRelationship")
    damage: str = ""
    image_prompt: str = Field("", alias="imagePrompt")
    negative_prompt: str = Field("", alias="negativePrompt", description="Derived from the cast, never model-authored")
    main_character_name: Optional[str] = Field(None, alias="mainCharacterName")

    @field_validator("scene", "visual_composition", "lighting", "background", "continuity_notes", "pose_details",
                     "expressions", "motion_effects", "scale_relationship", "damage", "image_prompt", "negative_prompt",
                     mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("characters", mode="before")
    @classmethod
    def _coerce_names(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        if not isinstance(value, (list, tuple)):
            return value
        return [str(name).strip() for name in value if name is not None and str(name).strip()]

    @property
    def cast(self) -> List[str]:
        if self.characters:
            return self.characters
        return [self.main_character_name] if self.main_character_name else []


class Outline(BaseModel):
    panels: List[Panel] = Field(default_factory=list, description="Ordered panel specifications")


class PanelStatus(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    ERROR = "error"


class ComicPanel(BaseModel):
    id: str = Field(..., description="Run-scoped unique token")
    image_url: Optional[str] = Field(None, description="data: URL of the rendered image, absent while pending or on failure")
    description: str = ""
    prompt: str = ""
    seed: Optional[int] = None
    status: PanelStatus = PanelStatus.PENDING


class GenerationProgress(BaseModel):
    current_panel: int = 0
    total_panels: int = 0
    status: str = "Initializing..."
    progress: float = Field(0.0, ge=0.0, le=100.0, description="Percentage of panels rendered")


class StoryPrompt(BaseModel):
    title: Optional[str] = None
    description: str = Field(..., min_length=1, description="Free-text story description")
    number_of_panels: int = Field(6, ge=1, le=12, validation_alias=AliasChoices("number_of_panels", "numberOfPanels"))
    style: str = "comic book"
    theme: str = "adventure"
