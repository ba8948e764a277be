import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, List, Optional
from pydantic import BaseModel, Field
from comicgen.core.models import Character, ComicPanel, GenerationProgress, Outline, PanelStatus, StoryPrompt

logger = logging.getLogger(__name__)


class StoryStatus(str, Enum):
    DRAFT = "draft"
    GENERATING = "generating"
    COMPLETED = "completed"
    ERROR = "error"


class ComicStory(BaseModel):
    """Result of one generation run. Nothing here outlives the caller."""
    id: str
    title: str = ""
    characters: List[Character] = Field(default_factory=list)
    outline: Optional[Outline] = None
    panels: List[ComicPanel] = Field(default_factory=list)
    status: StoryStatus = StoryStatus.DRAFT
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    progress: GenerationProgress = Field(default_factory=GenerationProgress)


class RunContext(BaseModel):
    """
    State of a single generation run, threaded explicitly through each pipeline stage.
    Only the orchestrating sequence mutates it.
    """
    prompt: StoryPrompt
    run_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:8])
    characters: List[Character] = Field(default_factory=list)
    outline: Optional[Outline] = None
    panels: List[ComicPanel] = Field(default_factory=list)
    progress: GenerationProgress = Field(default_factory=GenerationProgress)
    on_progress: Optional[Callable[[GenerationProgress], Any]] = Field(None, exclude=True)

    def model_post_init(self, __context: Any) -> None:
        self.progress = GenerationProgress(total_panels=self.prompt.number_of_panels)

    @property
    def stage(self) -> str:
        """Helper to determine the current stage of the run."""
        if not self.characters:
            return "characters"
        if not self.outline:
            return "outline"
        return "images"

    @property
    def failed_panels(self) -> List[ComicPanel]:
        return [p for p in self.panels if p.status == PanelStatus.ERROR]

    def panel_id(self, index: int) -> str:
        return f"panel-{self.run_id}-{index}"

    def update_progress(self, **changes: Any) -> GenerationProgress:
        self.progress = self.progress.model_copy(update=changes)
        logger.info(f"[PROGRESS] {int(self.progress.progress)}% - {self.progress.status}")
        if self.on_progress:
            self.on_progress(self.progress)
        return self.progress

    def to_story(self, status: StoryStatus) -> ComicStory:
        return ComicStory(
            id=self.run_id,
            title=self.prompt.title or "",
            characters=list(self.characters),
            outline=self.outline,
            panels=list(self.panels),
            status=status,
            progress=self.progress,
        )
