from comicgen.core.agent import BaseAgent
from comicgen.core.image_interface import ImageGeneratorInterface
from comicgen.core.models import Character, ComicPanel, Panel, PanelStatus
from comicgen.core.run_state import RunContext
from comicgen.agents.visual.consistency_manager import ConsistencyManager
from comicgen.agents.visual.seeding import normalize_cast, seed_for
from typing import Any, Dict, List, Optional


def to_data_url(image_base64: str) -> str:
    return f"data:image/png;base64,{image_base64}"


class IllustratorAgent(BaseAgent):
    def __init__(self, agent_name: str, image_generator: ImageGeneratorInterface, config: Dict[str, Any] = None):
        super().__init__(agent_name, config)
        self.image_generator = image_generator
        self.use_reference_images = self.config.get("use_reference_images", False)
        self.blend_strength = self.config.get("blend_strength", 0.7)

    def _reference_for(self, panel: Panel, characters: List[Character]) -> Optional[str]:
        """Portrait of the first cast member that has one."""
        if not self.use_reference_images:
            return None
        for name in panel.cast:
            character = ConsistencyManager.find_character(name, characters)
            if character and character.reference_image:
                return character.reference_image
        return None

    def render_panel(self, index: int, panel: Panel, context: RunContext) -> ComicPanel:
        """
        Renders one outline panel. Any failure is recorded on the panel, never raised.
        """
        seed = seed_for(panel.cast)
        self.logger.info(f"Illustrating Panel {index + 1} - Characters: {panel.cast} Seed: {seed}")

        image = None
        try:
            image = self.image_generator.generate(
                prompt=panel.image_prompt,
                negative_prompt=panel.negative_prompt,
                seed=seed,
                reference_image=self._reference_for(panel, context.characters),
                strength=self.blend_strength,
            )
        except Exception as e:
            self.logger.error(f"Image generation failed for Panel {index + 1}: {e}")

        return ComicPanel(
            id=context.panel_id(index),
            image_url=to_data_url(image) if image else None,
            description=panel.scene,
            prompt=panel.image_prompt,
            seed=seed,
            status=PanelStatus.COMPLETED if image else PanelStatus.ERROR,
        )

    def process(self, context: RunContext) -> List[ComicPanel]:
        """
        Renders the outline strictly in order, one provider call at a time.
        """
        panels = context.outline.panels if context.outline else []
        total = len(panels)
        context.update_progress(status="Generating images...", total_panels=total)

        for i, panel in enumerate(panels):
            context.update_progress(current_panel=i + 1, progress=(i + 1) / total * 100)
            context.panels.append(self.render_panel(i, panel, context))

        self.logger.info("Panel-to-seed mapping: " + "; ".join(
            f"panel {i + 1}: {p.cast} -> {normalize_cast(p.cast)} seed {cp.seed}"
            for i, (p, cp) in enumerate(zip(panels, context.panels))
        ))
        return context.panels
