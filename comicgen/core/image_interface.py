from abc import ABC, abstractmethod
from typing import Optional

class ImageGeneratorInterface(ABC):
    @abstractmethod
    def generate(self, prompt: str, negative_prompt: str = "", seed: Optional[int] = None,
                 reference_image: Optional[str] = None, strength: float = 0.7) -> Optional[str]:
        """
        Generates an image from a prompt.
        Returns the base64-encoded image, or None when the provider returned no image.
        """
        pass
