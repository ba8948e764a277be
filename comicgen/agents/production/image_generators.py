import base64
import io
import logging
import random
import time
from typing import Any, Callable, Dict, Optional
from PIL import Image, ImageDraw
from comicgen.agents.visual.consistency_manager import BASE_NEGATIVE_PROMPTS, merge_negative_prompts
from comicgen.agents.visual.seeding import SEED_RANGE
from comicgen.core.errors import EmptyImageResponseError
from comicgen.core.image_interface import ImageGeneratorInterface
from comicgen.utils.gateway import InferenceGateway

logger = logging.getLogger(__name__)

STYLE_PREAMBLE = "Highly detailed comic book style illustration"
STYLE_SUFFIX = "vibrant colors, dynamic poses, sharp outlines, dramatic lighting, sharp shadows, strong ink lines."


def format_image_prompt(prompt: str) -> str:
    return f"{STYLE_PREAMBLE}, {prompt.strip()}, {STYLE_SUFFIX}"


def render_placeholder(text: str, width: int = 512, height: int = 512) -> str:
    """Draws a flat placeholder PNG with a caption; returns it base64-encoded."""
    img = Image.new('RGB', (width, height), color=(73, 109, 137))
    d = ImageDraw.Draw(img)
    d.text((10, 10), "No image", fill=(255, 255, 0))
    for i in range(0, min(len(text), 400), 50):
        d.text((10, 30 + i // 50 * 14), text[i:i + 50], fill=(255, 255, 255))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")


class MockImageGenerator(ImageGeneratorInterface):
    """
    Offline generator: renders the prompt onto a placeholder instead of calling a provider.
    """
    def __init__(self):
        self.calls = []

    def generate(self, prompt: str, negative_prompt: str = "", seed: Optional[int] = None,
                 reference_image: Optional[str] = None, strength: float = 0.7) -> Optional[str]:
        logger.info(f"Mock Generating Image with prompt: {prompt[:50]}...")
        self.calls.append({"prompt": prompt, "negative_prompt": negative_prompt, "seed": seed,
                           "reference_image": reference_image, "strength": strength})
        return render_placeholder(f"seed {seed}: {prompt}")


class BedrockImageGenerator(ImageGeneratorInterface):
    """
    Diffusion model behind the inference gateway (Stability on Bedrock).
    Waits a fixed delay before each request to stay under provider throughput limits.
    """
    def __init__(self, gateway: InferenceGateway, model_id: str = "stability.stable-image-ultra-v1:0",
                 request_delay: float = 2.0, sleep: Callable[[float], Any] = time.sleep):
        self.gateway = gateway
        self.model_id = model_id
        self.request_delay = request_delay
        self.sleep = sleep

    def build_request(self, prompt: str, negative_prompt: str = "", seed: Optional[int] = None,
                      reference_image: Optional[str] = None, strength: float = 0.7) -> Dict[str, Any]:
        request = {
            "prompt": format_image_prompt(prompt),
            "negative_prompt": merge_negative_prompts(negative_prompt, ", ".join(BASE_NEGATIVE_PROMPTS)),
            "seed": seed,
            "output_format": "png",
        }
        if reference_image:
            request["mode"] = "image-to-image"
            request["image"] = reference_image
            request["strength"] = strength
        else:
            request["mode"] = "text-to-image"
            request["aspect_ratio"] = "1:1"
        return request

    def generate(self, prompt: str, negative_prompt: str = "", seed: Optional[int] = None,
                 reference_image: Optional[str] = None, strength: float = 0.7) -> Optional[str]:
        if seed is None:
            seed = random.randrange(SEED_RANGE)

        request = self.build_request(prompt, negative_prompt, seed, reference_image, strength)
        logger.info(f"Generating image ({request['mode']}, seed {seed}): {prompt[:100]}...")

        if self.request_delay:
            self.sleep(self.request_delay)

        result = self.gateway.invoke(self.model_id, request)
        try:
            return self._first_image(result)
        except EmptyImageResponseError as e:
            logger.error(f"{e} Response: {result}")
            return None

    @staticmethod
    def _first_image(result: Any) -> str:
        images = result.get("images") if isinstance(result, dict) else None
        if not isinstance(images, list) or not images or not images[0]:
            raise EmptyImageResponseError("Image response did not contain any images.")
        return images[0]
