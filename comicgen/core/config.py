import os
from typing import Optional
from dotenv import load_dotenv
from pydantic import BaseModel, Field


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """
    Runtime configuration for one pipeline instance.
    Credentials are not stored here; boto3 and litellm read them from the environment.
    """
    aws_region: str = Field("us-east-1", description="Region of the inference gateway")
    text_model: str = Field("bedrock/anthropic.claude-3-5-sonnet-20241022-v2:0", description="litellm model id for story/outline calls")
    image_model: str = Field("stability.stable-image-ultra-v1:0", description="Gateway model id of the diffusion model")
    max_tokens: int = 2500
    temperature: float = 0.7
    top_p: float = 1.0
    max_retries: int = Field(3, ge=0)
    retry_delay: float = Field(1.0, ge=0.0, description="Initial backoff delay in seconds, doubled per retry")
    image_request_delay: float = Field(2.0, ge=0.0, description="Fixed pause before every image request")
    generate_portraits: bool = Field(False, description="Render a reference portrait per character and reuse it image-to-image")
    blend_strength: float = Field(0.7, ge=0.0, le=1.0)

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Settings":
        load_dotenv(dotenv_path, override=False)
        defaults = cls()
        return cls(
            aws_region=os.getenv("AWS_REGION", defaults.aws_region),
            text_model=os.getenv("COMICGEN_TEXT_MODEL", defaults.text_model),
            image_model=os.getenv("COMICGEN_IMAGE_MODEL", defaults.image_model),
            max_tokens=int(os.getenv("COMICGEN_MAX_TOKENS", defaults.max_tokens)),
            temperature=float(os.getenv("COMICGEN_TEMPERATURE", defaults.temperature)),
            top_p=float(os.getenv("COMICGEN_TOP_P", defaults.top_p)),
            max_retries=int(os.getenv("COMICGEN_MAX_RETRIES", defaults.max_retries)),
            retry_delay=float(os.getenv("COMICGEN_RETRY_DELAY", defaults.retry_delay)),
            image_request_delay=float(os.getenv("COMICGEN_IMAGE_DELAY", defaults.image_request_delay)),
            generate_portraits=_env_bool("COMICGEN_PORTRAITS", defaults.generate_portraits),
            blend_strength=float(os.getenv("COMICGEN_BLEND_STRENGTH", defaults.blend_strength)),
        )
