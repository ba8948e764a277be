from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from functools import lru_cache
from pydantic import BaseModel, ValidationError
import logging
from typing import Any, Dict, Literal, Optional
from comicgen.core.config import Settings
from comicgen.core.models import StoryPrompt
from comicgen.main import ComicPipeline
from comicgen.utils.gateway import InferenceGateway
from comicgen.utils.llm_interface import LLMInterface

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("ComicServer")

app = FastAPI(title="Comic Generator Server")

# Enable CORS for the browser frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse({"error": "Invalid request", "detail": [e.get("msg") for e in exc.errors()]}, status_code=400)


class GenerateRequest(BaseModel):
    type: Optional[Literal["story", "image"]] = None
    prompt: str = ""
    negative_prompt: Optional[str] = None
    seed: Optional[int] = None
    aspect_ratio: Optional[str] = None


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()


def get_llm(settings: Settings = Depends(get_settings)) -> LLMInterface:
    return LLMInterface(model_name=settings.text_model, aws_region=settings.aws_region)


def get_gateway(settings: Settings = Depends(get_settings)) -> InferenceGateway:
    return InferenceGateway(region_name=settings.aws_region)


def get_pipeline(settings: Settings = Depends(get_settings)) -> ComicPipeline:
    return ComicPipeline(settings)


@app.post("/api/generate")
def generate(body: Dict[str, Any],
             llm: LLMInterface = Depends(get_llm),
             gateway: InferenceGateway = Depends(get_gateway),
             settings: Settings = Depends(get_settings)):
    """Thin pass-through to the language or diffusion model."""
    try:
        request = GenerateRequest.model_validate(body)
    except ValidationError:
        return JSONResponse({"error": "Invalid request type"}, status_code=400)

    try:
        if request.type == "story":
            story = llm.generate_text(request.prompt, max_tokens=4096, temperature=0.7, stop=["\n\nHuman:"])
            return {"story": story}
        if request.type == "image":
            payload = {
                "prompt": request.prompt,
                "negative_prompt": request.negative_prompt,
                "seed": request.seed,
                "aspect_ratio": request.aspect_ratio,
            }
            result = gateway.invoke(settings.image_model, {k: v for k, v in payload.items() if v is not None})
            images = result.get("images")
            if not isinstance(images, list) or not images:
                raise ValueError("Invalid response structure from Bedrock")
            return {"image": images[0]}
        return JSONResponse({"error": "Invalid request type"}, status_code=400)
    except Exception as e:
        logger.error(f"Error in generate API: {e}")
        return JSONResponse({"error": str(e) or "Internal server error"}, status_code=500)


@app.post("/api/comics")
def create_comic(prompt: StoryPrompt, pipeline: ComicPipeline = Depends(get_pipeline)):
    """Runs a full generation and returns the story with its panels."""
    story = pipeline.run(prompt)
    return story.model_dump(mode="json")


@app.get("/api/health")
async def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
