import json
import logging
from typing import Any, Dict, Optional
import boto3
from comicgen.agents.infrastructure.resilience_agent import ResilienceAgent

logger = logging.getLogger(__name__)


class InferenceGateway:
    """
    Generic JSON request/response call against a hosted model (Bedrock runtime).
    Transport errors propagate; throttling is retried by the resilience agent.
    """

    def __init__(self, region_name: str = "us-east-1", client: Any = None,
                 resilience: Optional[ResilienceAgent] = None):
        self.region_name = region_name
        self.client = client or boto3.client("bedrock-runtime", region_name=region_name)
        self.resilience = resilience or ResilienceAgent()

    def invoke(self, model_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        body = json.dumps(payload)

        def _send():
            logger.info(f"Invoking {model_id} ({len(body)} bytes)...")
            return self.client.invoke_model(
                body=body,
                modelId=model_id,
                accept="application/json",
                contentType="application/json",
            )

        response = self.resilience.call(_send)
        return json.loads(response["body"].read())
