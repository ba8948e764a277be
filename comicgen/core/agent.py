from typing import Any, Dict
from pydantic import BaseModel
import logging

class BaseAgent:
    """
    Base class for all agents in the comic generation pipeline.
    """
    def __init__(self, agent_name: str, config: Dict[str, Any] = None):
        self.name = agent_name
        self.config = config or {}
        self.logger = logging.getLogger(f"Agent.{agent_name}")

    def process(self, *args: Any, **kwargs: Any) -> Any:
        raise NotImplementedError(f"{type(self).__name__} must implement process()")

    def validate_output(self, data: Any, expected_schema: Any) -> Any:
        """
        Validates that the data matches the expected Pydantic schema.
        Raises ValidationError if invalid.
        """
        if isinstance(expected_schema, type) and issubclass(expected_schema, BaseModel):
            if isinstance(data, dict):
                return expected_schema.model_validate(data)
            elif isinstance(data, expected_schema):
                return data
            else:
                raise ValueError(f"Data type {type(data)} does not match schema {expected_schema}")
        return data

    def run(self, *args: Any, expected_schema: Any = None, **kwargs: Any) -> Any:
        """
        Runs process() with logging and optional schema validation.
        Retries live on the individual model calls, not here.
        """
        self.logger.info(f"Starting execution for {self.name}...")
        try:
            result = self.process(*args, **kwargs)

            if expected_schema:
                try:
                    result = self.validate_output(result, expected_schema)
                except Exception as e:
                    self.logger.error(f"Schema Validation Failed in {self.name}: {e}")
                    raise

            self.logger.info(f"Execution handling complete for {self.name}.")
            return result
        except Exception as e:
            self.logger.error(f"Error in {self.name}: {str(e)}")
            raise
