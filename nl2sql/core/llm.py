import logging
from typing import List, Optional

import httpx
from ollama import Client, ResponseError

from ..config import settings
from .exceptions import ModelConnectionError, ModelTimeoutError
from .models import ModelStatus


class LLMManager:
    """Manages interactions with the local Ollama service."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        model_name: Optional[str] = None,
        timeout: Optional[float] = None,
        status_timeout: Optional[float] = None,
    ):
        """
        Initialize the LLM manager.

        Args:
            base_url: Ollama base URL
            model_name: Default model used when a call names none
            timeout: Seconds to wait for a generation before giving up
            status_timeout: Seconds to wait for the model list
        """
        self.logger = logging.getLogger(__name__)
        self.base_url = base_url or settings.llm_base_url
        self.model_name = model_name or settings.llm_model_name
        self.client = Client(
            host=self.base_url,
            timeout=timeout if timeout is not None else settings.llm_timeout,
        )
        self.status_client = Client(
            host=self.base_url,
            timeout=status_timeout if status_timeout is not None else settings.llm_status_timeout,
        )
        self.logger.info(f"LLM client initialized for {self.base_url} with model: {self.model_name}")

    def generate(self, prompt: str, model: Optional[str] = None) -> str:
        """
        Send a prompt to Ollama and return the raw response text.

        Args:
            prompt: Complete prompt
            model: Model name (defaults to the configured model)

        Returns:
            Free-text model response

        Raises:
            ModelTimeoutError: the request exceeded the timeout
            ModelConnectionError: Ollama unreachable or returned an error status
        """
        model = model or self.model_name

        try:
            response = self.client.generate(
                model=model,
                prompt=prompt,
                stream=False,
                options={"temperature": settings.llm_temperature},
            )
        except ResponseError as e:
            self.logger.error(f"Ollama API error ({e.status_code}): {e.error}")
            raise ModelConnectionError(f"Ollama API error: {e.error}") from e
        except httpx.TimeoutException as e:
            self.logger.error(f"Ollama request timed out for model {model}")
            raise ModelTimeoutError(f"Ollama request timed out for model {model}") from e
        except (httpx.HTTPError, ConnectionError) as e:
            self.logger.error(f"Error calling Ollama: {e}")
            raise ModelConnectionError(f"Error calling Ollama: {e}") from e

        text = response["response"] or ""
        self.logger.debug(f"Ollama returned {len(text)} characters")
        return text

    def list_models(self) -> List[str]:
        """Names of the models installed in Ollama."""
        try:
            response = self.status_client.list()
        except ResponseError as e:
            raise ModelConnectionError(f"Ollama API error: {e.error}") from e
        except httpx.TimeoutException as e:
            raise ModelTimeoutError("Ollama status check timed out") from e
        except (httpx.HTTPError, ConnectionError) as e:
            raise ModelConnectionError(f"Error checking Ollama status: {e}") from e

        return [m.model for m in response.models if m.model]

    def check_status(self) -> ModelStatus:
        """Whether Ollama is running, and which models it serves."""
        try:
            models = self.list_models()
        except ModelConnectionError as e:
            self.logger.warning(f"Ollama is not available: {e}")
            return ModelStatus(running=False, models=[])

        return ModelStatus(running=True, models=models)
