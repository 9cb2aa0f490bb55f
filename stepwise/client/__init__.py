"""Language model capability and the LiteLLM-backed implementation."""

from .litellm_model import LiteLLMModel
from .model import LanguageModel, LanguageModelResponse

__all__ = ["LanguageModel", "LanguageModelResponse", "LiteLLMModel"]
