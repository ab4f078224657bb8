"""Content generation capability: persona text and voice."""

from .base import ContentGenerator
from .fallback import fallback_message
from .openai_generator import OpenAIContentGenerator
from .personality import build_system_prompt, describe_personality

__all__ = [
    "ContentGenerator",
    "OpenAIContentGenerator",
    "build_system_prompt",
    "describe_personality",
    "fallback_message",
]
