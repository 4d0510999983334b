from worker.generation.client import OpenAITextGenerator, TextGenerator, parse_json_reply, parse_string_list
from worker.generation.prompts import PromptKind

__all__ = ["OpenAITextGenerator", "PromptKind", "TextGenerator", "parse_json_reply", "parse_string_list"]
