#!/usr/bin/env python3
"""
Language-model backed filtering via the OpenAI chat completions API.
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional

import openai

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-3.5-turbo"
DEFAULT_TEMPERATURE = 0.1

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

ARRAY_SYSTEM_PROMPT = (
    "You are a helpful assistant that filters arrays based on natural language "
    "conditions. Always return valid JSON arrays only. You can reference data from "
    "the context when evaluating the condition."
)

OBJECT_SYSTEM_PROMPT = (
    "You are a helpful assistant that removes fields from objects based on natural "
    "language conditions. Always return valid JSON objects only."
)


def _context_section(context: Optional[Dict[str, Any]]) -> str:
    if not context:
        return ""
    return (
        "\n\nAdditional context from other workflow nodes:\n"
        + json.dumps(context, indent=2, default=str)
    )


def _extract_json(text: str, pattern: re.Pattern) -> Any:
    """Pull the first JSON document matching `pattern` out of a model reply"""
    text = text.strip()
    match = pattern.search(text)
    if match:
        return json.loads(match.group(0))
    return json.loads(text)


class LanguageModelFilter:
    """Interprets natural-language filter conditions with a chat model"""

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL,
                 temperature: float = DEFAULT_TEMPERATURE,
                 client: Optional[openai.OpenAI] = None):
        self.model = model
        self.temperature = temperature
        self.client = client or openai.OpenAI(api_key=api_key)

    def _complete(self, system_prompt: str, prompt: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
        )
        return response.choices[0].message.content or ""

    def filter_array(self, items: List[Any], condition: str,
                     context: Optional[Dict[str, Any]] = None) -> List[Any]:
        prompt = (
            "You are a data filtering assistant. Given an array of items and a natural "
            "language condition, return only the items that match the condition.\n\n"
            f"Condition: {condition}\n\n"
            "Array of items to filter:\n"
            f"{json.dumps(items, indent=2, default=str)}{_context_section(context)}\n\n"
            "Return a JSON array containing only the items that match the condition. "
            "Do not include any explanation, only return the filtered array."
        )
        result = _extract_json(self._complete(ARRAY_SYSTEM_PROMPT, prompt), _JSON_ARRAY)
        if not isinstance(result, list):
            raise ValueError("Model did not return a JSON array")
        return result

    def filter_object(self, obj: Dict[str, Any], condition: str,
                      context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        prompt = (
            "You are a data filtering assistant. Given an object and a natural language "
            "condition describing which fields to remove, return the object with those "
            "fields removed.\n\n"
            f"Condition: {condition}\n\n"
            "Object:\n"
            f"{json.dumps(obj, indent=2, default=str)}{_context_section(context)}\n\n"
            "Return the object as JSON with the specified fields removed. Do not include "
            "any explanation, only return the modified object."
        )
        result = _extract_json(self._complete(OBJECT_SYSTEM_PROMPT, prompt), _JSON_OBJECT)
        if not isinstance(result, dict):
            raise ValueError("Model did not return a JSON object")
        return result
