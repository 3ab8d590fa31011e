#!/usr/bin/env python3
"""
Natural-language filter service.

Interprets filter conditions with a language model when one is configured, and
falls back to deterministic keyword heuristics otherwise (or when the model
call fails).
"""
import logging
from typing import Any, Dict, Optional

from flowrun.filtering.keywords import keyword_filter_array, keyword_filter_object
from flowrun.filtering.llm import LanguageModelFilter

logger = logging.getLogger(__name__)

FILTER_TYPES = ("array", "object")


class FilterError(Exception):
    """Base class for filter service failures"""


class InvalidFilterTypeError(FilterError):
    """Filter type is neither 'array' nor 'object'"""


class FilterInputError(FilterError):
    """Data does not have the shape required by the filter type"""


class FilterService:
    """Filters arrays and objects by natural-language conditions"""

    def __init__(self, language_model: Optional[LanguageModelFilter] = None):
        self.language_model = language_model

    @property
    def uses_language_model(self) -> bool:
        return self.language_model is not None

    def filter(self, filter_type: str, condition: Optional[str], data: Any,
               context: Optional[Dict[str, Any]] = None) -> Any:
        """
        Apply a natural-language condition to data.

        Args:
            filter_type: "array" to drop items, "object" to drop fields
            condition: Natural-language condition; empty returns data unchanged
            data: Value to filter
            context: Results of other steps, keyed by step id

        Returns:
            Filtered data
        """
        if not condition:
            return data

        context = context or {}
        if filter_type == "array":
            return self.filter_array(data, condition, context)
        if filter_type == "object":
            return self.filter_object(data, condition, context)
        raise InvalidFilterTypeError("Invalid filter type")

    def filter_array(self, items: Any, condition: str,
                     context: Optional[Dict[str, Any]] = None) -> Any:
        if not isinstance(items, list):
            raise FilterInputError("Input data is not an array")

        if self.language_model is not None:
            try:
                return self.language_model.filter_array(items, condition, context)
            except Exception:
                logger.exception("Language model filter failed, using keyword fallback")

        return keyword_filter_array(items, condition, context)

    def filter_object(self, obj: Any, condition: str,
                      context: Optional[Dict[str, Any]] = None) -> Any:
        if not isinstance(obj, dict):
            raise FilterInputError("Input data is not an object")

        if self.language_model is not None:
            try:
                return self.language_model.filter_object(obj, condition, context)
            except Exception:
                logger.exception("Language model filter failed, using keyword fallback")

        return keyword_filter_object(obj, condition, context)


def create_filter_service(api_key: Optional[str] = None, model: Optional[str] = None,
                          temperature: Optional[float] = None) -> FilterService:
    """Build a filter service; a language model is attached only when a key is given"""
    if not api_key:
        logger.info("No OpenAI API key configured; filter steps use keyword matching")
        return FilterService()

    kwargs: Dict[str, Any] = {}
    if model:
        kwargs["model"] = model
    if temperature is not None:
        kwargs["temperature"] = temperature
    return FilterService(language_model=LanguageModelFilter(api_key, **kwargs))
