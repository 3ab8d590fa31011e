#!/usr/bin/env python3
"""
Keyword heuristics used when no language model is configured.

Callers depend on this behaviour being stable, so the keyword lists and the
matching rules must not change.
"""
import json
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

WARM_TRIGGERS = ("summer", "warm")
WARM_KEYWORDS = ("summer", "warm", "short", "t-shirt", "dress")

COLD_TRIGGERS = ("winter", "cold")
COLD_KEYWORDS = ("winter", "cold", "jacket", "sweater", "coat")


def _item_text(item: Any) -> str:
    """Lowercased JSON text of an item, matching JSON.stringify output"""
    return json.dumps(item, ensure_ascii=False, separators=(",", ":")).lower()


def _matches_any(item: Any, keywords) -> bool:
    text = _item_text(item)
    return any(keyword in text for keyword in keywords)


def keyword_filter_array(items: List[Any], condition: str,
                         context: Optional[Dict[str, Any]] = None) -> List[Any]:
    """
    Filter an array with a fixed keyword heuristic.

    Conditions mentioning summer/warm keep summer-wear items, conditions
    mentioning winter/cold keep winter-wear items, anything else keeps all items.
    """
    lowered = condition.lower()

    if any(trigger in lowered for trigger in WARM_TRIGGERS):
        return [item for item in items if _matches_any(item, WARM_KEYWORDS)]

    if any(trigger in lowered for trigger in COLD_TRIGGERS):
        return [item for item in items if _matches_any(item, COLD_KEYWORDS)]

    logger.warning("Could not interpret filter condition, returning all items")
    return list(items)


def keyword_filter_object(obj: Dict[str, Any], condition: str,
                          context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Objects are returned unchanged when no language model is available"""
    return obj
