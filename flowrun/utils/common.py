#!/usr/bin/env python3
"""
Common utilities for flowrun commands.
"""
import json
from pathlib import Path
from typing import Any


def format_duration(seconds: float) -> str:
    """Format a duration for run summaries"""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.2f}s"
    minutes, secs = divmod(seconds, 60)
    return f"{int(minutes)}m {secs:.1f}s"


def format_value(value: Any, max_length: int = 200) -> str:
    """Render a step result on one line, truncated for terminal output"""
    text = json.dumps(value, ensure_ascii=False, default=str)
    if len(text) > max_length:
        text = text[:max_length - 3] + "..."
    return text


def print_section(title: str, width: int = 60):
    """Print a formatted section header"""
    print("\n" + "=" * width)
    if title:
        print(title)
        print("=" * width)


def save_json(data: Any, path: Path, indent: int = 2):
    """Save data as JSON file"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, ensure_ascii=False)
