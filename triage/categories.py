"""Category vocabulary and folder-structure helpers applied to proposals."""
from __future__ import annotations

import re
from collections import Counter
from dataclasses import replace
from typing import Iterable, List

from .types import Proposal

CATEGORIES = (
    "Code",
    "Finance",
    "Social",
    "Shopping",
    "Email",
    "Chat",
    "Browser",
    "Design",
    "Documents",
    "Settings",
    "Media",
    "Other",
)

DEFAULT_CATEGORY = "Other"
MIN_FILES_PER_FOLDER = 3
MIN_FILES_PER_SUBFOLDER = 3

_SEPARATORS = re.compile(r"[_\-\s]+")


def top_level(category: str) -> str:
    return category.split("/", 1)[0]


def format_category(category: str) -> str:
    """Normalise ``"bank statements/tax-docs"`` into ``"Bank_Statements/Tax_Docs"``."""

    segments: List[str] = []
    for segment in category.split("/"):
        words = [word for word in _SEPARATORS.split(segment) if word]
        if words:
            segments.append("_".join(word[:1].upper() + word[1:].lower() for word in words))
    return "/".join(segments)


def optimize_folder_structure(proposals: Iterable[Proposal], *, min_files: int = MIN_FILES_PER_FOLDER) -> List[Proposal]:
    """Send proposals of sparsely populated top-level categories to ``Other``."""

    items = list(proposals)
    counts = Counter(top_level(item.proposed_category) for item in items)
    small = {category for category, count in counts.items() if count < min_files}
    return [
        replace(item, proposed_category=DEFAULT_CATEGORY) if top_level(item.proposed_category) in small else item
        for item in items
    ]


def cleanup_subfolders(proposals: Iterable[Proposal], *, min_files: int = MIN_FILES_PER_SUBFOLDER) -> List[Proposal]:
    """Fold ``Parent/Sub`` categories with too few members back into ``Parent``."""

    items = list(proposals)
    counts = Counter(item.proposed_category for item in items if "/" in item.proposed_category)
    small = {category for category, count in counts.items() if count < min_files}
    if not small:
        return items
    return [
        replace(item, proposed_category=top_level(item.proposed_category)) if item.proposed_category in small else item
        for item in items
    ]


def with_subcategory(proposal: Proposal, subcategory: str) -> Proposal:
    formatted = format_category(subcategory)
    if not formatted:
        return proposal
    return replace(proposal, proposed_category=f"{top_level(proposal.proposed_category)}/{formatted}")


__all__ = [
    "CATEGORIES",
    "DEFAULT_CATEGORY",
    "cleanup_subfolders",
    "format_category",
    "optimize_folder_structure",
    "top_level",
    "with_subcategory",
]
