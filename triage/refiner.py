from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from .classifier import ClassifierClient
from .errors import ClassificationError, FileTooLargeError, RefineError
from .filters import MAX_FILE_SIZE
from .types import Candidate, ClassificationRequest, SubcategoryResult

LOGGER = logging.getLogger("smartdump.triage.refiner")


def refine_subcategory(
    file_path: str | os.PathLike[str],
    parent_category: str,
    credential: str,
    *,
    classifier: ClassifierClient,
    max_file_size: int = MAX_FILE_SIZE,
    timeout: Optional[float] = None,
) -> SubcategoryResult:
    """Ask the provider for a subcategory more specific than *parent_category*.

    The file is re-read from disk on every call.
    """

    path = Path(file_path)
    try:
        size = path.stat().st_size
    except OSError as exc:
        raise RefineError(str(exc)) from exc
    if size > max_file_size:
        raise FileTooLargeError("File exceeds 5MB limit")
    try:
        image_bytes = path.read_bytes()
    except OSError as exc:
        raise RefineError("Failed to read file") from exc

    request = ClassificationRequest(
        candidate=Candidate(path=path, name=path.name, size=size),
        credential=credential,
        parent_category=parent_category,
    )
    LOGGER.info("refine: %r", request)
    try:
        subcategory = classifier.classify_subcategory(image_bytes, credential, parent_category, timeout=timeout)
    except ClassificationError as exc:
        LOGGER.warning("refine: %s failed (%s): %s", path.name, exc.kind, exc)
        if exc.kind == "contract":
            raise RefineError("Failed to parse subcategory") from exc
        raise RefineError(str(exc)) from exc
    LOGGER.info("refine: %s -> %s", path.name, subcategory)
    return SubcategoryResult(id=path.name, subcategory=subcategory)


__all__ = ["refine_subcategory"]
