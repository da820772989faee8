"""Apply approved proposals as atomic moves."""
from __future__ import annotations

import logging
import os
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .errors import ExecuteError
from .types import Conflict, Proposal

LOGGER = logging.getLogger("smartdump.triage.executor")

REASON_EXISTS = "destination exists"
REASON_DUPLICATE = "duplicate destination"


def execute_action(original_path: str | os.PathLike[str], new_path: str | os.PathLike[str]) -> str:
    """Move *original_path* to *new_path*, creating missing parent directories.

    An existing destination is handled by the platform's rename semantics
    (replaced on POSIX, an error on Windows).
    """

    src = Path(original_path)
    dst = Path(new_path)
    if not src.is_file():
        raise ExecuteError("Source file no longer exists")
    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("apply: cannot create %s: %s", dst.parent, exc)
        raise ExecuteError(str(exc)) from exc
    try:
        os.rename(src, dst)
    except OSError as exc:
        LOGGER.warning("apply: rename %s -> %s failed: %s", src, dst, exc)
        raise ExecuteError(str(exc)) from exc
    LOGGER.info("apply: moved %s -> %s", src, dst)
    return "Success"


def destination_for(proposal: Proposal, root: Optional[str | os.PathLike[str]] = None) -> Path:
    """``<root or source folder>/<category>/<proposed name>``."""

    base = Path(root) if root is not None else Path(proposal.original_path).parent
    return base.joinpath(*proposal.proposed_category.split("/"), proposal.proposed_name)


def find_conflicts(
    proposals: Iterable[Proposal],
    root: Optional[str | os.PathLike[str]] = None,
) -> List[Conflict]:
    items = list(proposals)
    by_destination: Dict[Path, List[Proposal]] = defaultdict(list)
    for proposal in items:
        by_destination[destination_for(proposal, root)].append(proposal)

    conflicts: List[Conflict] = []
    for proposal in items:
        destination = destination_for(proposal, root)
        reasons: List[str] = []
        if destination.exists():
            reasons.append(REASON_EXISTS)
        if len(by_destination[destination]) > 1:
            reasons.append(REASON_DUPLICATE)
        if reasons:
            conflicts.append(
                Conflict(
                    id=proposal.id,
                    original_name=proposal.original_name,
                    proposed_name=proposal.proposed_name,
                    proposed_category=proposal.proposed_category,
                    destination=str(destination),
                    reasons=reasons,
                )
            )
    return conflicts


__all__ = ["REASON_DUPLICATE", "REASON_EXISTS", "destination_for", "execute_action", "find_conflicts"]
