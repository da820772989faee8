import os

import pytest

from triage.errors import ExecuteError
from triage.executor import REASON_DUPLICATE, REASON_EXISTS, destination_for, execute_action, find_conflicts
from triage.types import Proposal


def _proposal(folder, name, proposed_name, category):
    return Proposal(
        id=name,
        original_path=str(folder / name),
        original_name=name,
        proposed_name=proposed_name,
        proposed_category=category,
    )


def test_execute_moves_and_creates_parents(tmp_path):
    source = tmp_path / "Screenshot 1.png"
    source.write_bytes(b"png")
    target = tmp_path / "Finance" / "Receipts" / "stripe_invoice.png"

    assert execute_action(str(source), str(target)) == "Success"

    assert not source.exists()
    assert target.read_bytes() == b"png"


def test_execute_missing_source_leaves_tree_untouched(tmp_path):
    before = sorted(os.listdir(tmp_path))
    target = tmp_path / "Finance" / "stripe_invoice.png"

    with pytest.raises(ExecuteError) as info:
        execute_action(str(tmp_path / "Screenshot deleted.png"), str(target))

    assert str(info.value).lower() == "source file no longer exists"
    assert sorted(os.listdir(tmp_path)) == before
    assert not (tmp_path / "Finance").exists()


def test_execute_directory_creation_failure_keeps_source(tmp_path):
    source = tmp_path / "Screenshot 1.png"
    source.write_bytes(b"png")
    blocker = tmp_path / "Finance"
    blocker.write_text("not a directory")

    with pytest.raises(ExecuteError):
        execute_action(str(source), str(blocker / "invoice.png"))

    assert source.read_bytes() == b"png"


def test_destination_for_uses_category_segments(tmp_path):
    proposal = _proposal(tmp_path, "Screenshot 1.png", "invoice.png", "Finance/Receipts")

    assert destination_for(proposal) == tmp_path / "Finance" / "Receipts" / "invoice.png"
    assert destination_for(proposal, root=tmp_path / "out") == tmp_path / "out" / "Finance" / "Receipts" / "invoice.png"


def test_find_conflicts_reports_existing_and_duplicate(tmp_path):
    (tmp_path / "Code").mkdir()
    (tmp_path / "Code" / "terminal.png").write_bytes(b"old")
    proposals = [
        _proposal(tmp_path, "Screenshot 1.png", "terminal.png", "Code"),
        _proposal(tmp_path, "Screenshot 2.png", "invoice.png", "Finance"),
        _proposal(tmp_path, "Screenshot 3.png", "invoice.png", "Finance"),
        _proposal(tmp_path, "Screenshot 4.png", "chat.png", "Chat"),
    ]

    conflicts = {conflict.id: conflict for conflict in find_conflicts(proposals)}

    assert set(conflicts) == {"Screenshot 1.png", "Screenshot 2.png", "Screenshot 3.png"}
    assert conflicts["Screenshot 1.png"].reasons == [REASON_EXISTS]
    assert conflicts["Screenshot 2.png"].reasons == [REASON_DUPLICATE]
    assert conflicts["Screenshot 3.png"].destination == str(tmp_path / "Finance" / "invoice.png")
