import pytest

from triage.filters import MAX_FILE_SIZE, is_candidate, within_size_limit


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Screenshot 2024-01-01 at 10.00.00.png", True),
        ("Screen Shot 2019-05-02 at 09.12.44.png", True),
        ("Screenshot.PNG", True),
        ("My Screenshot copy.Png", True),
        ("screenshot 2024.png", False),
        ("SCREENSHOT.png", False),
        ("Screenshot 2024.jpg", False),
        ("Screenshot.png.txt", False),
        ("vacation.png", False),
        ("", False),
    ],
)
def test_is_candidate_truth_table(name, expected):
    assert is_candidate(name) is expected


def test_size_limit_is_inclusive():
    assert MAX_FILE_SIZE == 5 * 1024 * 1024
    assert within_size_limit(MAX_FILE_SIZE)
    assert not within_size_limit(MAX_FILE_SIZE + 1)
    assert within_size_limit(10, limit=10)
