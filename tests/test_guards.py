"""Tests for docbot.agent.guards."""

from docbot.agent.guards import (
    KeywordNarrationClassifier,
    RepetitionDetector,
    content_hash,
    has_unresolved_images,
)


def test_content_hash_stable():
    assert content_hash("a") == content_hash("a")
    assert content_hash("a") != content_hash("b")


def test_three_identical_responses_trip():
    guard = RepetitionDetector(3, count_first=True)
    assert guard.observe("same") is False
    assert guard.observe("same") is False
    assert guard.observe("same") is True
    # reset after tripping
    assert guard.observe("same") is False


def test_different_response_restarts_run():
    guard = RepetitionDetector(3)
    guard.observe("a")
    guard.observe("a")
    assert guard.observe("b") is False
    assert guard.observe("b") is False
    assert guard.observe("b") is True


def test_stall_guard_counts_only_repeats():
    guard = RepetitionDetector(6, count_first=False)
    guard.seed("")
    results = [guard.observe("") for _ in range(6)]
    assert results == [False] * 5 + [True]


def test_stall_guard_progress_resets():
    guard = RepetitionDetector(2, count_first=False)
    guard.seed("")
    assert guard.observe("") is False
    assert guard.observe("log 1") is False
    assert guard.observe("log 1") is False
    assert guard.observe("log 1") is True


def test_reset():
    guard = RepetitionDetector(2)
    guard.observe("x")
    guard.reset()
    assert guard.count == 0
    assert guard.observe("x") is False


def test_keyword_narration():
    clf = KeywordNarrationClassifier(["i will now", "let me add"])
    assert clf.is_narrating_not_acting("I will now insert the table.")
    assert clf.is_narrating_not_acting("OK, let me add it")
    assert not clf.is_narrating_not_acting("The table was inserted.")
    assert not clf.is_narrating_not_acting("")


IMAGE_TOOLS = ["image_search"]


def test_unresolved_images_from_image_tool():
    outputs = ["[image_search] ![chart](http://x/chart.png)"]
    assert has_unresolved_images("Here: ![chart](http://x/chart.png)", outputs, IMAGE_TOOLS)
    assert not has_unresolved_images("Placed the chart.", outputs, IMAGE_TOOLS)
    assert not has_unresolved_images("![chart](http://x/chart.png)", outputs, [])


def test_images_from_document_reads_are_not_results():
    outputs = ["[read_document] 3: ![chart](chart.png)"]
    assert not has_unresolved_images("The chart ![chart](chart.png) is there.", outputs, IMAGE_TOOLS)


def test_images_already_in_document_are_placed():
    outputs = ["[image_search] ![chart](chart.png)"]
    snapshot = "# Report\n\n![chart](chart.png)"
    assert not has_unresolved_images("See ![chart](chart.png)", outputs, IMAGE_TOOLS, snapshot)


def test_image_with_title_is_matched_by_url():
    outputs = ['[image_search] ![cat](http://x/cat.png "A cat")']
    assert has_unresolved_images("![cat](http://x/cat.png)", outputs, IMAGE_TOOLS)
