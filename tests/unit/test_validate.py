# repo_directory/tests/unit/test_validate.py
"""Unit tests for the dataset validation gate."""

from __future__ import annotations

from pathlib import Path
import sys
import threading
from unittest.mock import MagicMock

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

import pytest
import requests

from repo_directory import validate


NOTES = "A sufficiently long descriptive note."


class FakeChecker:
    def __init__(self, reasons: dict | None = None) -> None:
        self.reasons = reasons or {}
        self.calls: list[str] = []

    def check(self, slug: str) -> str | None:
        self.calls.append(slug)
        return self.reasons.get(slug)


def item(slug, category="tools", notes=NOTES) -> dict:
    return {"slug": slug, "category": category, "notes": notes}


def make_response(status: int, payload: dict | None = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 400
    response.json.return_value = payload or {}
    return response


def make_checker(response=None, side_effect=None, reject_forks: bool = False) -> validate.RepoChecker:
    session = MagicMock()
    session.headers = {}
    session.get.return_value = response
    session.get.side_effect = side_effect
    return validate.RepoChecker(token="secret", reject_forks=reject_forks, api_base="https://api.test", session=session)


def test_clean_dataset_passes() -> None:
    result = validate.validate([item("acme/widget"), item("acme/gadget")], checker=FakeChecker())
    assert result.ok
    assert result.violations == []
    assert result.report() == "All 2 entries passed validation."


def test_every_duplicate_occurrence_is_reported() -> None:
    checker = FakeChecker()
    result = validate.validate([item("a/b"), item("c/d"), item("a/b")], checker=checker)
    assert result.violations == [
        'Duplicate slug: "a/b" (occurrence 1 of 2)',
        'Duplicate slug: "a/b" (occurrence 2 of 2)',
    ]
    # duplicates are still checked upstream
    assert checker.calls.count("a/b") == 2


def test_all_violations_are_collected_in_input_order() -> None:
    items = [
        item("no-slash"),
        item("acme/widget", category=""),
        item("acme/short", notes="  too short   "),
        item("acme/gone"),
        item("acme/fine"),
    ]
    checker = FakeChecker({"acme/gone": 'Repository "acme/gone" does not exist'})
    result = validate.validate(items, checker=checker)
    assert result.violations == [
        'Invalid slug format: "no-slash" (expected owner/repo)',
        'Missing or invalid category for "acme/widget"',
        'Notes for "acme/short" are too short (9 chars, minimum 20)',
        'Repository "acme/gone" does not exist',
    ]
    assert not result.ok


@pytest.mark.parametrize("slug", ["", "owner/", "/repo", "a/b/c", "a/b\n", "acme/widget\n", None, 42])
def test_malformed_slug_skips_live_check(slug) -> None:
    checker = FakeChecker()
    result = validate.validate([item(slug)], checker=checker)
    assert len(result.violations) == 1
    assert result.violations[0].startswith("Invalid slug format")
    assert checker.calls == []


def test_missing_notes_are_reported_as_zero_length() -> None:
    result = validate.validate([{"slug": "acme/widget", "category": "tools"}], checker=FakeChecker())
    assert result.violations == ['Notes for "acme/widget" are too short (0 chars, minimum 20)']


def test_report_lists_each_violation() -> None:
    result = validate.ValidationResult(violations=["one", "two"], checked=3)
    assert result.report() == "Validation failed:\n\n  - one\n  - two"


def test_repo_checker_sends_token_and_accepts_public_repo() -> None:
    checker = make_checker(make_response(200, {"private": False, "archived": False, "fork": False}))
    assert checker.check("acme/widget") is None
    checker.session.get.assert_called_once_with("https://api.test/repos/acme/widget", timeout=30)
    assert checker.session.headers["Authorization"] == "Bearer secret"


@pytest.mark.parametrize(
    "status, payload, expected",
    [
        (404, None, 'Repository "acme/widget" does not exist'),
        (500, None, 'GitHub API error for "acme/widget": 500'),
        (200, {"private": True}, '"acme/widget" is a private repository'),
        (200, {"archived": True}, '"acme/widget" is archived'),
    ],
)
def test_repo_checker_rejections(status: int, payload: dict | None, expected: str) -> None:
    assert make_checker(make_response(status, payload)).check("acme/widget") == expected


def test_forks_rejected_only_in_strict_mode() -> None:
    response = make_response(200, {"fork": True})
    assert make_checker(response).check("acme/widget") is None
    assert make_checker(response, reject_forks=True).check("acme/widget") == '"acme/widget" is a fork'


def test_network_error_becomes_violation_not_abort() -> None:
    checker = make_checker(side_effect=requests.ConnectionError("connection reset"))
    result = validate.validate([item("acme/widget"), item("acme/gadget")], checker=checker)
    assert len(result.violations) == 2
    assert all(v.startswith('Request failed for "acme/') for v in result.violations)


@pytest.mark.parametrize("body", [["acme/widget"], "acme/widget", None])
def test_non_object_body_becomes_violation(body) -> None:
    response = make_response(200)
    response.json.return_value = body
    assert make_checker(response).check("acme/widget") == 'GitHub API returned unexpected data for "acme/widget"'


def test_each_thread_gets_its_own_session(monkeypatch: pytest.MonkeyPatch) -> None:
    created: list[MagicMock] = []

    def new_session() -> MagicMock:
        session = MagicMock()
        session.headers = {}
        created.append(session)
        return session

    monkeypatch.setattr(validate.requests, "Session", new_session)
    checker = validate.RepoChecker(token="secret", api_base="https://api.test")

    seen = []
    worker = threading.Thread(target=lambda: seen.append(checker.session))
    worker.start()
    worker.join()

    assert checker.session is checker.session
    assert seen[0] is not checker.session
    assert len(created) == 2
    assert all(s.headers["Authorization"] == "Bearer secret" for s in created)


def test_main_reports_failures(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture) -> None:
    dataset = tmp_path / "repos.yaml"
    dataset.write_text(
        f"repos:\n  - slug: a/b\n    category: tools\n    notes: {NOTES}\n"
        f"  - slug: a/b\n    category: tools\n    notes: short\n",
        encoding="utf-8",
    )
    monkeypatch.setattr(validate, "RepoChecker", lambda **kwargs: FakeChecker())

    assert validate.main(["--dataset", str(dataset)]) == 1
    err = capsys.readouterr().err
    assert "Validation failed:" in err
    assert 'Duplicate slug: "a/b" (occurrence 2 of 2)' in err
    assert 'Notes for "a/b" are too short (5 chars, minimum 20)' in err


def test_main_passes_clean_dataset(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture) -> None:
    dataset = tmp_path / "repos.yaml"
    dataset.write_text(f"repos:\n  - slug: a/b\n    category: tools\n    notes: {NOTES}\n", encoding="utf-8")
    monkeypatch.setattr(validate, "RepoChecker", lambda **kwargs: FakeChecker())

    assert validate.main(["--dataset", str(dataset)]) == 0
    assert "All 1 entries passed validation." in capsys.readouterr().out


def test_main_fails_on_unparseable_dataset(tmp_path: Path) -> None:
    dataset = tmp_path / "repos.yaml"
    dataset.write_text("repos: [broken", encoding="utf-8")
    assert validate.main(["--dataset", str(dataset)]) == 1


def test_reject_forks_env_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    def fake_checker(**kwargs):
        seen.update(kwargs)
        return FakeChecker()

    monkeypatch.setenv("REJECT_FORKS", "TRUE")
    monkeypatch.setattr(validate, "RepoChecker", fake_checker)
    validate.validate([item("acme/widget")], reject_forks=validate.env_flag("REJECT_FORKS"))
    assert seen["reject_forks"] is True
