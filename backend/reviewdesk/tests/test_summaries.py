import pytest
import requests

from reviewdesk import models
from reviewdesk.errors import AIUnavailable
from reviewdesk.services import summaries

from .conftest import make_asset, make_user


class _Response:
    def __init__(self, payload, status=200):
        self._payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}")

    def json(self):
        return self._payload


@pytest.fixture
def ai_configured(monkeypatch):
    monkeypatch.setenv("AI_SUMMARY_URL", "https://ai.internal/summarize")
    monkeypatch.setenv("AI_API_KEY", "k-123")


def test_timecode_formatting():
    assert summaries.format_timecode(None) == ""
    assert summaries.format_timecode(0) == ""
    assert summaries.format_timecode(75.9) == "[1:15]"


def test_empty_asset_skips_the_provider(db, monkeypatch):
    owner = make_user(db)
    asset = make_asset(db, owner)

    def fail(*args, **kwargs):
        raise AssertionError("provider must not be called")

    monkeypatch.setattr(summaries.requests, "post", fail)
    assert summaries.summarize_asset(db, asset.id) == summaries.EMPTY_SUMMARY


def test_summary_sends_formatted_comments(db, monkeypatch, ai_configured):
    owner = make_user(db)
    asset = make_asset(db, owner)
    db.add(models.Comment(asset_id=asset.id, author_name="Dana", body="Cut the logo", timecode_seconds=65))
    db.commit()
    calls = []

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append((url, json, headers, timeout))
        return _Response({"summary": "Remove the logo."})

    monkeypatch.setattr(summaries.requests, "post", fake_post)
    assert summaries.summarize_asset(db, asset.id) == "Remove the logo."
    url, body, headers, timeout = calls[0]
    assert url == "https://ai.internal/summarize"
    assert "Dana [1:05]: Cut the logo (open)" in body["prompt"]
    assert headers["Authorization"] == "Bearer k-123"
    assert timeout == summaries.AI_TIMEOUT_SECONDS


def test_missing_configuration_is_unavailable(monkeypatch):
    monkeypatch.setenv("AI_SUMMARY_URL", "")
    monkeypatch.setattr(summaries, "AI_SUMMARY_URL", None)
    with pytest.raises(AIUnavailable):
        summaries.summarize("Dana: hi")


@pytest.mark.parametrize(
    "outcome",
    [
        requests.ConnectionError("down"),
        _Response({}, status=502),
        _Response({"text": "wrong key"}),
    ],
)
def test_provider_failures_are_unavailable(monkeypatch, ai_configured, outcome):
    def fake_post(*args, **kwargs):
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(summaries.requests, "post", fake_post)
    with pytest.raises(AIUnavailable):
        summaries.summarize("Dana: hi")
