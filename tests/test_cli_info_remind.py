"""
CLI tests for the `info` and `remind` commands, with the network and the
reminder loop mocked out.
"""

from unittest.mock import Mock, patch

import requests
from click.testing import CliRunner

from pillpal.__main__ import main
from pillpal.info_lookup import DISCLAIMER, FETCH_ERROR_MESSAGE


def _invoke(tmp_path, *args, input=None):
    return CliRunner().invoke(main, ["-d", str(tmp_path), *args], input=input)


def test_info_prints_summary_and_disclaimer(tmp_path, monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    _invoke(tmp_path, "add", "-n", "Ibuprofen", "-s", "200mg")

    payload = {"candidates": [{"content": {"parts": [{"text": "This medication is commonly used for pain."}]}}]}
    with patch("pillpal.info_lookup.requests.post", return_value=Mock(raise_for_status=Mock(), json=lambda: payload)):
        res = _invoke(tmp_path, "info", "Ibuprofen")

    assert res.exit_code == 0, res.output
    assert "This medication is commonly used for pain." in res.output
    assert DISCLAIMER in res.output


def test_info_failure_shows_message(tmp_path, monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    _invoke(tmp_path, "add", "-n", "Ibuprofen", "-s", "200mg")

    with patch("pillpal.info_lookup.requests.post", side_effect=requests.ConnectionError("offline")):
        res = _invoke(tmp_path, "info", "Ibuprofen")

    assert res.exit_code == 1
    assert FETCH_ERROR_MESSAGE in res.output


def test_info_without_api_key(tmp_path, monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)
    _invoke(tmp_path, "add", "-n", "Ibuprofen", "-s", "200mg")

    with patch("pillpal.info_lookup.requests.post") as post:
        res = _invoke(tmp_path, "info", "Ibuprofen")

    post.assert_not_called()
    assert "Gemini API is not configured" in res.output


def test_remind_declined_permission_is_remembered(tmp_path):
    res = _invoke(tmp_path, "remind", input="n\n")
    assert res.exit_code == 0, res.output
    assert "Notifications are not allowed" in res.output
    assert (tmp_path / "notification_permission.json").read_text() == '"denied"'

    # no second prompt: nothing on stdin would be needed
    res = _invoke(tmp_path, "remind")
    assert "Allow PillPal" not in res.output
    assert "Notifications are not allowed" in res.output


def test_remind_starts_and_stops_evaluator(tmp_path):
    (tmp_path / "notification_permission.json").write_text('"granted"')

    with patch("pillpal.__main__.ReminderEvaluator") as evaluator_cls:
        evaluator = evaluator_cls.return_value
        evaluator.wait.side_effect = KeyboardInterrupt
        res = _invoke(tmp_path, "remind", "--interval", "5")

    assert res.exit_code == 0, res.output
    assert evaluator_cls.call_args.kwargs["interval"] == 5.0
    evaluator.start.assert_called_once()
    evaluator.stop.assert_called_once()
