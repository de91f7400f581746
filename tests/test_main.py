"""Tests for the command-line entry point."""

import json
import sys
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

import main
from ragchat import Role
from ragchat.embeddings import DISABLED_RAG_ANSWER
from ragchat.pipeline import FALLBACK_WARNING
from ragchat.responder import ACKNOWLEDGE_REPLY, GREETING_REPLY, THANKS_REPLY
from tests.conftest import TestConstants


@pytest.fixture
def offline_env(monkeypatch):
    """Run commands with no model credential and no embedding service."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("EMBEDDING_API_URL", raising=False)


def test_parse_args_ui_defaults():
    args = main.parse_args(["ui"])

    assert args.command == "ui"
    assert args.app == main.DEFAULT_APP
    assert args.port == 8501
    assert args.address == "localhost"
    assert args.headless


def test_parse_args_ui_show_disables_headless():
    args = main.parse_args(["ui", "--show", "--port", "9000"])

    assert not args.headless
    assert args.port == 9000


def test_parse_args_ask():
    args = main.parse_args(["ask", "hello there", "--subject-id", "u1"])

    assert args.message == "hello there"
    assert args.subject_id == "u1"
    assert args.conversation_id == main.DEFAULT_CONVERSATION_ID


def test_parse_args_embed_batch():
    args = main.parse_args(["embed-batch", "records.json", "--delay", "0"])

    assert args.file == Path("records.json")
    assert args.delay == 0.0


def test_parse_args_requires_command():
    with pytest.raises(SystemExit):
        main.parse_args([])


def test_build_streamlit_command():
    command = main.build_streamlit_command(
        Path("/srv/app.py"), port=8600, headless=False, address="0.0.0.0"
    )

    assert command[:4] == [sys.executable, "-m", "streamlit", "run"]
    assert command[4] == str(Path("/srv/app.py"))
    assert command[command.index("--server.port") + 1] == "8600"
    assert command[command.index("--server.address") + 1] == "0.0.0.0"
    assert command[command.index("--server.headless") + 1] == "false"


def test_ui_missing_script_fails(tmp_path):
    assert main.main(["ui", "--app", str(tmp_path / "missing.py")]) == 1


def test_ui_runs_streamlit(tmp_path):
    script = tmp_path / "app.py"
    script.write_text("", encoding="utf-8")

    with patch("main.subprocess.run", return_value=Mock(returncode=0)) as mock_run:
        assert main.main(["ui", "--app", str(script)]) == 0

    command = mock_run.call_args.args[0]
    assert str(script.resolve()) in command


def test_invalid_configuration_exits_nonzero(monkeypatch):
    monkeypatch.setenv("EMBEDDING_API_URL", "ftp://embed.local")

    assert main.main(["check-env"]) == 1


def test_check_env_reports_services(offline_env, capsys):
    assert main.main(["check-env"]) == 0

    out = capsys.readouterr().out
    assert "openai_api_key: not set" in out
    assert "embedding_api_url: not set" in out


def test_ask_greeting_in_mock_mode(offline_env, capsys):
    assert main.main(["ask", "hello"]) == 0

    captured = capsys.readouterr()
    assert captured.out.strip() == GREETING_REPLY
    assert FALLBACK_WARNING not in captured.err


def test_ask_without_embedding_service_prints_notice(offline_env, capsys):
    message = "Could you outline the quarterly figures for sales?"

    assert main.main(["ask", message]) == 0

    captured = capsys.readouterr()
    assert captured.out.strip() == ACKNOWLEDGE_REPLY
    assert FALLBACK_WARNING in captured.err


def test_rag_query_disabled_service_exits_nonzero(offline_env, capsys):
    assert main.main(["rag-query", "What did we discuss about vectors?"]) == 1

    assert DISABLED_RAG_ANSWER in capsys.readouterr().out


def test_rag_query_prints_matches(embedding_client_factory, capsys):
    client, _ = embedding_client_factory()

    with patch("main.EmbeddingClient", return_value=client):
        assert main.main(["rag-query", "What did we discuss about vectors?"]) == 0

    out = capsys.readouterr().out
    assert f"Context: {TestConstants.DEFAULT_RAG_CONTEXT}" in out
    assert "(0.9100) vectors" in out


def test_embed_batch_submits_each_record(embedding_client_factory, tmp_path, capsys):
    client, service = embedding_client_factory()
    records = [
        {"userId": "u1", "threadId": "t1", "content": "first", "messageId": "m1"},
        {"userId": "u1", "content": "second"},
    ]
    path = tmp_path / "records.json"
    path.write_text(json.dumps(records), encoding="utf-8")

    with patch("main.EmbeddingClient", return_value=client):
        assert main.main(["embed-batch", str(path), "--delay", "0"]) == 0

    assert [body["content"] for body in service.bodies("/embed")] == ["first", "second"]
    assert "messageId" not in service.bodies("/embed")[1]
    assert "Embedded 2/2 records" in capsys.readouterr().out


def test_embed_batch_reports_failures(embedding_client_factory, tmp_path):
    client, _ = embedding_client_factory("http_error")
    path = tmp_path / "records.json"
    path.write_text(json.dumps([{"userId": "u1", "content": "x"}]), encoding="utf-8")

    with patch("main.EmbeddingClient", return_value=client):
        assert main.main(["embed-batch", str(path), "--delay", "0"]) == 1


@pytest.mark.parametrize("content", ["not json", '{"userId": "u1"}'])
def test_embed_batch_rejects_bad_file(offline_env, tmp_path, content):
    path = tmp_path / "records.json"
    path.write_text(content, encoding="utf-8")

    assert main.main(["embed-batch", str(path)]) == 1


def test_embed_batch_missing_file(offline_env, tmp_path):
    assert main.main(["embed-batch", str(tmp_path / "missing.json")]) == 1


def test_ui_reports_launch_failure(tmp_path, caplog):
    script = tmp_path / "app.py"
    script.write_text("", encoding="utf-8")

    with patch("main.subprocess.run", side_effect=OSError("no such file")):
        assert main.main(["ui", "--app", str(script)]) == 1

    assert f"Unable to launch Streamlit: {sys.executable}" in caplog.text


def test_ask_with_stored_history(offline_env, tmp_path, capsys):
    path = tmp_path / "history.json"
    records = [
        {
            "sender": TestConstants.SUBJECT_ID,
            "content": "hello",
            "createdAt": "2024-01-01T12:00:00Z",
        },
        {
            "sender": "ai",
            "content": GREETING_REPLY,
            "createdAt": "2024-01-01T12:00:05Z",
        },
    ]
    path.write_text(json.dumps(records), encoding="utf-8")

    with patch(
        "ragchat.pipeline.ChatPipeline.handle_user_message",
        autospec=True,
        side_effect=main.ChatPipeline.handle_user_message,
    ) as spy:
        assert main.main(["ask", "thanks", "--history", str(path)]) == 0

    history = spy.call_args.args[4]
    assert [turn.role for turn in history] == [Role.USER, Role.ASSISTANT]
    assert capsys.readouterr().out.strip() == THANKS_REPLY


@pytest.mark.parametrize(
    "content", ["not json", '{"sender": "ai"}', '[{"sender": "ai", "content": "x"}]']
)
def test_ask_rejects_bad_history(offline_env, tmp_path, content):
    path = tmp_path / "history.json"
    path.write_text(content, encoding="utf-8")

    assert main.main(["ask", "hello", "--history", str(path)]) == 1
