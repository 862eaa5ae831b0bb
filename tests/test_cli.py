"""Tests for notesummarizer/cli.py — argument parsing and high-level CLI behaviour."""

import json
import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from notesummarizer.cli import _build_parser, build_config, main
from notesummarizer.models import BatchReport, FailedItem
from notesummarizer.prompts import INSTRUCTION_PRESETS

PAPER = "A long enough extracted paper text about spiking networks. " * 5


@pytest.fixture
def library_path(tmp_path):
    data = {
        "items": [
            {"key": "REC1", "type": "record", "title": "Paper One", "attachments": ["ATT1"]},
            {"key": "ATT1", "type": "attachment", "parent": "REC1",
             "content_type": "application/pdf", "fulltext": PAPER},
            {"key": "REC2", "type": "record", "title": "Paper Two"},
        ]
    }
    path = tmp_path / "library.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def _argv(library_path, tmp_path, *extra):
    return [
        "summarize-notes",
        "--library",
        str(library_path),
        "--log-file",
        str(tmp_path / "run.log"),
        *extra,
    ]


def _mock_client(reply="## Summary\n- point"):
    client = MagicMock()
    client.complete = AsyncMock(return_value=reply)
    return client


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def test_parser_requires_library_and_target():
    parser = _build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args([])
    with pytest.raises(SystemExit):
        parser.parse_args(["--library", "lib.json"])


def test_parser_item_and_all_mutually_exclusive():
    parser = _build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["--library", "lib.json", "--item", "A", "--all"])


def test_parser_item_is_repeatable():
    args = _build_parser().parse_args(["--library", "l", "--item", "A", "--item", "B"])
    assert args.item == ["A", "B"]
    assert args.all is False


def test_parser_defaults():
    env = {k: v for k, v in os.environ.items() if k not in ("LLM_MODEL", "LLM_BASE_URL", "SUMMARY_HEADER_TEMPLATE")}
    with patch.dict(os.environ, env, clear=True):
        args = _build_parser().parse_args(["--library", "l", "--all"])
    assert args.model == "openai/gpt-oss-120b:free"
    assert args.base_url == "https://openrouter.ai/api/v1"
    assert args.header_template == "<h2>AI Generated Summary ({{modelName}})</h2>"
    assert args.language == "en"
    assert args.temperature is None
    assert args.max_tokens is None
    assert args.top_p is None
    assert args.skip_existing_check is False
    assert args.timeout == 120
    assert args.verbose is False


def test_parser_env_defaults_and_cli_override():
    with patch.dict(os.environ, {"LLM_MODEL": "env-model", "LLM_BASE_URL": "http://env/v1"}):
        parser = _build_parser()
        args = parser.parse_args(["--library", "l", "--all"])
        assert args.model == "env-model"
        assert args.base_url == "http://env/v1"
        args = parser.parse_args(["--library", "l", "--all", "--model", "cli-model"])
        assert args.model == "cli-model"


def test_parser_rejects_non_positive_max_tokens():
    with pytest.raises(SystemExit):
        _build_parser().parse_args(["--library", "l", "--all", "--max-tokens", "0"])


# ---------------------------------------------------------------------------
# build_config
# ---------------------------------------------------------------------------


def test_build_config_maps_arguments(tmp_path):
    args = _build_parser().parse_args(
        [
            "--library", "l", "--all",
            "--base-url", "http://llm/v1/",
            "--model", "m",
            "--temperature", "0.5",
            "--max-tokens", "2048",
            "--top-p", "0.8",
            "--skip-existing-check",
            "--language", "zh",
        ]
    )
    with patch.dict(os.environ, {"LLM_API_KEY": "sk-env"}):
        config = build_config(args)

    assert config.base_url == "http://llm/v1"
    assert config.model == "m"
    assert config.api_key == "sk-env"
    assert config.temperature == 0.5
    assert config.max_tokens == 2048
    assert config.top_p == 0.8
    assert config.skip_existing_check is True
    assert config.user_prompt_instructions == INSTRUCTION_PRESETS["zh"]


def test_build_config_reads_instructions_file(tmp_path):
    instructions = tmp_path / "prompt.txt"
    instructions.write_text("Summarize in three bullets.", encoding="utf-8")
    args = _build_parser().parse_args(
        ["--library", "l", "--all", "--instructions-file", str(instructions)]
    )
    assert build_config(args).user_prompt_instructions == "Summarize in three bullets."


def test_build_config_api_key_fallback():
    args = _build_parser().parse_args(["--library", "l", "--all"])
    env = {k: v for k, v in os.environ.items() if k != "LLM_API_KEY"}
    with patch.dict(os.environ, env, clear=True):
        assert build_config(args).api_key == "lm-studio"


# ---------------------------------------------------------------------------
# main
# ---------------------------------------------------------------------------


def test_main_single_item_writes_note(library_path, tmp_path):
    client = _mock_client()
    with (
        patch("sys.argv", _argv(library_path, tmp_path, "--item", "REC1")),
        patch("notesummarizer.pipeline.create_client", return_value=client),
    ):
        main()

    data = json.loads(library_path.read_text(encoding="utf-8"))
    notes = [item for item in data["items"] if item["type"] == "note"]
    assert len(notes) == 1
    assert notes[0]["parent"] == "REC1"
    assert notes[0]["note"].startswith("<h2>AI Generated Summary (")
    assert notes[0]["note"].endswith("<h2>Summary</h2>\n<ul>\n<li>point</li>\n</ul>")
    client.complete.assert_awaited_once()


def test_main_single_item_twice_skips_second_run(library_path, tmp_path):
    client = _mock_client()
    with (
        patch("sys.argv", _argv(library_path, tmp_path, "--item", "REC1")),
        patch("notesummarizer.pipeline.create_client", return_value=client),
    ):
        main()
        main()

    data = json.loads(library_path.read_text(encoding="utf-8"))
    assert len([item for item in data["items"] if item["type"] == "note"]) == 1
    assert client.complete.await_count == 1


def test_main_single_item_failure_exits_1(library_path, tmp_path):
    with (
        patch("sys.argv", _argv(library_path, tmp_path, "--item", "REC2")),
        patch("notesummarizer.pipeline.create_client", return_value=_mock_client()),
        pytest.raises(SystemExit) as exc_info,
    ):
        main()
    assert exc_info.value.code == 1


def test_main_missing_library_exits_1(tmp_path):
    with (
        patch("sys.argv", _argv(tmp_path / "missing.json", tmp_path, "--all")),
        pytest.raises(SystemExit) as exc_info,
    ):
        main()
    assert exc_info.value.code == 1


def test_main_all_runs_batch_over_records(library_path, tmp_path):
    report = BatchReport(created=1, skipped=0, failed=0)
    with (
        patch("sys.argv", _argv(library_path, tmp_path, "--all")),
        patch("notesummarizer.cli.run_batch", new=AsyncMock(return_value=report)) as mock_batch,
    ):
        main()
    keys = mock_batch.await_args.args[0]
    assert keys == ["REC1", "REC2"]


def test_main_batch_with_failures_exits_1(library_path, tmp_path):
    report = BatchReport(
        created=0, skipped=0, failed=1, failed_items=[FailedItem(key="REC2", error="Error: x")]
    )
    with (
        patch("sys.argv", _argv(library_path, tmp_path, "--item", "REC1", "--item", "REC2")),
        patch("notesummarizer.cli.run_batch", new=AsyncMock(return_value=report)),
        pytest.raises(SystemExit) as exc_info,
    ):
        main()
    assert exc_info.value.code == 1


def test_main_creates_default_log_file(library_path, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    report = BatchReport(created=0, skipped=0, failed=0)
    argv = ["summarize-notes", "--library", str(library_path), "--all"]
    with (
        patch("sys.argv", argv),
        patch("notesummarizer.cli.run_batch", new=AsyncMock(return_value=report)),
    ):
        main()
    assert list((tmp_path / "logs").glob("run_*.log"))


def test_main_skips_item_with_summary_note_from_file(tmp_path):
    header = "<h2>AI Generated Summary (file-model)</h2>"
    data = {
        "items": [
            {"key": "REC1", "type": "record", "title": "Paper One", "attachments": ["ATT1"]},
            {"key": "ATT1", "type": "attachment", "parent": "REC1",
             "content_type": "application/pdf", "fulltext": PAPER},
            {"key": "NOTE1", "type": "note", "parent": "REC1", "note": header + "\n<p>old</p>"},
        ]
    }
    path = tmp_path / "library.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    client = _mock_client()

    with (
        patch("sys.argv", _argv(path, tmp_path, "--item", "REC1", "--model", "file-model",
                                 "--header-template", "<h2>AI Generated Summary ({{modelName}})</h2>")),
        patch("notesummarizer.pipeline.create_client", return_value=client),
    ):
        main()

    client.complete.assert_not_awaited()
    saved = json.loads(path.read_text(encoding="utf-8"))
    assert [item["key"] for item in saved["items"] if item["type"] == "note"] == ["NOTE1"]


def test_main_unreadable_library_exits_1(tmp_path):
    library_dir = tmp_path / "library.json"
    library_dir.mkdir()
    with (
        patch("sys.argv", _argv(library_dir, tmp_path, "--all")),
        pytest.raises(SystemExit) as exc_info,
    ):
        main()
    assert exc_info.value.code == 1
