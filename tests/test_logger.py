"""Tests for logger module."""

from __future__ import annotations

import json
from pathlib import Path


def test_logger_human_entry_disabled(capsys):
    from gptclient.logger import HumanEntry, Logger

    logger = Logger(model="test", enable_human_logs=False)

    logger.human(HumanEntry(title="test", body="content", variant="model"))

    assert capsys.readouterr().out == ""


def test_logger_plain_human_entry(capsys):
    from gptclient.logger import HumanEntry, Logger

    logger = Logger(model="test", enable_human_logs=True)

    logger.human(HumanEntry(title="tool", body="weather"))

    assert capsys.readouterr().out == "tool: weather\n"


def test_logger_json_entries(sandbox: Path):
    from gptclient.logger import Logger

    log_file = sandbox / "log.jsonl"
    logger = Logger(model="test", log_json_path=str(log_file))

    logger.json({"type": "http_attempt", "attempt": 1})
    logger.json({"type": "http_retry", "status": 429})

    lines = [json.loads(line) for line in log_file.read_text().splitlines()]
    assert [line["type"] for line in lines] == ["http_attempt", "http_retry"]
    assert lines[0]["model"] == "test"
    assert "timestamp" in lines[0]


def test_logger_without_path_writes_nothing(sandbox: Path):
    from gptclient.logger import Logger

    logger = Logger(model="test")
    logger.json({"type": "ignored"})

    assert not logger.enable_file_logs
    assert list(sandbox.iterdir()) == []


def test_for_model_shares_sinks(sandbox: Path):
    from gptclient.logger import Logger

    log_file = sandbox / "log.jsonl"
    base = Logger(log_json_path=str(log_file))

    base.for_model("o3-mini").json({"type": "model_response"})

    assert base.model is None
    assert json.loads(log_file.read_text())["model"] == "o3-mini"


def test_logger_spinner():
    from gptclient.logger import Logger

    logger = Logger(model="test", enable_human_logs=False, pretty=True)

    stop = logger.start_spinner()
    assert callable(stop)
    stop()  # Should not raise


def test_logger_with_pretty():
    from gptclient.logger import HumanEntry, Logger

    logger = Logger(model="test", enable_human_logs=True, pretty=True)

    # Should not raise
    logger.human(HumanEntry(title="test", body="content", variant="error"))


def test_client_writes_jsonl_events(sandbox: Path, sleeps):
    from fakes import ScriptedTransport, chat_payload, make_settings, ok, raw
    from gptclient.chat import ChatCompletionRequest
    from gptclient.client import GptClient

    log_file = sandbox / "calls.jsonl"
    client = GptClient(
        make_settings(log_json_path=str(log_file)),
        transport=ScriptedTransport(raw(503, {}), ok(chat_payload(content="hi"))),
        sleep=sleeps.append,
    )

    client.chat(ChatCompletionRequest(model="gpt-4o", messages=({"role": "user", "content": "hi"},)), use_backoff=True)

    types = [json.loads(line)["type"] for line in log_file.read_text().splitlines()]
    assert "http_retry" in types
    assert types[-1] == "model_response"


def test_concurrent_json_writes_keep_lines_whole(sandbox: Path):
    import threading

    from gptclient.logger import Logger

    log_file = sandbox / "log.jsonl"
    base = Logger(log_json_path=str(log_file))
    clones = [base.for_model(f"model-{i}") for i in range(4)]
    payload = "x" * 200_000

    def write(logger):
        for _ in range(5):
            logger.json({"type": "tool_result", "output": payload})

    threads = [threading.Thread(target=write, args=(clone,)) for clone in clones]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    lines = log_file.read_text().splitlines()
    assert len(lines) == 20
    assert all(json.loads(line)["output"] == payload for line in lines)
    assert all(clone._write_lock is base._write_lock for clone in clones)
