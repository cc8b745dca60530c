from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from pubmed_search.api.results import CommandFailure, SearchSuccess, SetupSuccess
from pubmed_search.cli import _common, search
from pubmed_search.config import MemoryConfigStore


def run_main(
    capsys: pytest.CaptureFixture[str],
    argv: list[str],
    *,
    transport: httpx.BaseTransport | None = None,
) -> tuple[int, dict[str, object], str]:
    exit_code = search.main(argv, transport=transport)
    captured = capsys.readouterr()
    return exit_code, json.loads(captured.out), captured.err


def unreachable(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request to {request.url}")


def test_cli_parser_supports_common_options() -> None:
    parser = search.build_parser()
    args = parser.parse_args(
        [
            "--log-level",
            "debug",
            "--log-format",
            "json",
            "--log-destination",
            "auto",
            "--config",
            "/tmp/config.json",
            "covid",
            "25",
        ]
    )

    assert args.log_level == "DEBUG"
    assert args.log_format == "json"
    assert args.log_destination == "auto"
    assert args.config == Path("/tmp/config.json")
    assert args.command == "covid"
    assert args.argument == "25"


def test_cli_defaults_keep_stdout_for_results() -> None:
    args = search.build_parser().parse_args([])

    assert args.log_destination == "stderr"
    assert args.log_level == "WARNING"
    assert args.command == ""
    assert args.argument is None


def test_cli_help_exits_cleanly() -> None:
    with pytest.raises(SystemExit) as excinfo:
        search.build_parser().parse_args(["--help"])
    assert excinfo.value.code == 0


def test_dash_token_after_query_is_read_as_an_option(
    capsys: pytest.CaptureFixture[str],
) -> None:
    with pytest.raises(SystemExit) as excinfo:
        search.main(["covid", "-h"], transport=httpx.MockTransport(unreachable))

    assert excinfo.value.code == 0
    assert "usage: search" in capsys.readouterr().out


def test_cli_rejects_unknown_log_level() -> None:
    with pytest.raises(SystemExit) as excinfo:
        search.build_parser().parse_args(["--log-level", "chatty", "covid"])
    assert excinfo.value.code == 2


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, 10),
        ("", 10),
        ("25", 25),
        (" 7", 7),
        ("12abc", 12),
        ("3.9", 3),
        ("-4", -4),
        ("abc", None),
        ("   ", None),
        ("\u0663", None),
        ("\u0663\u0664", None),
    ],
)
def test_parse_limit_matches_parse_int(raw: str | None, expected: int | None) -> None:
    assert search.parse_limit(raw) == expected


def test_setup_creates_config_file(
    config_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    exit_code, payload, _ = run_main(capsys, ["setup", "abc123"])

    assert exit_code == 0
    assert payload == {
        "success": True,
        "type": "setup",
        "message": "API key saved to ~/.valyu/config.json",
    }
    assert json.loads(config_path.read_text(encoding="utf-8")) == {"apiKey": "abc123"}


def test_setup_preserves_other_fields(
    config_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    config_path.parent.mkdir(parents=True)
    config_path.write_text(json.dumps({"apiKey": "old-key", "other": "value"}), encoding="utf-8")

    exit_code, payload, _ = run_main(capsys, ["setup", "new-key"])

    assert exit_code == 0
    assert payload["success"] is True
    assert json.loads(config_path.read_text(encoding="utf-8")) == {
        "apiKey": "new-key",
        "other": "value",
    }


@pytest.mark.parametrize("argv", [["setup", ""], ["setup"]])
def test_setup_without_key_reports_usage(
    argv: list[str],
    config_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    exit_code, payload, _ = run_main(capsys, argv)

    assert exit_code == 1
    assert payload == {
        "success": False,
        "error": "API key required. Usage: search setup <api-key>",
    }
    assert not config_path.exists()


def test_setup_reports_write_failures(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")

    exit_code, payload, err = run_main(
        capsys, ["--config", str(blocker / "config.json"), "setup", "abc123"]
    )

    assert exit_code == 1
    assert payload["success"] is False
    assert "Failed to write config file" in str(payload["error"])
    assert "Could not save API key" in err


def test_empty_query_makes_no_request(capsys: pytest.CaptureFixture[str]) -> None:
    for argv in ([], [""]):
        exit_code, payload, _ = run_main(
            capsys, argv, transport=httpx.MockTransport(unreachable)
        )

        assert exit_code == 1
        assert payload == {
            "success": False,
            "error": "Query required. Usage: search <query> [maxResults]",
        }


@pytest.mark.parametrize(
    "config_contents",
    [None, "{corrupt", json.dumps({"other": "value"})],
    ids=["absent", "unparseable", "missing-field"],
)
def test_search_without_key_requires_setup(
    config_contents: str | None,
    config_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    if config_contents is not None:
        config_path.parent.mkdir(parents=True)
        config_path.write_text(config_contents, encoding="utf-8")

    exit_code, payload, _ = run_main(
        capsys, ["covid"], transport=httpx.MockTransport(unreachable)
    )

    assert exit_code == 1
    assert payload["success"] is False
    assert payload["setup_required"] is True


def test_search_success(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setenv("VALYU_API_KEY", "val-test-key")
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json={"results": [{"title": "A"}], "cost": 0.01})
    )

    exit_code, payload, _ = run_main(capsys, ["covid"], transport=transport)

    assert exit_code == 0
    assert payload == {
        "success": True,
        "type": "pubmed_search",
        "query": "covid",
        "result_count": 1,
        "results": [{"title": "A"}],
        "cost": 0.01,
    }


def test_search_uses_stored_key_and_limit(
    config_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    config_path.parent.mkdir(parents=True)
    config_path.write_text(json.dumps({"apiKey": "stored-key"}), encoding="utf-8")
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"results": []})

    exit_code, _, _ = run_main(capsys, ["covid", "3"], transport=httpx.MockTransport(handler))

    assert exit_code == 0
    assert seen[0].headers["x-api-key"] == "stored-key"
    assert json.loads(seen[0].content)["limit"] == 3


def test_search_api_error(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setenv("VALYU_API_KEY", "bad-key")
    transport = httpx.MockTransport(
        lambda request: httpx.Response(401, json={"detail": "invalid key"})
    )

    exit_code, payload, _ = run_main(capsys, ["covid"], transport=transport)

    assert exit_code == 1
    assert payload == {"success": False, "error": "invalid key", "status": 401}


def test_null_response_body_exits_with_failure(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setenv("VALYU_API_KEY", "val-test-key")
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"null"))

    exit_code, payload, _ = run_main(capsys, ["covid"], transport=transport)

    assert exit_code == 1
    assert payload == {"success": False, "error": "Response body is JSON null"}


def test_logs_never_mix_into_result_document(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setenv("VALYU_API_KEY", "val-1234567890abcdef")
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"results": []}))

    exit_code, payload, err = run_main(
        capsys,
        ["--log-level", "debug", "--log-format", "json", "covid"],
        transport=transport,
    )

    assert exit_code == 0
    assert payload["success"] is True
    records = [json.loads(line) for line in err.splitlines()]
    assert any(record["message"] == "Search completed" for record in records)
    assert "1234567890" not in err


def test_dispatch_is_independent_of_process_exit() -> None:
    store = MemoryConfigStore()
    client = search.SearchClient(store, transport=httpx.MockTransport(unreachable), environ={})

    saved = search.dispatch("setup", "abc123", store=store, client=client)
    assert isinstance(saved, SetupSuccess)
    assert store.data == {"apiKey": "abc123"}
    assert _common.exit_code_for(saved) == 0

    missing = search.dispatch(None, None, store=store, client=client)
    assert isinstance(missing, CommandFailure)
    assert _common.exit_code_for(missing) == 1


def test_dispatch_passes_limit_to_client() -> None:
    store = MemoryConfigStore({"apiKey": "k"})
    calls: list[tuple[str, int | None]] = []

    class FakeClient:
        def search(self, query: str, limit: int | None = 10) -> SearchSuccess:
            calls.append((query, limit))
            return SearchSuccess(query=query)

    result = search.dispatch("covid", "oops", store=store, client=FakeClient())  # type: ignore[arg-type]

    assert result.success is True
    assert calls == [("covid", None)]
