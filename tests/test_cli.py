import pytest

from secure_cookie_proxy.apps import main as cli
from secure_cookie_proxy.config.config import ProxyOptions
from secure_cookie_proxy.core import credential_acquirer
from secure_cookie_proxy.utils.cookie_storage import FileCookieStorage
from secure_cookie_proxy.utils.errors import ProxyConfigurationError


def _use_prompter(monkeypatch, answers):
    answers = list(answers)

    async def fake_prompt(message):
        return answers.pop(0)

    monkeypatch.setattr(credential_acquirer, "prompt_for_secret", fake_prompt)


def test_login_then_show(tmp_path, monkeypatch, capsys):
    _use_prompter(monkeypatch, ["oops", "sid=abc; theme=dark"])
    argv = ["--backend", "file", "--cookie-dir", str(tmp_path), "login", "--target", "https://api.example.com"]
    assert cli.main(argv) == 0
    assert (tmp_path / "api.example.com").read_text(encoding="utf-8") == "sid=abc; theme=dark"

    assert cli.main(["--backend", "file", "--cookie-dir", str(tmp_path), "show", "--account", "api.example.com"]) == 0
    out = capsys.readouterr().out
    assert "api.example.com: sid, theme" in out
    assert "abc" not in out


def test_show_without_cookie(tmp_path, capsys):
    assert cli.main(["--backend", "file", "--cookie-dir", str(tmp_path), "show", "--account", "nobody"]) == 1
    assert "No cookie stored for nobody" in capsys.readouterr().out


def test_show_requires_target_or_account(tmp_path, capsys):
    assert cli.main(["--backend", "file", "--cookie-dir", str(tmp_path), "show"]) == 2
    assert "--target or --account" in capsys.readouterr().err


def test_run_requires_target(tmp_path, monkeypatch, capsys):
    monkeypatch.delenv("SECURE_COOKIE_TARGET", raising=False)
    assert cli.main(["--backend", "file", "--cookie-dir", str(tmp_path), "run"]) == 2
    assert "target is required" in capsys.readouterr().err


def test_run_builds_options(tmp_path, monkeypatch):
    seen = {}

    async def fake_run(options, store):
        seen["options"] = options
        seen["store"] = store

    monkeypatch.setattr(cli, "run_proxy", fake_run)
    argv = [
        "--backend", "file", "--cookie-dir", str(tmp_path),
        "run", "--target", "https://api.example.com",
        "--unauthorized-status", "401", "--unauthorized-status", "403",
        "--listen-port", "9100",
    ]
    assert cli.main(argv) == 0
    options = seen["options"]
    assert options.target == "https://api.example.com"
    assert options.unauthorized_status_code == frozenset({401, 403})
    assert options.listen_port == 9100
    assert isinstance(seen["store"], FileCookieStorage)


@pytest.mark.parametrize(
    "target,expected",
    [
        ("https://api.example.com", "reverse:https://api.example.com"),
        ("wss://stream.example.com", "reverse:https://stream.example.com"),
        ("ws://localhost:9000", "reverse:http://localhost:9000"),
    ],
)
def test_reverse_mode(target, expected):
    assert cli._reverse_mode(target) == expected


def _mitm_options():
    from mitmproxy.options import Options

    opts = Options()
    # Registered by mitmproxy's proxyserver addon once a master is running.
    opts.add_option("websocket", bool, True, "Enable WebSocket support.")
    return opts


def test_configure_transport_forwards_extra_options():
    options = ProxyOptions.from_value(
        {"target": "https://api.example.com", "connection_strategy": "lazy", "ssl_insecure": False}
    )
    opts = _mitm_options()
    cli.configure_transport(opts, options)
    assert opts.connection_strategy == "lazy"
    assert opts.ssl_insecure is False
    assert opts.websocket is False


def test_configure_transport_enables_websocket_for_ws_targets():
    opts = _mitm_options()
    cli.configure_transport(opts, ProxyOptions.from_value("wss://stream.example.com"))
    assert opts.websocket is True


def test_configure_transport_rejects_unknown_options():
    options = ProxyOptions.from_value({"target": "https://api.example.com", "timeout": 5})
    with pytest.raises(ProxyConfigurationError, match="timeout"):
        cli.configure_transport(_mitm_options(), options)


def test_configure_transport_rejects_bad_values():
    options = ProxyOptions.from_value({"target": "https://api.example.com", "connection_strategy": 5})
    with pytest.raises(ProxyConfigurationError):
        cli.configure_transport(_mitm_options(), options)
