import pytest

from secure_cookie_proxy.config.config import ProxyOptions, derive_account
from secure_cookie_proxy.config.env_loader import EnvironmentConfigurationError, get_bool, get_list
from secure_cookie_proxy.utils.errors import ProxyConfigurationError


def test_bare_target_string():
    options = ProxyOptions.from_value("https://api.example.com/")
    assert options.target == "https://api.example.com"
    assert options.account == "api.example.com"
    assert options.unauthorized_status_code == frozenset({401})
    assert options.ws is False
    assert options.secure is False
    assert options.change_origin is True


def test_account_override_and_single_status_code():
    options = ProxyOptions.from_value(
        {"target": "https://api.example.com", "keychain_account": "work", "unauthorized_status_code": 403}
    )
    assert options.account == "work"
    assert options.unauthorized_status_code == frozenset({403})


def test_status_code_list_and_unknown_options_are_kept():
    options = ProxyOptions.from_value(
        {"target": "wss://stream.example.com", "unauthorized_status_code": [401, "419"], "timeout": 5}
    )
    assert options.unauthorized_status_code == frozenset({401, 419})
    assert options.ws is True
    assert options.extra == {"timeout": 5}


@pytest.mark.parametrize("codes", [["nope"], [99], [True], []])
def test_invalid_status_codes(codes):
    with pytest.raises(ProxyConfigurationError):
        ProxyOptions(target="https://api.example.com", unauthorized_status_code=codes)


def test_target_is_required():
    with pytest.raises(ProxyConfigurationError):
        ProxyOptions.from_value({"keychain_account": "x"})
    with pytest.raises(ProxyConfigurationError):
        ProxyOptions(target="  ")


def test_cookie_rewrite_must_be_callable():
    with pytest.raises(ProxyConfigurationError):
        ProxyOptions(target="https://api.example.com", cookie_rewrite="upper")


def test_derive_account_without_scheme():
    assert derive_account("https://host:8443/base") == "host:8443/base"
    assert derive_account("host") == "host"


def test_from_env(monkeypatch):
    monkeypatch.setenv("SECURE_COOKIE_TARGET", "https://env.example.com")
    monkeypatch.setenv("SECURE_COOKIE_UNAUTHORIZED_CODES", "401, 403")
    monkeypatch.setenv("SECURE_COOKIE_LISTEN_PORT", "9001")
    options = ProxyOptions.from_env(listen_host="0.0.0.0", keychain_account=None)
    assert options.target == "https://env.example.com"
    assert options.unauthorized_status_code == frozenset({401, 403})
    assert options.listen_port == 9001
    assert options.listen_host == "0.0.0.0"
    assert options.account == "env.example.com"


def test_from_env_requires_target(monkeypatch):
    monkeypatch.delenv("SECURE_COOKIE_TARGET", raising=False)
    with pytest.raises(ProxyConfigurationError):
        ProxyOptions.from_env()


def test_from_env_rejects_bad_port(monkeypatch):
    monkeypatch.setenv("SECURE_COOKIE_TARGET", "https://env.example.com")
    monkeypatch.setenv("SECURE_COOKIE_LISTEN_PORT", "eighty")
    with pytest.raises(ProxyConfigurationError):
        ProxyOptions.from_env()


def test_env_getters(monkeypatch):
    monkeypatch.setenv("FLAG", "yes")
    monkeypatch.setenv("CODES", "401,, 403 ")
    assert get_bool("FLAG") is True
    assert get_list("CODES") == ["401", "403"]
    monkeypatch.setenv("FLAG", "maybe")
    with pytest.raises(EnvironmentConfigurationError):
        get_bool("FLAG")
