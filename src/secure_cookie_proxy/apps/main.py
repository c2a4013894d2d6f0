"""Command line entry point: ``secure-cookie-proxy``."""

from __future__ import annotations

import argparse
import asyncio
import sys

from secure_cookie_proxy.config.config import ProxyOptions, derive_account
from secure_cookie_proxy.core.credential_acquirer import CredentialAcquirer
from secure_cookie_proxy.core.proxy import SecureCookieProxy
from secure_cookie_proxy.utils.cookie_storage import CookieStorage, create_cookie_storage
from secure_cookie_proxy.utils.errors import ProxyConfigurationError, SecureCookieError
from secure_cookie_proxy.utils.logger import logger


def _reverse_mode(target: str) -> str:
    # mitmproxy reverse mode speaks http(s); WebSocket upgrades ride on it.
    if target.startswith("wss://"):
        target = "https://" + target[len("wss://") :]
    elif target.startswith("ws://"):
        target = "http://" + target[len("ws://") :]
    return f"reverse:{target}"


def configure_transport(mitm_options, options: ProxyOptions) -> None:
    """Apply WebSocket support and the caller's extra options to mitmproxy.

    Keys left in ``options.extra`` are mitmproxy option names. Unknown names or
    rejected values raise :class:`ProxyConfigurationError`.
    """

    from mitmproxy.exceptions import OptionsError

    updates = {"websocket": bool(options.ws), **options.extra}
    unknown = sorted(name for name in updates if name not in mitm_options)
    if unknown:
        raise ProxyConfigurationError(f"Unknown mitmproxy option(s): {', '.join(unknown)}")
    try:
        mitm_options.update(**updates)
    except (OptionsError, TypeError) as exc:
        raise ProxyConfigurationError(f"Invalid mitmproxy option: {exc}") from exc


async def run_proxy(options: ProxyOptions, store: CookieStorage) -> None:
    from mitmproxy.options import Options
    from mitmproxy.tools.dump import DumpMaster

    from secure_cookie_proxy.apps.addon import SecureCookieAddon

    opts = Options(
        listen_host=options.listen_host,
        listen_port=options.listen_port,
        mode=[_reverse_mode(options.target)],
        ssl_insecure=not options.secure,
        keep_host_header=not options.change_origin,
    )
    master = DumpMaster(opts, with_termlog=True, with_dumper=False)
    configure_transport(master.options, options)
    master.addons.add(SecureCookieAddon(SecureCookieProxy(options, store=store)))
    logger.info(
        "[COOKIE][PROXY] Listening on http://%s:%s -> %s",
        options.listen_host,
        options.listen_port,
        options.target,
    )
    await master.run()


async def _login(account: str, target: str | None, store: CookieStorage) -> bool:
    acquirer = CredentialAcquirer(store, account)
    where = target or account
    cookies = await acquirer.acquire_from_operator(
        f"Please login to {where} and copy the HTTP cookie string here.\n\n"
        f"It will be securely stored in {store.description}:"
    )
    return cookies is not None


async def _show(account: str, store: CookieStorage) -> bool:
    cookies = await CredentialAcquirer(store, account).acquire_from_store()
    if not cookies:
        print(f"No cookie stored for {account}")
        return False
    # Names only; values are secrets.
    print(f"{account}: {', '.join(sorted(cookies))}")
    return True


def _account_from_args(args: argparse.Namespace) -> tuple[str, str | None]:
    target = args.target
    account = args.account or (derive_account(target.rstrip("/")) if target else None)
    if not account:
        raise SecureCookieError("Pass --target or --account")
    return account, target


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="secure-cookie-proxy",
        description="Reverse proxy that keeps a remote backend's auth cookie attached to every request.",
    )
    parser.add_argument(
        "--backend",
        choices=("auto", "keyring", "file"),
        default=None,
        help="Secret store backend (default: SECURE_COOKIE_BACKEND or auto).",
    )
    parser.add_argument(
        "--cookie-dir",
        dest="cookie_dir",
        default=None,
        help="Directory for the file backend (default: ~/.proxy-cookies).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Start the reverse proxy.")
    run.add_argument("--target", default=None, help="Remote backend, e.g. https://staging.example.com")
    run.add_argument("--account", default=None, help="Keychain account (default: target without scheme).")
    run.add_argument(
        "--unauthorized-status",
        dest="unauthorized",
        type=int,
        action="append",
        default=None,
        help="Status code that means the cookie expired; repeatable (default: 401).",
    )
    run.add_argument("--listen-host", dest="listen_host", default=None)
    run.add_argument("--listen-port", dest="listen_port", type=int, default=None)
    run.add_argument(
        "--secure",
        action="store_true",
        default=None,
        help="Verify the upstream TLS certificate.",
    )

    for name, help_text in (
        ("login", "Prompt for a cookie string and store it."),
        ("show", "Show which cookie names are stored."),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--target", default=None)
        cmd.add_argument("--account", default=None)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        store = create_cookie_storage(args.backend, directory=args.cookie_dir)
        if args.command == "run":
            options = ProxyOptions.from_env(
                target=args.target,
                keychain_account=args.account,
                unauthorized_status_code=args.unauthorized,
                listen_host=args.listen_host,
                listen_port=args.listen_port,
                secure=args.secure,
            )
            asyncio.run(run_proxy(options, store))
            return 0

        account, target = _account_from_args(args)
        if args.command == "login":
            ok = asyncio.run(_login(account, target, store))
        else:
            ok = asyncio.run(_show(account, store))
        return 0 if ok else 1
    except SecureCookieError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
