from __future__ import annotations

import argparse
import json
import logging
import sys

from .client import FtpClient
from .constants import FTP_PORT
from .errors import FtpError

logger = logging.getLogger(__name__)


def _session(args: argparse.Namespace) -> FtpClient:
    client = FtpClient(
        sys.stdout.buffer,
        connect_timeout=args.connect_timeout,
        wait_timeout=args.wait_timeout,
    )
    client.connect_to(args.host, args.port)
    client.authenticate(args.user, args.password)
    return client


def cmd_pwd(args: argparse.Namespace) -> int:
    client = _session(args)
    try:
        client.send_pwd()
    finally:
        client.close()
    return 0


def cmd_ls(args: argparse.Namespace) -> int:
    client = _session(args)
    try:
        client.send_pwd()
        client.send_pasv()
        job = client.send_list(sys.stdout.buffer, path=args.path)
        metrics = job.wait()
    finally:
        client.close()
    return 0 if metrics.ok else 1


def cmd_get(args: argparse.Namespace) -> int:
    client = _session(args)
    try:
        client.send_type("I")
        outcome = client.send_pasv()
        if not outcome.ok:
            logger.error("get %s: no data channel: %s", args.name, outcome.error)
            return 1
        out = open(args.out or args.name, "wb")
        try:
            job = client.send_retr(args.name, out, close_sink=True)
        except BaseException:
            out.close()
            raise
        metrics = job.wait()
    finally:
        client.close()

    payload = {
        "file": args.name,
        "bytes": metrics.bytes_received,
        "seconds": metrics.elapsed,
        "kib_per_s": metrics.kib_per_second,
    }
    print(json.dumps(payload, indent=2) if args.json else payload)
    return 0 if metrics.ok else 1


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="pasvftp", description="Passive-mode FTP client (LIST + RETR).")
    p.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(x: argparse.ArgumentParser) -> None:
        x.add_argument("--host", required=True)
        x.add_argument("--port", type=int, default=FTP_PORT)
        x.add_argument("--user", default="anonymous")
        x.add_argument("--password", default="anonymous@")
        x.add_argument("--connect-timeout", type=float, default=None)
        x.add_argument("--wait-timeout", type=float, default=None, help="bound the PASV waits (default: none)")
        x.add_argument("--json", action="store_true")

    pwd = sub.add_parser("pwd", help="print the remote working directory")
    add_common(pwd)
    pwd.set_defaults(func=cmd_pwd)

    ls = sub.add_parser("ls", help="list a remote directory")
    add_common(ls)
    ls.add_argument("--path", default=None)
    ls.set_defaults(func=cmd_ls)

    get = sub.add_parser("get", help="download a remote file")
    add_common(get)
    get.add_argument("name")
    get.add_argument("--out", default=None, help="local file (default: the remote name)")
    get.set_defaults(func=cmd_get)

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        return int(args.func(args))
    except (FtpError, OSError) as exc:
        logger.error("%s failed: %s", args.cmd, exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
