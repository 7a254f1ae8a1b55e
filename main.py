"""
main.py - 컨테이너 엔트리포인트

인자 없이 실행하면 환경 변수 설정으로 `serve`를 실행합니다.
인자가 있으면 그대로 cli.app:cli에 위임합니다.

Usage:
    $ AZURE_SUBSCRIPTION_ID=... python main.py          # == azure-exporter serve
    $ python main.py collect --subscription ...
"""

from __future__ import annotations

import sys

try:
    from cli.app import cli
except ModuleNotFoundError:
    # console_script로 실행될 때 프로젝트 루트가 sys.path에 없을 수 있음
    import os

    sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
    from cli.app import cli

DEFAULT_COMMAND = "serve"


def main(argv: list[str] | None = None) -> None:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        args = [DEFAULT_COMMAND]
    cli.main(args=args, prog_name="azure-exporter")


if __name__ == "__main__":
    main()
