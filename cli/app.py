"""
cli/app.py - 메인 CLI 엔트리포인트

Click 기반의 CLI 애플리케이션 진입점입니다.
플러그인 discovery 시스템을 통해 업데이터를 자동 등록합니다.

명령어 구조:
    azure-exporter serve --subscription <id>     # /metrics 리스너 + 주기 수집
    azure-exporter collect --subscription <id>   # 1회 수집 후 exposition 출력
    azure-exporter updaters [--json]             # 발견된 업데이터 목록
    azure-exporter --version

환경 변수:
    LISTENING_ADDRESS, LISTENING_PORT, UPDATE_INTERVAL,
    AZURE_SUBSCRIPTION_ID, AUTODISCOVERY_TAGS,
    UPDATE_INTERVAL_<NAME> (업데이터별 주기), LOG_LEVEL, LOG_FORMAT

종료 코드:
    0  정상 종료
    1  리스너 바인드 실패
    2  설정 오류 (click UsageError)

Usage:
    $ azure-exporter serve --subscription 00000000-0000-0000-0000-000000000000 --tags monitor=true
    $ python -m cli.app collect --subscription ...
"""

from __future__ import annotations

import logging
import signal
import sys
from pathlib import Path
from typing import Any

# 프로젝트 루트를 sys.path에 추가 (plugins 모듈 임포트를 위함)
_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import click  # noqa: E402
from prometheus_client import start_http_server  # noqa: E402

from core.config import (  # noqa: E402
    ExporterConfig,
    LogConfig,
    get_updater_interval,
    get_version,
    settings,
)
from core.exceptions import ConfigError, ExporterError  # noqa: E402
from core.metrics import MetricsRegistry, UpdateScheduler  # noqa: E402
from core.tools.cache import get_cache  # noqa: E402
from core.tools.discovery import discover_updaters, load_updater  # noqa: E402
from shared.azure import AzureClients  # noqa: E402

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT = 30.0


def setup_logging(verbose: bool = False) -> None:
    """로깅 설정 (LOG_LEVEL / LOG_FORMAT, -v면 DEBUG)"""
    config = LogConfig.from_env()
    level = logging.DEBUG if verbose else getattr(logging, config.level, logging.INFO)
    logging.basicConfig(level=level, format=config.format, datefmt=config.date_format, force=True)

    # SDK HTTP 로깅은 요청/응답 헤더까지 INFO로 남기므로 한 단계 올림
    logging.getLogger("azure").setLevel(max(level, logging.WARNING))


def build_scheduler(config: ExporterConfig, registry: MetricsRegistry, clients: AzureClients) -> UpdateScheduler:
    """발견된 업데이터를 생성해 스케줄러에 등록

    수집 주기 우선순위: UPDATE_INTERVAL_<NAME> > UPDATER["interval"] > --interval

    Raises:
        ConfigError: 업데이터 설정 오류 (예: 태그 필터 표현식)
        PluginLoadError: 업데이터 모듈 로드 실패
    """
    scheduler = UpdateScheduler(registry)
    for meta in discover_updaters():
        module = load_updater(meta)
        updater = module.create_updater(registry, config, clients)
        interval = get_updater_interval(meta["name"], meta.get("interval", config.interval))
        scheduler.register(updater, interval)
    return scheduler


def _prepare(config: ExporterConfig) -> tuple[MetricsRegistry, UpdateScheduler]:
    try:
        config.validate()
        registry = MetricsRegistry(cache_size=lambda: len(get_cache()))
        scheduler = build_scheduler(config, registry, AzureClients())
    except ConfigError as e:
        raise click.UsageError(str(e)) from e
    return registry, scheduler


# =============================================================================
# CLI
# =============================================================================


@click.group()
@click.version_option(get_version(), prog_name="azure-exporter")
def cli() -> None:
    """Azure Batch / Storage Prometheus 익스포터"""


def _collection_options(func: Any) -> Any:
    func = click.option("-v", "--verbose", is_flag=True, help="DEBUG 로깅")(func)
    func = click.option(
        "--tags",
        envvar="AUTODISCOVERY_TAGS",
        default="",
        show_envvar=True,
        help="자동 발견 태그 필터 (예: monitor=true,env=prod|stg)",
    )(func)
    func = click.option(
        "--subscription",
        envvar="AZURE_SUBSCRIPTION_ID",
        required=True,
        show_envvar=True,
        help="대상 Azure 구독 ID",
    )(func)
    return func


@cli.command("serve")
@click.option(
    "-a",
    "--address",
    envvar="LISTENING_ADDRESS",
    default=settings.DEFAULT_LISTEN_ADDRESS,
    show_default=True,
    show_envvar=True,
    help="리스너 주소",
)
@click.option(
    "-p",
    "--port",
    envvar="LISTENING_PORT",
    type=int,
    default=settings.DEFAULT_LISTEN_PORT,
    show_default=True,
    show_envvar=True,
    help="리스너 포트",
)
@click.option(
    "-i",
    "--interval",
    envvar="UPDATE_INTERVAL",
    type=int,
    default=settings.DEFAULT_UPDATE_INTERVAL,
    show_default=True,
    show_envvar=True,
    help="기본 수집 주기 (초)",
)
@_collection_options
def serve_command(address: str, port: int, interval: int, subscription: str, tags: str, verbose: bool) -> None:
    """/metrics 리스너를 열고 주기적으로 수집

    \b
    Examples:
        azure-exporter serve --subscription <id>
        azure-exporter serve --subscription <id> -p 9100 -i 120 --tags monitor=true
    """
    setup_logging(verbose)
    config = ExporterConfig(
        subscription_id=subscription,
        address=address,
        port=port,
        interval=interval,
        discovery_tags=tags,
        verbose=verbose,
    )
    registry, scheduler = _prepare(config)

    try:
        start_http_server(config.port, addr=config.address, registry=registry.registry)
    except OSError as e:
        logger.error(f"리스너 시작 실패 ({config.listen_address}): {e}")
        raise SystemExit(1) from e
    logger.info(f"azure-exporter {get_version()} 리스닝: http://{config.listen_address}/metrics")

    def _shutdown(signum: int, _frame: Any) -> None:
        logger.info(f"시그널 수신 ({signal.Signals(signum).name}), 종료 중")
        scheduler.root.cancel()

    signal.signal(signal.SIGTERM, _shutdown)
    signal.signal(signal.SIGINT, _shutdown)

    scheduler.start()
    scheduler.root.wait()
    scheduler.stop(SHUTDOWN_TIMEOUT)
    logger.info("종료 완료")


@cli.command("collect")
@_collection_options
def collect_command(subscription: str, tags: str, verbose: bool) -> None:
    """모든 업데이터를 1회 실행하고 exposition 텍스트 출력

    \b
    Examples:
        azure-exporter collect --subscription <id>
        azure-exporter collect --subscription <id> --tags monitor=true -v
    """
    setup_logging(verbose)
    config = ExporterConfig(subscription_id=subscription, discovery_tags=tags, verbose=verbose)
    registry, scheduler = _prepare(config)

    results = scheduler.run_once()
    for name, result in results.items():
        logger.info(f"{name}: {result.value}")
    click.echo(registry.render().decode("utf-8"), nl=False)


@cli.command("updaters")
@click.option("--json", "as_json", is_flag=True, help="JSON 형식으로 출력")
def updaters_command(as_json: bool) -> None:
    """발견된 업데이터 플러그인 목록

    \b
    Examples:
        azure-exporter updaters
        azure-exporter updaters --json
    """
    try:
        updaters = discover_updaters(strict=True)
    except ExporterError as e:
        click.echo(str(e), err=True)
        raise SystemExit(1) from e

    rows = [
        {
            "name": meta["name"],
            "surface": meta["surface"],
            "interval": get_updater_interval(meta["name"], meta.get("interval", settings.DEFAULT_UPDATE_INTERVAL)),
            "description": meta.get("description", ""),
        }
        for meta in updaters
    ]

    if as_json:
        import json

        click.echo(json.dumps(rows, ensure_ascii=False, indent=2))
        return

    from rich.console import Console
    from rich.table import Table

    table = Table(title="업데이터", show_header=True)
    table.add_column("이름", style="cyan")
    table.add_column("Surface", style="white")
    table.add_column("주기(초)", style="yellow", justify="right")
    table.add_column("설명", style="dim")
    for row in rows:
        table.add_row(row["name"], row["surface"], str(row["interval"]), row["description"])
    Console().print(table)


if __name__ == "__main__":
    cli()
