"""
CLI 메인 인터페이스
Click 및 Rich 기반 사용자 친화적 CLI
"""

import signal
import sys
import threading
from contextlib import contextmanager
from typing import Optional
import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from . import __version__
from .config import Config
from .controller import Controller
from .daemon import CommandRunner, DaemonManager, ZeroTierCLI
from .endpoint import Endpoint
from .exceptions import Cancelled, ConfigError, WaitTimeout, ZeroTierError
from .logger import init_logger, get_logger
from .models import MembershipState, membership_of

console = Console()


@contextmanager
def cancel_on_signals(*signums):
    """SIGINT/SIGTERM 수신 시 set 되는 이벤트 제공"""
    cancel = threading.Event()
    signums = signums or (signal.SIGINT, signal.SIGTERM)

    if threading.current_thread() is not threading.main_thread():
        yield cancel
        return

    previous = {}
    for signum in signums:
        previous[signum] = signal.signal(signum, lambda *_: cancel.set())
    try:
        yield cancel
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


class JoinOrchestrator:
    """데몬 확인 → join → 컨트롤러 인증 → IP 대기"""

    def __init__(self, config: Config, cli: ZeroTierCLI, controller: Optional[Controller] = None):
        self.config = config
        self.cli = cli
        self.controller = controller
        self.logger = get_logger()
        self.endpoint = None
        self.address = None
        self.execution_log = []

    def log_step(self, step: str, status: str, message: str = ""):
        self.execution_log.append({
            "step": step,
            "status": status,
            "message": message
        })

    def show_summary(self):
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("단계", style="cyan", width=20)
        table.add_column("상태", width=6)
        table.add_column("메시지")

        for log in self.execution_log:
            status_icon = "✓" if log["status"] == "success" else "✗"
            status_color = "green" if log["status"] == "success" else "red"
            table.add_row(
                log["step"],
                f"[{status_color}]{status_icon}[/{status_color}]",
                log["message"]
            )

        console.print(table)

        log_files = self.logger.get_log_files()
        if log_files["log_dir"]:
            console.print("\n[bold]로그 파일:[/bold]")
            console.print(f"  Main: {log_files['main_log']}")
            console.print(f"  Error: {log_files['error_log']}")

    def rollback(self, network_id: str):
        """이번 실행에서 join 한 네트워크 떠나기"""
        if not self.endpoint:
            return
        try:
            self.endpoint.leave(network_id)
            self.log_step("롤백 (leave)", "success", network_id)
        except ZeroTierError as e:
            self.logger.error(f"Rollback failed: {e}")
            self.log_step("롤백 (leave)", "failed", str(e))

    def run(self, network_id: str, authorize: bool = True, wait: bool = True,
            timeout: Optional[float] = None, cancel: Optional[threading.Event] = None) -> bool:
        """메인 실행 로직"""
        joined_here = False
        self.logger.info(f"=== Join started (network={network_id}) ===")

        try:
            if self.config.daemon.auto_start:
                daemon = DaemonManager(self.cli, self.config.daemon.daemon_path,
                                       self.config.daemon.startup_wait)
                started = daemon.start_daemon()
                self.log_step("데몬 확인", "success", "실행함" if started else "실행 중")

            self.endpoint = Endpoint(self.cli, self.config.network.poll_interval)
            self.log_step("엔드포인트", "success", self.endpoint.device_address)

            state = self.endpoint.membership(network_id)
            if state == MembershipState.NOT_JOINED:
                self.endpoint.join(network_id)
                joined_here = True
                self.log_step("네트워크 참여", "success", network_id)
            else:
                self.log_step("네트워크 참여", "success", f"이미 참여 ({state.value})")

            if authorize and self.controller:
                self.controller.authorize(self.endpoint, network_id,
                                          self.config.network.member_description)
                self.log_step("멤버 인증", "success", self.endpoint.device_address)
            elif authorize:
                self.logger.warning("No controller token configured, member must be authorized manually")
                self.log_step("멤버 인증", "success", "건너뜀 (토큰 없음)")

            if wait:
                self.address = self.endpoint.wait_for_ip(network_id, cancel, timeout)
                self.log_step("IP 할당", "success", str(self.address))

            self.logger.info("=== Join completed successfully ===")
            return True

        except Cancelled as e:
            status = "시간 초과" if isinstance(e, WaitTimeout) else "사용자 취소"
            self.logger.warning(f"Wait interrupted: {e}")
            self.log_step("IP 할당", "failed", status)
        except ZeroTierError as e:
            self.logger.error(f"Join failed: {e}")
            self.log_step("오류", "failed", str(e))

        if joined_here and self.config.agent.leave_on_failure:
            self.rollback(network_id)
        return False


def _build_cli(ctx) -> ZeroTierCLI:
    cfg = ctx.obj["config"]
    runner = ctx.obj.get("runner") or CommandRunner(cfg.daemon.command_timeout)
    return ZeroTierCLI(cfg.daemon.cli_path, runner)


def _build_controller(ctx) -> Optional[Controller]:
    cfg = ctx.obj["config"]
    if not cfg.controller.token:
        return None
    return Controller(cfg.controller.token, cfg.controller.url, cfg.controller.timeout,
                      session=ctx.obj.get("session"))


def _fail(message: str):
    console.print(f"[red]✗ {message}[/red]")
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True), help='설정 파일 경로')
@click.option('--debug', is_flag=True, help='디버그 모드')
@click.pass_context
def cli(ctx, config_path, debug):
    """ZeroTier VPN Agent

    ZeroTier 네트워크 참여, 멤버 인증, IP 할당 대기를 수행합니다.
    """
    ctx.ensure_object(dict)
    if "config" not in ctx.obj:
        try:
            ctx.obj["config"] = Config(config_path)
        except ConfigError as e:
            _fail(f"설정 파일 오류: {e}")
    cfg = ctx.obj["config"]
    init_logger(cfg.agent.log_dir, cfg.agent.log_level, debug)


@cli.command()
@click.argument('output', type=click.Path(), default='./config.yaml')
def init(output):
    """샘플 설정 파일 생성"""
    Config(search_defaults=False).create_sample(output)
    console.print(f"[green]✓ 샘플 설정 파일 생성: {output}[/green]")


@cli.command()
@click.pass_context
def validate(ctx):
    """설정 내용 확인"""
    cfg = ctx.obj["config"]
    data = cfg.to_dict(redact=True)

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("항목", style="cyan")
    table.add_column("값")
    for section, values in data.items():
        for key, value in values.items():
            table.add_row(f"{section}.{key}", "" if value is None else str(value))

    console.print(table)
    if not cfg.controller.token:
        console.print("[yellow]컨트롤러 토큰이 없어 멤버 인증은 수동으로 해야 합니다.[/yellow]")


@cli.command()
@click.pass_context
def status(ctx):
    """로컬 노드 상태 표시"""
    try:
        endpoint = Endpoint(_build_cli(ctx))
    except ZeroTierError as e:
        _fail(f"데몬 상태 조회 실패: {e}")

    console.print(f"[bold]주소:[/bold] {endpoint.device_address}")
    console.print(f"[bold]온라인:[/bold] {'예' if endpoint.online else '아니오'}")
    console.print(f"[bold]TCP 폴백:[/bold] {'예' if endpoint.tcp_fallback else '아니오'}")


@cli.command('start-daemon')
@click.pass_context
def start_daemon(ctx):
    """데몬이 실행 중이 아니면 실행"""
    cfg = ctx.obj["config"]
    daemon = DaemonManager(_build_cli(ctx), cfg.daemon.daemon_path, cfg.daemon.startup_wait)
    try:
        started = daemon.start_daemon()
    except ZeroTierError as e:
        _fail(str(e))

    if started:
        console.print("[green]✓ 데몬 실행 완료[/green]")
    else:
        console.print("[green]✓ 데몬이 이미 실행 중입니다.[/green]")


@cli.command()
@click.pass_context
def networks(ctx):
    """참여 중인 네트워크 목록"""
    try:
        endpoint = Endpoint(_build_cli(ctx))
    except ZeroTierError as e:
        _fail(f"데몬 상태 조회 실패: {e}")

    result = endpoint.list_networks()
    if not result.ok:
        _fail(f"네트워크 목록 조회 실패: {result.error}")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan")
    table.add_column("이름")
    table.add_column("상태")
    table.add_column("단계")
    table.add_column("주소")
    table.add_column("장치")

    for network in result.networks.values():
        table.add_row(
            network.id,
            network.name,
            network.status,
            membership_of(network).value,
            ", ".join(network.addresses),
            network.port_device_name
        )

    console.print(table)


@cli.command()
@click.argument('network_id', required=False)
@click.option('--no-authorize', is_flag=True, help='컨트롤러 인증 생략')
@click.option('--no-wait', is_flag=True, help='IP 할당을 기다리지 않음')
@click.option('--timeout', type=float, default=None, help='IP 대기 시간 (초)')
@click.pass_context
def join(ctx, network_id, no_authorize, no_wait, timeout):
    """네트워크 참여 후 인증 및 IP 할당 대기"""
    cfg = ctx.obj["config"]
    network_id = network_id or cfg.network.network_id
    if not network_id:
        _fail("네트워크 ID가 필요합니다.")

    console.print(Panel.fit(
        f"[bold cyan]ZeroTier VPN Agent[/bold cyan]\n네트워크 {network_id} 참여",
        border_style="cyan"
    ))

    orchestrator = JoinOrchestrator(cfg, _build_cli(ctx), _build_controller(ctx))
    with cancel_on_signals() as cancel:
        success = orchestrator.run(
            network_id,
            authorize=cfg.network.authorize and not no_authorize,
            wait=not no_wait,
            timeout=timeout if timeout is not None else cfg.network.wait_timeout,
            cancel=cancel
        )

    orchestrator.show_summary()
    if success and orchestrator.address:
        console.print(f"[bold green]✓ VPN IP: {orchestrator.address}[/bold green]")
    sys.exit(0 if success else 1)


@cli.command()
@click.argument('network_id')
@click.pass_context
def leave(ctx, network_id):
    """네트워크 떠나기"""
    try:
        Endpoint(_build_cli(ctx)).leave(network_id)
    except ZeroTierError as e:
        _fail(f"leave 실패: {e}")
    console.print(f"[green]✓ {network_id} 네트워크에서 나왔습니다.[/green]")


@cli.command()
@click.argument('network_id')
@click.argument('member_address')
@click.option('--description', '-d', default=None, help='멤버 설명')
@click.pass_context
def authorize(ctx, network_id, member_address, description):
    """컨트롤러에서 멤버 인증"""
    cfg = ctx.obj["config"]
    controller = _build_controller(ctx)
    if controller is None:
        _fail("컨트롤러 토큰이 없습니다. 설정 파일 또는 ZT_API_TOKEN 을 지정하세요.")

    if description is None:
        description = cfg.network.member_description
    try:
        controller.authorize_member(network_id, member_address, description)
    except ZeroTierError as e:
        _fail(f"멤버 인증 실패: {e}")
    console.print(f"[green]✓ {member_address} 인증 완료[/green]")


@cli.command('wait-ip')
@click.argument('network_id')
@click.option('--timeout', type=float, default=None, help='대기 시간 (초)')
@click.pass_context
def wait_ip(ctx, network_id, timeout):
    """IPv4 주소가 할당될 때까지 대기"""
    cfg = ctx.obj["config"]
    try:
        endpoint = Endpoint(_build_cli(ctx), cfg.network.poll_interval)
        with cancel_on_signals() as cancel:
            address = endpoint.wait_for_ip(
                network_id, cancel,
                timeout if timeout is not None else cfg.network.wait_timeout
            )
    except ZeroTierError as e:
        _fail(str(e))

    console.print(str(address))


def main():
    """메인 엔트리 포인트"""
    cli()


if __name__ == '__main__':
    main()
