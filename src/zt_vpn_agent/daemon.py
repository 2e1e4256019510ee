"""
ZeroTier 데몬 제어 모듈
zerotier-cli 호출 (JSON 출력) 및 데몬 실행 확인
"""

import subprocess
import time
import json
from dataclasses import dataclass
from typing import Any, Callable, List, Optional
from .exceptions import DaemonUnreachable, ExternalCommandError, ParseError
from .logger import get_logger


@dataclass
class CommandResult:
    returncode: int
    stdout: str
    stderr: str


class CommandRunner:
    """서브프로세스 실행기 (테스트에서는 가짜 구현으로 교체)"""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def run(self, args: List[str]) -> CommandResult:
        """명령을 실행하고 stdout/stderr 를 따로 수집"""
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            timeout=self.timeout
        )
        return CommandResult(result.returncode, result.stdout, result.stderr)

    def spawn(self, args: List[str]) -> subprocess.Popen:
        """종료를 기다리지 않고 실행 (표준 출력/에러는 상속)"""
        return subprocess.Popen(args)


class ZeroTierCLI:
    """zerotier-cli 래퍼"""

    def __init__(self, cli_path: str = "zerotier-cli", runner: Optional[CommandRunner] = None):
        self.cli_path = cli_path
        self.runner = runner or CommandRunner()
        self.logger = get_logger()

    def query(self, *args: str) -> str:
        """`zerotier-cli -j <args>` 실행 후 stdout 반환

        종료 코드가 0이 아니면 stderr 를 그대로 담은 ExternalCommandError.
        재시도는 호출자 책임.
        """
        cmd = [self.cli_path, "-j", *args]
        self.logger.debug(f"Running: {' '.join(cmd)}")

        try:
            result = self.runner.run(cmd)
        except subprocess.TimeoutExpired:
            raise ExternalCommandError(f"command timed out: {' '.join(cmd)}", cmd) from None
        except OSError as e:
            raise ExternalCommandError(str(e), cmd) from e

        if result.returncode != 0:
            self.logger.debug(f"{cmd[0]} exited with {result.returncode}: {result.stderr.strip()}")
            raise ExternalCommandError(result.stderr, cmd, result.returncode)

        return result.stdout

    def query_json(self, *args: str) -> Any:
        output = self.query(*args)
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise ParseError(f"cannot parse {' '.join(args) or 'status'} output: {e}", output) from e


class DaemonManager:
    """데몬 실행 상태 확인 및 시작

    start_daemon 은 1회 재확인만 하는 단순한 방식이다.
    운영 환경에서는 systemd 등 서비스 관리자로 데몬을 실행할 것.
    """

    def __init__(self, cli: ZeroTierCLI, daemon_path: str = "/var/lib/zerotier-one/zerotier-one",
                 startup_wait: float = 1.0, sleep: Callable[[float], None] = time.sleep):
        self.cli = cli
        self.daemon_path = daemon_path
        self.startup_wait = startup_wait
        self.sleep = sleep
        self.logger = get_logger()

    def ping_daemon(self):
        """데몬 접근 가능 여부 확인

        데몬 미실행, 토큰 권한 없음 등 원인은 구분하지 않는다.
        """
        try:
            self.cli.query("status")
        except ExternalCommandError as e:
            raise DaemonUnreachable("cannot connect to local zerotier daemon") from e

    def is_running(self) -> bool:
        try:
            self.ping_daemon()
            return True
        except DaemonUnreachable:
            return False

    def start_daemon(self) -> bool:
        """데몬이 응답하지 않으면 직접 실행

        Returns:
            bool: 이번 호출에서 데몬을 실행했으면 True, 이미 실행 중이면 False
        """
        if self.is_running():
            self.logger.debug("zerotier daemon already running")
            return False

        self.logger.warning(f"zerotier daemon not reachable, starting {self.daemon_path}")
        try:
            self.cli.runner.spawn([self.daemon_path])
        except OSError as e:
            raise DaemonUnreachable(f"cannot start zerotier daemon: {e}") from e

        self.sleep(self.startup_wait)
        self.ping_daemon()

        self.logger.info("zerotier daemon started")
        return True
