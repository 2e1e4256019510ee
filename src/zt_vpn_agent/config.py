"""
설정 관리 모듈
YAML/JSON 기반 설정 파일 관리 및 기본값 제공
"""

import os
import yaml
import json
from typing import Dict, Any, Optional
from dataclasses import dataclass, asdict
from .exceptions import ConfigError

TOKEN_ENV_VAR = "ZT_API_TOKEN"


@dataclass
class DaemonConfig:
    """로컬 데몬 설정"""
    cli_path: str = "zerotier-cli"
    daemon_path: str = "/var/lib/zerotier-one/zerotier-one"
    startup_wait: float = 1.0
    command_timeout: Optional[float] = 30
    auto_start: bool = False


@dataclass
class ControllerConfig:
    """컨트롤러 API 설정"""
    url: str = "https://my.zerotier.com/api"
    token: str = ""
    timeout: float = 10


@dataclass
class NetworkConfig:
    """네트워크 조인 설정"""
    network_id: str = ""
    member_description: str = ""
    poll_interval: float = 1.0
    wait_timeout: Optional[float] = None
    authorize: bool = True


@dataclass
class AgentConfig:
    """에이전트 설정"""
    log_dir: Optional[str] = None
    log_level: str = "INFO"
    leave_on_failure: bool = True


class Config:
    """전체 설정 관리 클래스"""

    DEFAULT_CONFIG_PATHS = [
        "/etc/zt-vpn-agent/config.yaml",
        "~/.zt-vpn-agent/config.yaml",
        "./config/config.yaml",
        "./config.yaml",
    ]

    SECTIONS = ("daemon", "controller", "network", "agent")

    def __init__(self, config_path: Optional[str] = None, search_defaults: bool = True):
        self.config_path = config_path
        self.daemon = DaemonConfig()
        self.controller = ControllerConfig()
        self.network = NetworkConfig()
        self.agent = AgentConfig()

        if config_path:
            self.load(config_path)
        elif search_defaults:
            self._load_from_default_paths()

        self._apply_env()

    def _load_from_default_paths(self):
        """기본 경로에서 설정 파일 로드"""
        for path in self.DEFAULT_CONFIG_PATHS:
            expanded_path = os.path.expanduser(path)
            if os.path.exists(expanded_path):
                self.load(expanded_path)
                return

    def _apply_env(self):
        token = os.environ.get(TOKEN_ENV_VAR)
        if token:
            self.controller.token = token

    def load(self, path: str):
        """설정 파일 로드"""
        path = os.path.expanduser(path)
        if not os.path.exists(path):
            return

        with open(path, 'r', encoding='utf-8') as f:
            try:
                if path.endswith('.json'):
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
            except (yaml.YAMLError, json.JSONDecodeError) as e:
                raise ConfigError(f"cannot parse config file {path}: {e}") from e
        if data is None:
            data = {}

        self._update_from_dict(data)
        self.config_path = path

    def _update_from_dict(self, data: Dict[str, Any]):
        """딕셔너리에서 설정 업데이트 (알 수 없는 키는 무시)"""
        if not isinstance(data, dict):
            raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")

        for section in self.SECTIONS:
            values = data.get(section) or {}
            if not isinstance(values, dict):
                raise ConfigError(f"config section '{section}' must be a mapping, got {type(values).__name__}")
            target = getattr(self, section)
            for key, value in values.items():
                if hasattr(target, key):
                    setattr(target, key, value)

    def save(self, path: Optional[str] = None):
        """설정 파일 저장"""
        save_path = path or self.config_path or self.DEFAULT_CONFIG_PATHS[0]
        save_path = os.path.expanduser(save_path)

        dirname = os.path.dirname(save_path)
        if dirname:
            os.makedirs(dirname, exist_ok=True)

        data = self.to_dict()

        with open(save_path, 'w', encoding='utf-8') as f:
            if save_path.endswith('.json'):
                json.dump(data, f, indent=2)
            else:
                yaml.dump(data, f, default_flow_style=False, allow_unicode=True)

    def to_dict(self, redact: bool = False) -> Dict[str, Any]:
        """딕셔너리로 변환"""
        data = {section: asdict(getattr(self, section)) for section in self.SECTIONS}
        if redact and data["controller"]["token"]:
            data["controller"]["token"] = "***"
        return data

    def create_sample(self, output_path: str):
        """샘플 설정 파일 생성"""
        template = """# ZeroTier VPN Agent Configuration File
# 이 파일을 복사하여 config.yaml로 사용하세요

# 로컬 데몬 설정
daemon:
  cli_path: "zerotier-cli"
  daemon_path: "/var/lib/zerotier-one/zerotier-one"
  startup_wait: 1.0  # 데몬 실행 후 재확인까지 대기 (초)
  command_timeout: 30
  auto_start: false  # true면 join 전에 데몬을 직접 실행 (운영 환경에서는 systemd 사용 권장)

# 컨트롤러 API 설정
controller:
  url: "https://my.zerotier.com/api"
  token: ""  # API 토큰 (환경변수 ZT_API_TOKEN 으로도 지정 가능)
  timeout: 10

# 네트워크 설정
network:
  network_id: ""  # 16자리 네트워크 ID
  member_description: ""
  poll_interval: 1.0
  wait_timeout: null  # null이면 Ctrl+C 전까지 대기
  authorize: true

# 에이전트 설정
agent:
  log_dir: null  # 예: "/var/log/zt-vpn-agent"
  log_level: "INFO"  # DEBUG, INFO, WARN, ERROR
  leave_on_failure: true
"""

        dirname = os.path.dirname(output_path)
        if dirname:
            os.makedirs(dirname, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(template)
