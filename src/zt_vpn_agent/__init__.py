"""
ZeroTier VPN Agent
ZeroTier 데몬과 컨트롤러 API를 이용해 가상 네트워크에 노드를 참여시키는 에이전트

Features:
- zerotier-cli 기반 상태 조회 및 join/leave
- 데몬 실행 확인 및 시작
- ZeroTier Central 멤버 인증
- IP 할당 대기 (취소/타임아웃 지원)
"""

__version__ = "1.0.0"
__author__ = "DevOps Team"

from .controller import Controller
from .daemon import CommandRunner, DaemonManager, ZeroTierCLI
from .endpoint import Endpoint
from .models import EndpointStatus, MembershipState, Network, NetworkListResult
