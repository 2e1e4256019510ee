"""
엔드포인트 (로컬 ZeroTier 노드) 모듈
네트워크 join/leave, 네트워크 목록 조회, IP 할당 대기
"""

import ipaddress
import threading
import time
from typing import Optional
from .daemon import ZeroTierCLI
from .exceptions import (
    Cancelled,
    MalformedAddress,
    NetworkNotFound,
    ParseError,
    UnsupportedAddressFamily,
    WaitTimeout,
    ZeroTierError,
)
from .logger import get_logger
from .models import EndpointStatus, MembershipState, Network, NetworkListResult, membership_of


class Endpoint:
    """로컬 데몬의 상태 스냅샷과 조작 메서드

    생성 시 `status` 를 조회하므로 데몬에 접근할 수 없으면 실패한다.
    """

    def __init__(self, cli: ZeroTierCLI, poll_interval: float = 1.0):
        self.cli = cli
        self.poll_interval = poll_interval
        self.logger = get_logger()
        self.status = EndpointStatus()
        self.update_status()

    @classmethod
    def create(cls, cli: ZeroTierCLI, poll_interval: float = 1.0) -> "Endpoint":
        return cls(cli, poll_interval)

    @property
    def device_address(self) -> str:
        return self.status.address

    @property
    def online(self) -> bool:
        return self.status.online

    @property
    def tcp_fallback(self) -> bool:
        return self.status.tcp_fallback_active

    def update_status(self):
        """데몬 상태 재조회 (스냅샷 전체 교체)"""
        data = self.cli.query_json("status")
        if not isinstance(data, dict):
            raise ParseError("unexpected status output", str(data))
        self.status = EndpointStatus.from_dict(data)
        self.logger.debug(f"Endpoint status: {self.status}")

    def join(self, network_id: str):
        """네트워크 참여 요청

        컨트롤러 인증 여부나 IP 할당은 확인하지 않는다.
        """
        self.logger.info(f"Joining network {network_id}")
        self.cli.query("join", network_id)

    def leave(self, network_id: str):
        self.logger.info(f"Leaving network {network_id}")
        self.cli.query("leave", network_id)

    def list_networks(self) -> NetworkListResult:
        """데몬에서 네트워크 목록을 새로 조회

        조회/파싱 실패 시 빈 목록과 함께 error 를 채워 반환한다.
        """
        try:
            data = self.cli.query_json("listnetworks")
            networks = {}
            for entry in data:
                network = Network.from_dict(entry)
                networks[network.id] = network
        except ZeroTierError as e:
            self.logger.warning(f"Cannot list networks: {e}")
            return NetworkListResult(error=e)
        except (TypeError, KeyError, ValueError) as e:
            self.logger.warning(f"Cannot parse listnetworks output: {e!r}")
            return NetworkListResult(error=ParseError(f"unexpected listnetworks entry: {e!r}"))

        return NetworkListResult(networks)

    def get_network(self, network_id: str) -> Optional[Network]:
        """네트워크 ID로 조회. 없으면 None

        목록 조회 자체가 실패하면 그 오류를 그대로 발생시킨다.
        """
        result = self.list_networks()
        if not result.ok:
            raise result.error
        return result.get(network_id)

    def membership(self, network_id: str) -> MembershipState:
        return membership_of(self.get_network(network_id))

    def wait_for_ip(self, network_id: str, cancel: Optional[threading.Event] = None,
                    timeout: Optional[float] = None) -> ipaddress.IPv4Address:
        """VPN 인터페이스에 IPv4 주소가 할당될 때까지 대기

        Args:
            network_id: 이미 join 한 네트워크 ID (컨트롤러 인증 필요)
            cancel: set 되면 대기를 중단하는 이벤트
            timeout: 최대 대기 시간 (초). None 이면 취소될 때까지 대기

        Raises:
            NetworkNotFound: 네트워크가 목록에 없음 (재시도하지 않음)
            UnsupportedAddressFamily: 첫 주소가 IPv4 가 아님
            MalformedAddress: 첫 주소가 CIDR 형식이 아님
            Cancelled: 취소 이벤트 수신 (시간 초과 시 WaitTimeout)
        """
        cancel = cancel or threading.Event()
        deadline = None if timeout is None else time.monotonic() + timeout

        while True:
            network = self.get_network(network_id)
            if network is None:
                raise NetworkNotFound(network_id)

            if network.addresses:
                return self._parse_ipv4(network.addresses[0])

            wait = self.poll_interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise WaitTimeout(f"no address assigned on {network_id} within {timeout}s")
                wait = min(wait, remaining)

            self.logger.debug(f"Network {network_id} has no address yet ({network.status})")
            if cancel.wait(wait):
                raise Cancelled("user cancelled")

    def _parse_ipv4(self, cidr: str) -> ipaddress.IPv4Address:
        # 접두사 길이가 없는 주소는 CIDR 로 보지 않음
        if not isinstance(cidr, str) or "/" not in cidr:
            raise MalformedAddress(cidr)
        try:
            interface = ipaddress.ip_interface(cidr)
        except ValueError:
            raise MalformedAddress(cidr) from None

        if interface.version != 4:
            raise UnsupportedAddressFamily(cidr)

        self.logger.info(f"Address assigned: {interface.ip}")
        return interface.ip
