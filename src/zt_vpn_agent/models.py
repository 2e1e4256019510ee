"""
데몬 상태 데이터 모델
`zerotier-cli -j status` / `listnetworks` 출력의 스냅샷
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class MembershipState(Enum):
    """네트워크 참여 단계 (join → 인증 → 주소 할당)"""
    NOT_JOINED = "not_joined"
    JOINED_UNAUTHORIZED = "joined_unauthorized"
    JOINED_AUTHORIZED = "joined_authorized"
    ADDRESS_ASSIGNED = "address_assigned"
    FAILED = "failed"


# 데몬이 보고하는 네트워크 상태 문자열
UNAUTHORIZED_STATUSES = {"REQUESTING_CONFIGURATION", "ACCESS_DENIED"}
FAILED_STATUSES = {"NOT_FOUND", "PORT_ERROR", "CLIENT_TOO_OLD"}


@dataclass(frozen=True)
class EndpointStatus:
    """`status` 출력 중 에이전트가 사용하는 부분"""
    address: str = ""
    online: bool = False
    tcp_fallback_active: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EndpointStatus":
        return cls(
            address=data.get("address", ""),
            online=bool(data.get("online", False)),
            tcp_fallback_active=bool(data.get("tcpFallbackActive", False)),
        )


def _address_tuple(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise TypeError(f"assignedAddresses must be a list, got {type(value).__name__}")
    return tuple(value)


@dataclass(frozen=True)
class Network:
    """가상 네트워크 하나의 상태 스냅샷"""
    id: str
    mac: str = ""
    name: str = ""
    status: str = ""
    type: str = ""
    mtu: int = 0
    dhcp: bool = False
    bridge: bool = False
    broadcast_enabled: bool = False
    addresses: Tuple[str, ...] = ()
    port_device_name: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Network":
        """`listnetworks` 항목에서 생성. 모르는 키는 무시한다."""
        return cls(
            id=data["nwid"],
            mac=data.get("mac", ""),
            name=data.get("name", ""),
            status=data.get("status", ""),
            type=data.get("type", ""),
            mtu=int(data.get("mtu", 0) or 0),
            dhcp=bool(data.get("dhcp", False)),
            bridge=bool(data.get("bridge", False)),
            broadcast_enabled=bool(data.get("broadcastEnabled", False)),
            addresses=_address_tuple(data.get("assignedAddresses")),
            port_device_name=data.get("portDeviceName", ""),
        )

    @property
    def membership_state(self) -> MembershipState:
        if self.addresses:
            return MembershipState.ADDRESS_ASSIGNED
        if self.status in FAILED_STATUSES:
            return MembershipState.FAILED
        if self.status == "OK":
            return MembershipState.JOINED_AUTHORIZED
        return MembershipState.JOINED_UNAUTHORIZED


def membership_of(network: Optional[Network]) -> MembershipState:
    if network is None:
        return MembershipState.NOT_JOINED
    return network.membership_state


@dataclass
class NetworkListResult:
    """`listnetworks` 조회 결과

    실패 시 networks 는 비어 있고 error 에 원인이 담긴다.
    """
    networks: Dict[str, Network] = field(default_factory=dict)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def get(self, network_id: str) -> Optional[Network]:
        return self.networks.get(network_id)

    def __len__(self) -> int:
        return len(self.networks)
