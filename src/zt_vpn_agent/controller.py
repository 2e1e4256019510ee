"""
ZeroTier 컨트롤러 API 모듈
멤버(노드) 인증 요청
"""

import json
from abc import ABC, abstractmethod
from typing import Dict, Optional
import requests
from .exceptions import HTTPRequestError, HTTPStatusError
from .logger import get_logger

DEFAULT_CONTROLLER_URL = "https://my.zerotier.com/api"


def redact_headers(headers) -> Dict[str, str]:
    """에러 메시지용 헤더 사본 (Authorization 값 마스킹)"""
    redacted = {}
    for key, value in headers.items():
        if key.lower() == "authorization":
            scheme = value.split(" ", 1)[0] if " " in value else ""
            value = f"{scheme} ***".strip()
        redacted[key] = value
    return redacted


class MemberAuthorizer(ABC):
    """멤버 인증 인터페이스"""

    @abstractmethod
    def authorize_member(self, network_id: str, member_address: str, member_description: str = ""):
        ...

    def authorize(self, endpoint, network_id: str, member_description: str = ""):
        """엔드포인트(로컬 노드)를 네트워크에 인증"""
        self.authorize_member(network_id, endpoint.device_address, member_description)


class Controller(MemberAuthorizer):
    """공식 ZeroTier Central 컨트롤러 클라이언트"""

    def __init__(self, token: str, url: str = DEFAULT_CONTROLLER_URL, timeout: float = 10,
                 session: Optional[requests.Session] = None):
        self._token = token
        self.url = url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = get_logger()

    def __repr__(self):
        return f"Controller(url={self.url!r})"

    def _member_route(self, network_id: str, member_address: str) -> str:
        return f"{self.url}/network/{network_id}/member/{member_address}"

    def authorize_member(self, network_id: str, member_address: str, member_description: str = ""):
        """멤버를 authorized 로 설정하고 설명을 갱신

        같은 요청을 반복해도 마지막 설명으로 다시 인증될 뿐이다.

        Raises:
            HTTPRequestError: 연결 실패 등 전송 오류
            HTTPStatusError: 2xx 가 아닌 응답
        """
        route = self._member_route(network_id, member_address)
        body = {
            "config": {"authorized": True},
            "annot": {"description": member_description},
        }
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }

        self.logger.info(f"Authorizing member {member_address} on network {network_id}")
        try:
            response = self.session.post(
                route,
                data=json.dumps(body),
                headers=headers,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            self.logger.error(f"Controller request failed: {e}")
            raise HTTPRequestError(e) from e

        if not 200 <= response.status_code < 300:
            error = HTTPStatusError(response.status_code, response.reason or "",
                                   redact_headers(headers), response.text)
            self.logger.error(str(error))
            raise error

        self.logger.debug(f"Member {member_address} authorized (status: {response.status_code})")
