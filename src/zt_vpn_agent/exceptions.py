"""
예외 정의 모듈
데몬 CLI, 네트워크 상태, 컨트롤러 API 오류 타입
"""

from typing import Dict, List, Optional


class ZeroTierError(Exception):
    """모든 에이전트 오류의 기본 클래스"""
    pass


class ExternalCommandError(ZeroTierError):
    """외부 CLI 명령이 실패함 (stderr 내용을 그대로 보관)"""

    def __init__(self, stderr: str, args: Optional[List[str]] = None, returncode: Optional[int] = None):
        super().__init__(stderr)
        self.stderr = stderr
        self.command = list(args or [])
        self.returncode = returncode


class DaemonUnreachable(ZeroTierError):
    """로컬 데몬에 접근할 수 없음"""
    pass


class ParseError(ZeroTierError):
    """데몬 출력 JSON 파싱 실패"""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


# ---------------- Network Errors ----------------

class NetworkError(ZeroTierError):
    """네트워크 상태 관련 오류의 기본 클래스"""
    pass


class NetworkNotFound(NetworkError):

    def __init__(self, network_id: str):
        super().__init__(f"no such network: {network_id}")
        self.network_id = network_id


class UnsupportedAddressFamily(NetworkError):

    def __init__(self, address: str):
        super().__init__(f"cannot handle address as ipv4: {address}")
        self.address = address


class MalformedAddress(NetworkError):

    def __init__(self, address: str):
        super().__init__(f"malformed CIDR address: {address!r}")
        self.address = address


class Cancelled(ZeroTierError):
    """대기 중 취소 신호 수신"""
    pass


class WaitTimeout(Cancelled):
    """호출자가 지정한 대기 시간 초과"""
    pass


# ---------------- Controller Errors ----------------

class ControllerError(ZeroTierError):
    """컨트롤러 API 오류의 기본 클래스"""
    pass


class HTTPRequestError(ControllerError):
    """전송 계층 실패 (연결 실패, 타임아웃 등)"""

    def __init__(self, original: Exception):
        super().__init__(f"controller request failed: {original}")
        self.original = original


class HTTPStatusError(ControllerError):
    """2xx 이외의 응답 코드"""

    def __init__(self, status_code: int, reason: str, headers: Dict[str, str], body: str = ""):
        # headers 는 Authorization 값이 이미 마스킹된 상태여야 함
        message = f"Failed to update member details {headers}: {status_code} {reason}".rstrip()
        if body:
            message = f"{message}: {body.strip()}"
        super().__init__(message)
        self.body = body
        self.status_code = status_code
        self.reason = reason
        self.headers = headers


class ConfigError(ZeroTierError):
    """설정 파일 형식 오류"""
    pass
