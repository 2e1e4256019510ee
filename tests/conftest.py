"""
테스트 공용 픽스처
실제 프로세스 대신 응답을 미리 정해둔 가짜 실행기 사용
"""

import json
import pytest
from zt_vpn_agent.daemon import CommandResult, ZeroTierCLI


class FakeRunner:
    """subcommand 별로 응답을 돌려주는 가짜 CommandRunner"""

    def __init__(self):
        self.responses = {}
        self.calls = []
        self.spawned = []

    def set(self, subcommand, *results):
        """subcommand 응답 등록. 여러 개면 호출마다 순서대로 소비 (마지막 값 유지)"""
        self.responses[subcommand] = list(results)

    def set_json(self, subcommand, *payloads):
        self.set(subcommand, *[CommandResult(0, json.dumps(p), "") for p in payloads])

    def run(self, args):
        self.calls.append(list(args))
        subcommand = args[2] if len(args) > 2 else ""
        queue = self.responses.get(subcommand)
        if not queue:
            return CommandResult(1, "", f"unknown command {subcommand}\n")
        result = queue[0] if len(queue) == 1 else queue.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def spawn(self, args):
        self.spawned.append(list(args))

    def commands(self):
        return [call[2:] for call in self.calls]


STATUS = {"address": "a1b2c3d4e5", "online": True, "tcpFallbackActive": False, "version": "1.12.2"}


def make_network(nwid="8056c2e21c000001", addresses=None, status="OK", **extra):
    data = {
        "nwid": nwid,
        "mac": "5e:1f:aa:00:11:22",
        "name": "test-net",
        "status": status,
        "type": "PRIVATE",
        "mtu": 2800,
        "dhcp": False,
        "bridge": False,
        "broadcastEnabled": True,
        "portError": 0,
        "netconfRevision": 3,
        "assignedAddresses": list(addresses or []),
        "portDeviceName": "ztabcdef12",
    }
    data.update(extra)
    return data


@pytest.fixture
def runner():
    fake = FakeRunner()
    fake.set_json("status", STATUS)
    return fake


@pytest.fixture
def zt_cli(runner):
    return ZeroTierCLI("zerotier-cli", runner)
