"""
CLI 및 join 오케스트레이션 테스트
"""

import json
import pytest
from click.testing import CliRunner
from conftest import make_network
from zt_vpn_agent import cli as cli_module
from zt_vpn_agent.cli import JoinOrchestrator, cli
from zt_vpn_agent.logger import init_logger
from zt_vpn_agent.config import Config
from zt_vpn_agent.daemon import CommandResult
from test_controller import FakeSession, make_response

NWID = "8056c2e21c000001"


@pytest.fixture
def config(monkeypatch):
    monkeypatch.delenv("ZT_API_TOKEN", raising=False)
    return Config(search_defaults=False)


def invoke(args, config, runner, session=None):
    return CliRunner().invoke(cli, args, obj={"config": config, "runner": runner, "session": session})


def test_status_command(config, runner):
    result = invoke(["status"], config, runner)
    assert result.exit_code == 0
    assert "a1b2c3d4e5" in result.output


def test_status_command_daemon_down(config, runner):
    runner.set("status", CommandResult(1, "", "Error connecting to the ZeroTier service\n"))
    result = invoke(["status"], config, runner)
    assert result.exit_code == 1


def test_networks_command_reports_listing_failure(config, runner):
    runner.set("listnetworks", CommandResult(0, "garbage", ""))
    result = invoke(["networks"], config, runner)
    assert result.exit_code == 1


def test_join_waits_for_address(config, runner):
    runner.set_json("listnetworks", [], [make_network(NWID, ["10.1.2.3/24"])])
    runner.set("join", CommandResult(0, "{}", ""))

    result = invoke(["join", NWID], config, runner)

    assert result.exit_code == 0
    assert "10.1.2.3" in result.output
    assert ["join", NWID] in runner.commands()


def test_join_authorizes_with_token(config, runner):
    config.controller.token = "tok"
    config.network.member_description = "ci-node"
    runner.set_json("listnetworks", [], [make_network(NWID, ["10.1.2.3/24"])])
    runner.set("join", CommandResult(0, "{}", ""))
    session = FakeSession(make_response(200))

    result = invoke(["join", NWID], config, runner, session)

    assert result.exit_code == 0
    assert session.requests[0]["url"].endswith(f"/network/{NWID}/member/a1b2c3d4e5")
    assert json.loads(session.requests[0]["data"])["annot"]["description"] == "ci-node"


def test_join_failure_leaves_network(config, runner):
    """이번 실행에서 join 한 네트워크는 실패 시 떠남"""
    runner.set_json("listnetworks", [], [make_network(NWID, ["fd00::1/128"])])
    runner.set("join", CommandResult(0, "{}", ""))
    runner.set("leave", CommandResult(0, "{}", ""))

    result = invoke(["join", NWID], config, runner)

    assert result.exit_code == 1
    assert ["leave", NWID] in runner.commands()


def test_join_failure_keeps_existing_membership(config, runner, zt_cli):
    """이미 참여 중이던 네트워크는 떠나지 않음"""
    runner.set_json("listnetworks", [make_network(NWID, ["fd00::1/128"])])

    orchestrator = JoinOrchestrator(config, zt_cli)
    assert orchestrator.run(NWID, authorize=False) is False
    assert ["join", NWID] not in runner.commands()
    assert ["leave", NWID] not in runner.commands()


def test_join_controller_rejects(config, runner, zt_cli):
    from zt_vpn_agent.controller import Controller

    runner.set_json("listnetworks", [])
    runner.set("join", CommandResult(0, "{}", ""))
    runner.set("leave", CommandResult(0, "{}", ""))
    controller = Controller("tok", session=FakeSession(make_response(403, "Forbidden")))

    orchestrator = JoinOrchestrator(config, zt_cli, controller)
    assert orchestrator.run(NWID) is False
    assert orchestrator.address is None
    assert ["leave", NWID] in runner.commands()
    assert any("403" in step["message"] for step in orchestrator.execution_log)
    assert all("tok" not in step["message"] for step in orchestrator.execution_log)


def test_join_auto_start_daemon(config, runner, zt_cli):
    config.daemon.auto_start = True
    config.daemon.startup_wait = 0
    runner.set_json("listnetworks", [make_network(NWID, ["10.1.2.3/24"])])

    orchestrator = JoinOrchestrator(config, zt_cli)
    assert orchestrator.run(NWID, authorize=False) is True
    assert runner.spawned == []
    assert str(orchestrator.address) == "10.1.2.3"


def test_authorize_requires_token(config, runner):
    result = invoke(["authorize", NWID, "a1b2c3d4e5"], config, runner)
    assert result.exit_code == 1


def test_authorize_command(config, runner):
    config.controller.token = "tok"
    session = FakeSession(make_response(200))

    result = invoke(["authorize", NWID, "a1b2c3d4e5", "-d", "laptop"], config, runner, session)

    assert result.exit_code == 0
    assert json.loads(session.requests[0]["data"])["annot"]["description"] == "laptop"


def test_leave_command(config, runner):
    runner.set("leave", CommandResult(0, "{}", ""))
    result = invoke(["leave", NWID], config, runner)
    assert result.exit_code == 0
    assert ["leave", NWID] in runner.commands()


def test_wait_ip_command(config, runner):
    runner.set_json("listnetworks", [make_network(NWID, ["10.9.8.7/16"])])
    result = invoke(["wait-ip", NWID], config, runner)
    assert result.exit_code == 0
    assert "10.9.8.7" in result.output


def test_wait_ip_unknown_network(config, runner):
    runner.set_json("listnetworks", [])
    result = invoke(["wait-ip", NWID], config, runner)
    assert result.exit_code == 1


def test_init_command(config, runner):
    cli_runner = CliRunner()
    with cli_runner.isolated_filesystem():
        result = cli_runner.invoke(cli, ["init", "sample.yaml"], obj={"config": config})
        assert result.exit_code == 0
        assert Config("sample.yaml").daemon.cli_path == "zerotier-cli"


def test_validate_masks_token(config, runner):
    config.controller.token = "super-secret-token"
    result = invoke(["validate"], config, runner)
    assert result.exit_code == 0
    assert "super-secret-token" not in result.output


def test_invalid_config_file_fails_cleanly(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- not\n- a mapping\n", encoding="utf-8")

    result = CliRunner().invoke(cli, ["-c", str(path), "validate"])

    assert result.exit_code == 1
    assert "설정 파일 오류" in result.output


def test_summary_shows_log_files(config, runner, zt_cli, tmp_path, monkeypatch, capsys):
    """로그 디렉토리가 설정되면 요약에 로그 파일 경로 표시"""
    monkeypatch.setattr(cli_module.console, "width", 500)
    log = init_logger(str(tmp_path), "INFO", False)
    runner.set_json("listnetworks", [make_network(NWID, ["10.1.2.3/24"])])

    try:
        orchestrator = JoinOrchestrator(config, zt_cli)
        assert orchestrator.run(NWID, authorize=False) is True
        orchestrator.show_summary()
    finally:
        init_logger(None, "INFO", False)

    output = capsys.readouterr().out
    assert "로그 파일" in output
    assert log.get_log_files()["main_log"] in output
    assert log.get_log_files()["error_log"] in output


def test_summary_without_log_dir(config, runner, zt_cli, capsys):
    init_logger(None, "INFO", False)
    runner.set_json("listnetworks", [make_network(NWID, ["10.1.2.3/24"])])

    orchestrator = JoinOrchestrator(config, zt_cli)
    orchestrator.run(NWID, authorize=False)
    orchestrator.show_summary()

    assert "로그 파일" not in capsys.readouterr().out
