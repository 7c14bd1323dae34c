import subprocess
from pathlib import Path

from kitconsole.plugins.commands import CommandPlan
from kitconsole.plugins.launcher import ProcessLauncher, log_file_name
from kitconsole.plugins.schemas import Mode
from kitconsole.utils.request_id import request_id_var


def install_plan(package_name: str = "test-package") -> CommandPlan:
    return CommandPlan(
        mode=Mode.INSTALL,
        package_name=package_name,
        argv=["npm", "install", package_name, "--save-exact"],
        cwd=Path("/work/prototype"),
    )


def test_log_file_name():
    assert log_file_name("test-package") == "npm-test-package.log"
    assert log_file_name("@scope/plugin") == "npm-scope-plugin.log"


class TestLaunch:
    def test_starts_detached_process(self, launcher, fake_popen):
        assert launcher.launch(install_plan())

        assert len(fake_popen.calls) == 1
        call = fake_popen.calls[0]
        assert call["argv"] == ["npm", "install", "test-package", "--save-exact"]
        assert call["cwd"] == "/work/prototype"
        assert call["stdin"] == subprocess.DEVNULL
        assert call["stderr"] == subprocess.STDOUT
        assert call["start_new_session"] is True

    def test_writes_command_to_log(self, launcher):
        launcher.launch(install_plan())

        log = launcher.log_path("test-package").read_text(encoding="utf-8")
        assert log.startswith("$ npm install test-package --save-exact")

    def test_log_names_the_request(self, launcher):
        token = request_id_var.set("req-00000001")
        try:
            launcher.launch(install_plan())
        finally:
            request_id_var.reset(token)

        log = launcher.log_path("test-package").read_text(encoding="utf-8")
        assert log.splitlines()[0] == "# request req-00000001"

    def test_running_process_is_not_a_failure(self, launcher):
        launcher.launch(install_plan())

        assert launcher.last_failure("test-package") is None
        assert launcher.is_running("test-package")

    def test_spawn_failure_is_recorded(self, launcher, fake_popen):
        fake_popen.error = FileNotFoundError("npm")

        assert not launcher.launch(install_plan())

        failure = launcher.last_failure("test-package")
        assert failure is not None
        assert failure.category.value == "launch_failure"
        assert "npm" in failure.message

    def test_non_zero_exit_is_recorded(self, launcher, fake_popen):
        fake_popen.returncode = 1
        launcher.launch(install_plan())

        failure = launcher.last_failure("test-package")

        assert failure is not None
        assert "exited with code 1" in failure.message
        assert not launcher.is_running("test-package")

    def test_clean_exit(self, launcher, fake_popen):
        fake_popen.returncode = 0
        launcher.launch(install_plan())

        assert launcher.last_failure("test-package") is None

    def test_relaunch_clears_previous_failure(self, launcher, fake_popen):
        fake_popen.error = FileNotFoundError("npm")
        launcher.launch(install_plan())
        fake_popen.error = None

        assert launcher.launch(install_plan())
        assert launcher.last_failure("test-package") is None

    def test_unknown_package(self, tmp_path):
        assert ProcessLauncher(tmp_path).last_failure("never-launched") is None
