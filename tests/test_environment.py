"""Tests for host and device environments."""

from pathlib import Path, PurePosixPath

import pytest

from stagerun.env import (
    Action,
    DeviceShell,
    DeviceTimeoutError,
    EnvironmentDevice,
    EnvironmentHost,
)
from stagerun.tasks import FunctionTask, Result, TaskQueue, WorkerPoolConfig
from stagerun.tools import FileOperationError


class FakeShell:
    """In-memory stand-in for a device reached over adb."""

    def __init__(self, listings=None):
        self.calls = []
        self.listings = listings or {}

    def wait_for_device(self, timeout=None):
        self.calls.append(("wait_for_device",))

    def wait_for_non_empty_directory(self, path, timeout):
        self.calls.append(("wait_for_non_empty_directory", str(path)))

    def remount(self):
        self.calls.append(("remount",))

    def rm(self, path):
        self.calls.append(("rm", str(path)))

    def mkdir(self, path):
        self.calls.append(("mkdir", str(path)))

    def mkdirs(self, path):
        self.calls.append(("mkdirs", str(path)))

    def forward_tcp(self, local_port, device_port):
        self.calls.append(("forward_tcp", local_port, device_port))

    def push(self, local, remote):
        self.calls.append(("push", Path(local).name, str(remote)))

    def pull(self, remote, local):
        self.calls.append(("pull", str(remote), str(local)))
        Path(local).mkdir(parents=True, exist_ok=True)
        (Path(local) / remote.name).write_text("pulled", encoding="utf-8")

    def ls(self, path):
        key = str(path)
        if key not in self.listings:
            raise FileNotFoundError(key)
        return [PurePosixPath(path) / name for name in self.listings[key]]


class RecordingDeviceShell(DeviceShell):
    """Real DeviceShell with the adb process replaced by a recorder."""

    def __init__(self, listings=(), **kwargs):
        super().__init__(**kwargs)
        self.commands = []
        self.listings = list(listings)

    def _adb(self, *args, timeout=None):
        self.commands.append(list(args))
        if args[:2] == ("shell", "ls"):
            return self.listings.pop(0) if self.listings else []
        return []


class TestEnvironmentHost:
    """Test the local host environment."""

    @pytest.fixture
    def host(self, settings):
        return EnvironmentHost(settings)

    def test_prepare_copies_resources(self, host, tmp_path):
        resources = tmp_path / "resources"
        resources.mkdir()
        (resources / "fixture.txt").write_text("data", encoding="utf-8")
        action = Action("SmokeTest", resources_directory=resources)

        host.prepare_user_dir(action)

        assert action.user_dir == host.action_user_dir(action)
        assert (Path(action.user_dir) / "fixture.txt").read_text(encoding="utf-8") == "data"

    def test_prepare_without_resources_creates_dir(self, host):
        action = Action("Bare")
        host.prepare_user_dir(action)
        assert Path(action.user_dir).is_dir()

    def test_prepare_refuses_existing_user_dir(self, host):
        action = Action("Twice")
        host.prepare_user_dir(action)
        with pytest.raises(FileOperationError):
            host.prepare_user_dir(Action("Twice"))

    def test_cleanup_retrieves_matching_files_recursively(self, host, settings):
        action = Action("Bench")
        host.prepare_user_dir(action)
        user_dir = Path(action.user_dir)
        (user_dir / "report.json").write_text("{}", encoding="utf-8")
        (user_dir / "scratch.tmp").write_text("", encoding="utf-8")
        (user_dir / "deep").mkdir()
        (user_dir / "deep" / "suite.xml").write_text("<x/>", encoding="utf-8")

        host.cleanup(action)

        assert (settings.results_dir / "report.json").exists()
        assert (settings.results_dir / "deep" / "suite.xml").exists()
        assert not (settings.results_dir / "scratch.tmp").exists()
        assert not host.file("Bench").exists()

    def test_tasks_run_through_queue(self, host, settings):
        action = Action("Queued")
        prepare = host.prepare_user_dir_task(action)

        def produce():
            (Path(action.user_dir) / "out.json").write_text("{}", encoding="utf-8")
            return Result.SUCCESS

        run = FunctionTask("run Queued", produce, after=prepare)
        cleanup = host.cleanup_task(action, after=run)
        queue = TaskQueue(pool=WorkerPoolConfig(max_workers=2))
        queue.enqueue_all([cleanup, run, prepare])

        queue.run_all()

        assert [prepare.result, run.result, cleanup.result] == [Result.SUCCESS] * 3
        assert (settings.results_dir / "out.json").exists()

    def test_cleanup_runs_after_failure(self, host, settings):
        action = Action("Broken")
        prepare = host.prepare_user_dir_task(action)
        run = FunctionTask("run Broken", lambda: Result.EXEC_FAILED, after=prepare)
        cleanup = host.cleanup_task(action, after=run)
        queue = TaskQueue()
        queue.enqueue_all([prepare, run, cleanup])

        report = queue.run_all()

        assert run.result is Result.EXEC_FAILED
        assert cleanup.result is Result.SUCCESS
        assert report.failed == [run]


class TestEnvironmentDevice:
    """Test the device environment against a fake shell."""

    @pytest.fixture
    def shell(self):
        return FakeShell()

    @pytest.fixture
    def device(self, settings, shell, tmp_path):
        home = tmp_path / "home"
        home.mkdir()
        return EnvironmentDevice(settings, shell=shell, home=home)

    def test_prepare_device_sequence(self, device, shell):
        (device.home / ".caliperrc").write_text("", encoding="utf-8")

        assert device.prepare_device_task.is_runnable()
        device.prepare_device_task.run()

        assert device.prepare_device_task.result is Result.SUCCESS
        assert shell.calls == [
            ("wait_for_device",),
            ("wait_for_non_empty_directory", "/data/local/tmp"),
            ("remount",),
            ("rm", "/data/local/tmp/stagerun/run"),
            ("mkdirs", "/data/local/tmp/stagerun/run"),
            ("mkdir", "/data/local/tmp/stagerun/run/tmp"),
            ("mkdirs", "/data/local/tmp/stagerun/dalvik-cache"),
            ("forward_tcp", 8787, 8787),
            ("forward_tcp", 8788, 8788),
            ("mkdirs", "/sdcard"),
            ("push", ".caliperrc", "/sdcard/.caliperrc"),
        ]

    def test_prepare_device_debug_port_and_no_clean(self, settings, shell, tmp_path):
        settings.debug_port = 5005
        settings.clean_before = False
        device = EnvironmentDevice(settings, shell=shell, home=tmp_path)

        device.prepare_device_task.run()

        assert ("forward_tcp", 5005, 5005) in shell.calls
        assert ("rm", "/data/local/tmp/stagerun/run") not in shell.calls
        assert not any(call[0] == "push" for call in shell.calls)

    def test_prepare_device_failure_is_error(self, device, shell):
        def unavailable(timeout=None):
            raise DeviceTimeoutError("no device")

        shell.wait_for_device = unavailable
        device.prepare_device_task.run()
        assert device.prepare_device_task.result is Result.ERROR

    def test_android_data(self, device):
        assert device.android_data() == "ANDROID_DATA=/data/local/tmp/stagerun"

    def test_install_tasks_enqueues_prepare(self, device):
        queue = TaskQueue()
        device.install_tasks(queue)
        assert queue.tasks == [device.prepare_device_task]

    def test_cleanup_pulls_results(self, device, shell, settings):
        action = Action("Bench")
        action_dir = "/data/local/tmp/stagerun/run/Bench"
        shell.listings = {
            action_dir: ["out.json", "log.txt", "caliper-results"],
            action_dir + "/caliper-results": ["run.xml"],
        }

        device.cleanup(action)

        pulls = [call for call in shell.calls if call[0] == "pull"]
        assert pulls == [
            ("pull", action_dir + "/out.json", str(settings.results_dir)),
            ("pull", action_dir + "/caliper-results/run.xml", str(settings.results_dir / "caliper-results")),
        ]
        assert ("rm", action_dir) in shell.calls

    def test_cleanup_tolerates_missing_dir(self, device, shell):
        device.cleanup(Action("NeverPushed"))
        assert ("rm", "/data/local/tmp/stagerun/run/NeverPushed") in shell.calls

    def test_shutdown_removes_runner_dir(self, device, shell):
        device.shutdown()
        assert shell.calls == [("rm", "/data/local/tmp/stagerun/run")]

    def test_user_dir_waits_for_device(self, device, shell, tmp_path):
        resources = tmp_path / "res"
        resources.mkdir()
        (resources / "input.dat").write_text("", encoding="utf-8")
        action = Action("Pushed", resources_directory=resources)
        queue = TaskQueue()
        device.install_tasks(queue)
        prepare_user_dir = device.prepare_user_dir_task(action, after=device.prepare_device_task)
        queue.enqueue(prepare_user_dir)

        queue.run_all()

        assert prepare_user_dir.result is Result.SUCCESS
        assert action.user_dir == PurePosixPath("/data/local/tmp/stagerun/run/Pushed")
        assert shell.calls.index(("remount",)) < shell.calls.index(
            ("push", "input.dat", "/data/local/tmp/stagerun/run/Pushed/input.dat")
        )


class TestDeviceShell:
    """Test adb command construction and waiting."""

    def test_commands(self):
        shell = RecordingDeviceShell(adb="adb")
        shell.forward_tcp(8787, 8788)
        shell.mkdirs(PurePosixPath("/data/run"))
        shell.push(Path("local.jar"), PurePosixPath("/data/run/local.jar"))

        assert shell.commands == [
            ["forward", "tcp:8787", "tcp:8788"],
            ["shell", "mkdir", "-p", "/data/run"],
            ["push", "local.jar", "/data/run/local.jar"],
        ]

    def test_ls_missing_directory(self):
        shell = RecordingDeviceShell(listings=[["ls: /nope: No such file or directory"]])
        with pytest.raises(FileNotFoundError):
            shell.ls(PurePosixPath("/nope"))

    def test_wait_for_non_empty_directory_polls(self):
        shell = RecordingDeviceShell(listings=[[], [], ["system"]], poll_interval=0.01)
        shell.wait_for_non_empty_directory(PurePosixPath("/"), timeout=5)
        assert len(shell.commands) == 3

    def test_wait_for_non_empty_directory_times_out(self):
        shell = RecordingDeviceShell(poll_interval=0.01)
        with pytest.raises(DeviceTimeoutError):
            shell.wait_for_non_empty_directory(PurePosixPath("/"), timeout=0.05)
