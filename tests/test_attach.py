import signal

import pytest

from cgroup import AttachError, CleanupCoordinator, ParameterError
from runner import Attacher
from runner import attach as attach_module

PROCESSES = {
    # pid: (comm, ppid)
    1: ("systemd", 0),
    100: ("bash", 1),
    200: ("make", 100),
    300: ("cc1 (x) y", 200),
    301: ("as", 200),
    400: ("sshd", 1),
}


@pytest.fixture
def proc_root(tmp_path):
    root = tmp_path / "proc"
    root.mkdir()
    for pid, (comm, ppid) in PROCESSES.items():
        (root / str(pid)).mkdir()
        (root / str(pid) / "stat").write_text(
            f"{pid} ({comm}) S {ppid} {pid} {pid} 0 -1 4194560 100 0 0 0\n"
        )
    (root / "self").mkdir()
    (root / "cgroups").write_text("")
    # 扫描时已经退出的进程
    (root / "500").mkdir()
    return root


@pytest.fixture
def attacher(fake_cgroup, proc_root):
    params = {"cpu": {}, "cpuset": {}}
    fake_cgroup.manager.create("volatile", params)
    coordinator = CleanupCoordinator(lambda: None)
    attacher = Attacher(fake_cgroup.manager, coordinator, str(proc_root), interval=0)
    task_files = fake_cgroup.manager.task_files("volatile", params)
    return attacher, params, task_files


def test_parent_map(attacher):
    attacher, _, _ = attacher
    parents = attacher.parent_map()
    assert parents == {pid: ppid for pid, (_, ppid) in PROCESSES.items()}


def joined_pids(path):
    return [int(line) for line in path.read_text().split()]


def test_join_single_process(attacher, fake_cgroup):
    attacher, _, task_files = attacher
    assert attacher.join(task_files, 100) == [100]
    # 子进程 200 不会被加入
    assert joined_pids(fake_cgroup.cpu / "volatile" / "tasks") == [100]
    assert joined_pids(fake_cgroup.cpuset / "volatile" / "tasks") == [100]


def test_join_recursive(attacher, fake_cgroup):
    attacher, _, task_files = attacher
    assert attacher.join(task_files, 100, recursive=True) == [100, 200, 300, 301]
    for mount in (fake_cgroup.cpu, fake_cgroup.cpuset):
        assert joined_pids(mount / "volatile" / "tasks") == [100, 200, 300, 301]


def test_join_recursive_child(attacher, fake_cgroup):
    attacher, _, task_files = attacher
    assert attacher.join(task_files, 200, recursive=True) == [200, 300, 301]
    assert 100 not in joined_pids(fake_cgroup.cpu / "volatile" / "tasks")


@pytest.mark.parametrize("pid", [0, -1])
def test_join_rejects_invalid_pid(attacher, fake_cgroup, pid):
    attacher, _, task_files = attacher
    with pytest.raises(ParameterError, match="invalid pid"):
        attacher.join(task_files, pid)
    assert not (fake_cgroup.cpu / "volatile" / "tasks").exists()


def test_join_recursive_leaf(attacher):
    attacher, _, task_files = attacher
    assert attacher.join(task_files, 400, recursive=True) == [400]


def test_join_failure(attacher, tmp_path):
    attacher, _, _ = attacher
    with pytest.raises(AttachError, match="can't write pid 100"):
        attacher.join([str(tmp_path / "missing" / "tasks")], 100)


def test_malformed_stat(attacher, proc_root):
    attacher, _, _ = attacher
    (proc_root / "600").mkdir()
    (proc_root / "600" / "stat").write_text("600 (broken")
    with pytest.raises(AttachError, match="malformed"):
        attacher.parent_map()


def test_wait_polls_until_gone(attacher, monkeypatch):
    attacher, _, _ = attacher
    answers = iter([True, True, False])
    probes = []

    def pid_exists(pid):
        probes.append(pid)
        return next(answers)

    monkeypatch.setattr(attach_module, "pid_exists", pid_exists)
    attacher.wait(100)
    assert probes == [100, 100, 100]


def test_wait_stops_on_signal(attacher, monkeypatch):
    attacher, _, _ = attacher
    monkeypatch.setattr(attach_module, "pid_exists", lambda pid: True)
    attacher.coordinator.state.interrupted = signal.SIGINT
    attacher.wait(100)


def test_attach(attacher, fake_cgroup, monkeypatch, capsys):
    attacher, params, _ = attacher
    monkeypatch.setattr(attach_module, "pid_exists", lambda pid: False)
    assert attacher.attach("volatile", params, 200) == 0
    assert attacher.coordinator.state.started
    assert joined_pids(fake_cgroup.cpu / "volatile" / "tasks") == [200]
    assert capsys.readouterr().err.strip() == "volatile"
