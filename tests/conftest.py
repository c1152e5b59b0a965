import signal
from types import SimpleNamespace

import pytest

from cgroup import CgroupManager, SubsystemMounts
from utility import CLEANUP_SIGNALS

PROC_CGROUPS = """\
#subsys_name\thierarchy\tnum_cgroups\tenabled
cpuset\t2\t1\t1
cpu\t3\t1\t1
cpuacct\t3\t1\t1
memory\t4\t1\t1
blkio\t5\t1\t1
"""


@pytest.fixture
def fake_cgroup(tmp_path):
    """A cgroup v1 layout made of plain directories: cpuset and cpu,cpuacct
    are mounted, memory and blkio are not."""
    root = tmp_path / "sys-fs-cgroup"
    cpuset = root / "cpuset"
    cpu = root / "cpu,cpuacct"
    cpuset.mkdir(parents=True)
    cpu.mkdir()
    (cpuset / "cpuset.cpus").write_text("0-3")
    (cpuset / "cpuset.mems").write_text("0")

    cgroups_path = tmp_path / "cgroups"
    cgroups_path.write_text(PROC_CGROUPS)
    mounts_path = tmp_path / "mounts"
    mounts_path.write_text(
        "proc /proc proc rw,nosuid,nodev,noexec,relatime 0 0\n"
        "tmpfs /sys/fs/cgroup tmpfs ro,nosuid,nodev,noexec,mode=755 0 0\n"
        f"cgroup {cpuset} cgroup rw,nosuid,nodev,noexec,relatime,cpuset 0 0\n"
        f"cgroup {cpu} cgroup rw,nosuid,nodev,noexec,relatime,cpu,cpuacct 0 0\n"
        "cgroup2 /sys/fs/cgroup/unified cgroup2 rw,nosuid,nodev,memory 0 0\n"
    )

    mounts = SubsystemMounts.resolve(str(cgroups_path), str(mounts_path))
    return SimpleNamespace(
        root=root,
        cpuset=cpuset,
        cpu=cpu,
        cgroups_path=cgroups_path,
        mounts_path=mounts_path,
        mounts=mounts,
        manager=CgroupManager(mounts),
    )


@pytest.fixture
def restore_signals():
    saved = {signum: signal.getsignal(signum) for signum in CLEANUP_SIGNALS}
    saved[signal.SIGUSR1] = signal.getsignal(signal.SIGUSR1)
    yield
    for signum, handler in saved.items():
        signal.signal(signum, handler)
