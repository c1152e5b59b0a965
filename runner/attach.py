import errno
import logging
import os
import sys
import time

from cgroup.errors import AttachError, ParameterError
from utility import POLL_INTERVAL, PROC_ROOT, pid_exists

logger = logging.getLogger(__name__)


class Attacher:
    """Moves a running process, and optionally its descendants, into the
    hierarchy, then waits for that process to exit.

    The descendant walk is a single snapshot of the process table: children
    forked after the scan are not picked up.
    """

    def __init__(
        self, manager, coordinator, proc_root=PROC_ROOT, interval=POLL_INTERVAL
    ) -> None:
        self.manager = manager
        self.coordinator = coordinator
        self.proc_root = proc_root
        self.interval = interval

    def attach(self, name, params, pid, recursive=False):
        task_files = self.manager.task_files(name, params)
        self.join(task_files, pid, recursive)
        self.coordinator.mark_started()
        print(name, file=sys.stderr, flush=True)
        self.wait(pid)
        return 0

    def join(self, task_files, pid, recursive=False):
        """Write pid (and its descendants when recursive) into every tasks
        file. Returns the pids that were joined."""
        if pid <= 0:
            raise ParameterError(f"invalid pid: {pid}")
        self._write_pid(task_files, pid)
        joined = [pid]
        if not recursive:
            return joined
        for child in self.descendants(pid):
            try:
                self._write_pid(task_files, child)
            except AttachError as e:
                # 扫描之后已经退出的子进程
                if e.__cause__ is not None and e.__cause__.errno == errno.ESRCH:
                    logger.debug("process %d exited before joining", child)
                    continue
                raise
            joined.append(child)
        return joined

    def descendants(self, pid):
        parents = sorted(self.parent_map().items())
        found = []
        collected = {pid}
        queue = [pid]
        while queue:
            current = queue.pop(0)
            for child, parent in parents:
                if parent == current and child not in collected:
                    collected.add(child)
                    found.append(child)
                    queue.append(child)
        return found

    def parent_map(self):
        try:
            entries = os.listdir(self.proc_root)
        except OSError as e:
            raise AttachError(f"can't scan {self.proc_root}: {e}") from e
        parents = {}
        for entry in entries:
            if not entry.isdigit():
                continue
            ppid = self.read_ppid(entry)
            if ppid is not None:
                parents[int(entry)] = ppid
        return parents

    def read_ppid(self, pid):
        path = os.path.join(self.proc_root, str(pid), "stat")
        try:
            with open(path) as f:
                data = f.read()
        except (FileNotFoundError, ProcessLookupError):
            # 进程在扫描过程中退出
            return None
        except OSError as e:
            raise AttachError(f"can't read {path}: {e}") from e
        # 1234 (comm) S 1 ... , comm 里可能有空格和括号
        try:
            return int(data.rsplit(")", 1)[1].split()[1])
        except (IndexError, ValueError) as e:
            raise AttachError(f"malformed {path}: {data!r}") from e

    def wait(self, pid):
        # 不是自己的子进程, 无法 waitpid, 只能轮询
        while pid_exists(pid):
            if self.coordinator.state.interrupted is not None:
                logger.debug("stop waiting for %d on signal", pid)
                return
            time.sleep(self.interval)
        logger.debug("process %d is gone", pid)

    @staticmethod
    def _write_pid(task_files, pid):
        for path in task_files:
            try:
                # 每次写入都是一次独立的加入
                with open(path, "a") as f:
                    f.write(f"{pid}\n")
            except OSError as e:
                raise AttachError(f"can't write pid {pid} to {path}: {e}") from e
            logger.debug("joined %d via %s", pid, path)
