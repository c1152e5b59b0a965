import errno
import hashlib
import logging
import os
import time

from utility import HIERARCHY_MODE, MANDATORY_PARAMETERS, TASKS_FILE

from .errors import CgrunError, HierarchyCreateError, ParameterWriteError

logger = logging.getLogger(__name__)


def generate_name(now=None, pid=None):
    """Return a hex digest unique to this second and this process."""
    if now is None:
        now = time.time()
    if pid is None:
        pid = os.getpid()
    seed = f"{int(now)}:{pid}"
    return hashlib.md5(seed.encode()).hexdigest()


def hierarchy_name(parent="/", now=None, pid=None):
    # 直接拼接, 不加分隔符; 要建在 a/b 下面需传入 "a/b/"
    return parent.lstrip("/") + generate_name(now, pid)


class CgroupManager:
    """Creates and removes one volatile hierarchy across several subsystems.

    ``params`` maps a subsystem name to the parameters written into it, e.g.
    ``{"cpuset": {"cpus": "0-2", "mems": "0"}, "cpu": {"shares": "512"}}``.
    The same hierarchy name is used under every subsystem's mount point.
    """

    def __init__(self, mounts, mode=HIERARCHY_MODE) -> None:
        self.mounts = mounts
        self.mode = mode

    def get_cgroup_path(self, subsystem, name):
        return os.path.join(self.mounts.mount_point(subsystem), name)

    def task_files(self, name, params):
        paths = []
        for subsystem in params:
            path = os.path.join(self.get_cgroup_path(subsystem, name), TASKS_FILE)
            if path not in paths:
                paths.append(path)
        return paths

    def create(self, name, params):
        created = set()
        try:
            for subsystem, values in params.items():
                path = self.get_cgroup_path(subsystem, name)
                # cpu,cpuacct 这类共用挂载点的子系统只建一次目录
                if path not in created:
                    try:
                        os.mkdir(path, self.mode)
                    except OSError as e:
                        raise HierarchyCreateError(path, e) from e
                    created.add(path)
                    logger.debug("created %s", path)

                # 先从父 cgroup 继承必需参数, 内核才允许写其他参数
                for param in MANDATORY_PARAMETERS.get(subsystem, []):
                    filename = f"{subsystem}.{param}"
                    parent_file = os.path.join(os.path.dirname(path), filename)
                    try:
                        with open(parent_file) as f:
                            value = f.read()
                    except OSError as e:
                        raise ParameterWriteError(parent_file, e) from e
                    self._write(os.path.join(path, filename), value)

                for param, value in values.items():
                    self._write(os.path.join(path, f"{subsystem}.{param}"), value)
        except CgrunError:
            # 只回滚本次建出来的目录, 已存在的同名目录不是我们的
            for path in created:
                self._remove(path)
            raise

    def destroy(self, name, params):
        for subsystem in params:
            if subsystem in self.mounts:
                self._remove(self.get_cgroup_path(subsystem, name))

    @staticmethod
    def _remove(path):
        # cgroup 是特殊文件系统, 只能 rmdir 空目录, 不能递归删除
        try:
            os.rmdir(path)
        except OSError as e:
            if e.errno != errno.ENOENT:
                logger.warning("failed to cleanup '%s': %s", path, e)
            return
        logger.debug("removed %s", path)

    @staticmethod
    def _write(path, value):
        try:
            with open(path, "w") as f:
                f.write(value)
        except OSError as e:
            raise ParameterWriteError(path, e) from e
        logger.debug("wrote %r to %s", value, path)
