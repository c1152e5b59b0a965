import logging
from types import MappingProxyType

from utility import PROC_CGROUPS, PROC_MOUNTS

from .errors import DiscoveryError, SubsystemNotMounted

logger = logging.getLogger(__name__)


class SubsystemMounts:
    """Subsystem name -> mount point, read once from the kernel listings.

    A subsystem the kernel knows about but that has no cgroup mount keeps an
    empty path and is treated as not mounted.
    """

    def __init__(self, mount_points) -> None:
        self._mount_points = MappingProxyType(dict(mount_points))

    @classmethod
    def resolve(cls, cgroups_path=PROC_CGROUPS, mounts_path=PROC_MOUNTS):
        mount_points = {}
        try:
            with open(cgroups_path) as f:
                # 第一行是表头: #subsys_name hierarchy num_cgroups enabled
                next(f, None)
                for line in f:
                    fields = line.split()
                    if fields:
                        mount_points[fields[0]] = ""
        except OSError as e:
            raise DiscoveryError(f"can't read {cgroups_path}: {e}") from e

        try:
            with open(mounts_path) as f:
                for line in f:
                    # cgroup /sys/fs/cgroup/cpuset cgroup rw,nosuid,cpuset 0 0
                    fields = line.split()
                    if len(fields) < 4 or fields[2] != "cgroup":
                        continue
                    for option in fields[3].split(","):
                        if option in mount_points:
                            mount_points[option] = fields[1]
        except OSError as e:
            raise DiscoveryError(f"can't read {mounts_path}: {e}") from e

        for name, path in mount_points.items():
            logger.debug("subsystem %s mounted at %r", name, path)
        return cls(mount_points)

    def __contains__(self, subsystem):
        return bool(self._mount_points.get(subsystem))

    def __iter__(self):
        return iter(self._mount_points)

    def items(self):
        return self._mount_points.items()

    def mount_point(self, subsystem):
        path = self._mount_points.get(subsystem)
        if not path:
            raise SubsystemNotMounted(subsystem)
        return path
