from .cgroup_manager import CgroupManager, generate_name, hierarchy_name
from .cleanup import CleanupCoordinator, RunState
from .errors import (
    AttachError,
    CgrunError,
    DiscoveryError,
    HierarchyCreateError,
    LaunchError,
    ParameterError,
    ParameterWriteError,
    SubsystemNotMounted,
)
from .subsystems import SubsystemMounts
