class CgrunError(Exception):
    """Base class for all cgrun errors."""

    @property
    def message(self):
        if self.args:
            return self.args[0]
        return str(self)


class DiscoveryError(CgrunError):
    """The kernel's cgroup or mount listing could not be read."""

    pass


class SubsystemNotMounted(CgrunError):
    def __init__(self, subsystem):
        super().__init__(f"subsystem '{subsystem}' is not mounted")
        self.subsystem = subsystem


class HierarchyCreateError(CgrunError):
    def __init__(self, path, cause):
        super().__init__(f"can't create hierarchy '{path}': {cause}")
        self.path = path
        self.cause = cause


class ParameterWriteError(CgrunError):
    def __init__(self, path, cause):
        super().__init__(f"can't write parameter '{path}': {cause}")
        self.path = path
        self.cause = cause


class ParameterError(CgrunError):
    """A command line parameter token is malformed."""

    pass


class LaunchError(CgrunError):
    pass


class AttachError(CgrunError):
    pass
