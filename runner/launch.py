import logging
import os
import shutil
import subprocess
import sys

from cgroup.errors import LaunchError
from utility import INIT_COMMAND, exit_status, self_command

logger = logging.getLogger(__name__)


class Launcher:
    """Runs a program that joins the hierarchy before its first instruction.

    The tool restarts itself with the ``init`` subcommand. That helper process
    writes its own pid into every tasks file and then execs the program, so
    the program keeps the helper's pid and is inside the cgroup from the start.
    """

    def __init__(self, manager, coordinator, command_prefix=None) -> None:
        self.manager = manager
        self.coordinator = coordinator
        self.command_prefix = command_prefix

    def helper_command(self, task_files, argv):
        prefix = self.command_prefix
        if prefix is None:
            prefix = self_command()
        cmd = list(prefix)
        cmd.append(INIT_COMMAND)
        for path in task_files:
            cmd.extend(["--task-file", path])
        cmd.append("--")  # 用于区分命令
        cmd.extend(argv)
        return cmd

    def launch(self, name, params, argv):
        cmd = self.helper_command(self.manager.task_files(name, params), argv)
        logger.debug("starting helper: %s", cmd)
        try:
            proc = subprocess.Popen(cmd)
        except OSError as e:
            raise LaunchError(f"can't start '{cmd[0]}': {e}") from e

        # 之后收到的信号交给子进程处理, 子进程退出后再正常清理
        self.coordinator.mark_started()
        print(name, file=sys.stderr, flush=True)

        returncode = proc.wait()
        logger.debug("child %d exited with %d", proc.pid, returncode)
        return exit_status(returncode)


def join_and_exec(task_files, argv):
    """Body of the ``init`` helper. Never returns on success."""
    pid = str(os.getpid())
    for path in task_files:
        try:
            with open(path, "w") as f:
                f.write(pid)
        except OSError as e:
            raise LaunchError(f"can't write pid to {path}: {e}") from e

    cmd_path = shutil.which(argv[0])
    if cmd_path is None:
        raise LaunchError(f"failed to lookup path of '{argv[0]}'")
    try:
        os.execve(cmd_path, argv, os.environ)
    except OSError as e:
        raise LaunchError(f"can't exec '{argv[0]}': {e}") from e
