#!/usr/bin/env python3
import argparse
import logging
import sys

from tabulate import tabulate

from cgroup import (
    CgroupManager,
    CgrunError,
    CleanupCoordinator,
    ParameterError,
    SubsystemMounts,
    hierarchy_name,
)
from runner import Attacher, Launcher, join_and_exec
from utility import INIT_COMMAND

logger = logging.getLogger("cgrun")

parser = argparse.ArgumentParser(
    prog="cgrun",
    description="Run or attach processes in a volatile cgroup hierarchy",
)
# run, attach 和 subsystems 共用的选项
common_parser = argparse.ArgumentParser(add_help=False)
common_parser.add_argument("-v", "--verbose", action="store_true", help="debug output")

subparsers = parser.add_subparsers(dest="subcommand")
run_parser = subparsers.add_parser(
    "run",
    parents=[common_parser],
    help="Create a hierarchy, run a program inside it and remove it afterwards",
)
run_parser.add_argument(
    "--parent",
    default="/",
    help="parent hierarchy to inherit from, e.g.: --parent /batch/",
)
run_parser.add_argument(
    "args",
    nargs=argparse.REMAINDER,
    help="subsys.param=value ... [--] command [args ...], e.g.: cpu.shares=512 -- make",
)

attach_parser = subparsers.add_parser(
    "attach",
    parents=[common_parser],
    help="Create a hierarchy, move a running process into it and wait for it",
)
attach_parser.add_argument("--parent", default="/", help="parent hierarchy")
attach_parser.add_argument(
    "-r",
    "--recursive",
    action="store_true",
    help="also move every descendant of the process",
)
attach_parser.add_argument("pid", type=int, help="pid of a running process")
attach_parser.add_argument(
    "params", nargs="*", help="subsys.param=value, e.g.: cpuset.cpus=0-1"
)

init_parser = subparsers.add_parser(
    INIT_COMMAND,
    help="Join the hierarchy and exec the user's program. Do not call it outside",
)
init_parser.add_argument(
    "--task-file",
    dest="task_files",
    action="append",
    default=[],
    help="tasks file to write our own pid into",
)
init_parser.add_argument("command", nargs="+", help="program to exec")

subsystems_parser = subparsers.add_parser(
    "subsystems",
    parents=[common_parser],
    help="list cgroup subsystems and their mount points",
)


def split_parameters(tokens):
    """cpu.shares=1024 cpuset.cpus=0 -- prog arg -> parameters and ["prog", "arg"]."""
    params = {}
    rest = []
    for i, token in enumerate(tokens):
        if "=" not in token:
            rest = tokens[i + 1 :] if token == "--" else tokens[i:]
            break
        param, value = token.split("=", 1)
        # cpu.shares -> cpu(subsystem), shares
        subsystem, sep, name = param.partition(".")
        if not sep or not subsystem or not name:
            raise ParameterError(f"incorrect parameter name: '{param}'")
        params.setdefault(subsystem, {})[name] = value
    return params, rest


def run_in_hierarchy(parent, params, action):
    mounts = SubsystemMounts.resolve()
    manager = CgroupManager(mounts)
    name = hierarchy_name(parent)
    coordinator = CleanupCoordinator(lambda: manager.destroy(name, params))
    # 在创建目录之前装好信号处理, 保证中途被杀也能清理
    coordinator.install()
    try:
        manager.create(name, params)
    except CgrunError:
        # create 已经回滚了自己建的目录, 同名的已有目录不能删
        coordinator.state.torn_down = True
        raise
    try:
        return action(manager, coordinator, name)
    finally:
        coordinator.teardown()


def run(args):
    params, command = split_parameters(args.args)
    if not command:
        raise ParameterError("no command given")

    def action(manager, coordinator, name):
        return Launcher(manager, coordinator).launch(name, params, command)

    return run_in_hierarchy(args.parent, params, action)


def attach(args):
    # pid 0 在 tasks 文件里表示写入者自己
    if args.pid <= 0:
        raise ParameterError(f"invalid pid: {args.pid}")
    params, rest = split_parameters(args.params)
    if rest:
        raise ParameterError(f"unexpected argument: '{rest[0]}'")

    def action(manager, coordinator, name):
        return Attacher(manager, coordinator).attach(
            name, params, args.pid, args.recursive
        )

    return run_in_hierarchy(args.parent, params, action)


def init(args):
    join_and_exec(args.task_files, args.command)


def subsystems(args):
    mounts = SubsystemMounts.resolve()
    table = [[name, path or "-"] for name, path in sorted(mounts.items())]
    print(tabulate(table, headers=["SUBSYSTEM", "MOUNT POINT"]))
    return 0


commands = {
    "run": run,
    "attach": attach,
    INIT_COMMAND: init,
    "subsystems": subsystems,
}


def main(argv=None):
    args = parser.parse_args(argv)
    logging.basicConfig(
        format="cgrun: %(message)s",
        level=logging.DEBUG if getattr(args, "verbose", False) else logging.WARNING,
        stream=sys.stderr,
    )
    if args.subcommand is None:
        parser.print_help()
        return 1
    try:
        return commands[args.subcommand](args)
    except CgrunError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
