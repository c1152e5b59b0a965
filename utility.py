import os
import signal
import sys

PROC_CGROUPS = "/proc/cgroups"
PROC_MOUNTS = "/proc/mounts"
PROC_ROOT = "/proc"

# 与 cgroup 目录同名的 tasks 文件, 写入 pid 即加入该 cgroup
TASKS_FILE = "tasks"
HIERARCHY_MODE = 0o750
POLL_INTERVAL = 1.0

# 子命令名, 自我重启时用来区分 helper 和正常调用
INIT_COMMAND = "init"

# 新建 cgroup 后必须先从父 cgroup 继承这些参数, 否则其他参数写不进去
MANDATORY_PARAMETERS = {
    "cpuset": ["cpus", "mems"],
}

CLEANUP_SIGNALS = (signal.SIGINT, signal.SIGHUP, signal.SIGTERM)


def self_command():
    # 解释器 + 脚本; python -u 之类的解释器参数不需要带上
    # python -m main 时 argv[0] 已经是 main.py 的完整路径
    return [sys.executable, os.path.abspath(sys.argv[0])]


def exit_status(returncode):
    if returncode < 0:
        return 128 - returncode
    return returncode


def pid_exists(pid):
    # kill(0 或负数) 针对的是进程组
    if pid <= 0:
        raise ValueError(f"invalid pid: {pid}")
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # 进程存在, 只是不属于当前用户
        return True
    return True
