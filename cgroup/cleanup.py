import logging
import os
import signal

from utility import CLEANUP_SIGNALS

logger = logging.getLogger(__name__)


class RunState:
    """Shared between the main flow and the signal handler.

    ``started`` is set once a target exists and never cleared. ``interrupted``
    holds the number of the last cleanup signal received, if any.
    """

    def __init__(self) -> None:
        self.started = False
        self.interrupted = None
        self.torn_down = False


class CleanupCoordinator:
    """Removes the hierarchy exactly once: on normal exit, or on a signal
    that arrives before any target has started."""

    def __init__(self, teardown, state=None, signals=CLEANUP_SIGNALS) -> None:
        self._teardown = teardown
        self.state = state if state is not None else RunState()
        self.signals = signals

    def install(self):
        for signum in self.signals:
            signal.signal(signum, self.handle)

    def mark_started(self):
        self.state.started = True

    def teardown(self):
        if self.state.torn_down:
            return
        self._teardown()
        self.state.torn_down = True

    def handle(self, signum, frame):
        self.state.interrupted = signum
        if self.state.started:
            # 目标进程已通过进程组收到信号, 等它退出后正常清理
            logger.debug("signal %d left to the running target", signum)
            return
        logger.debug("signal %d before start, cleaning up", signum)
        # 正常路径的清理可能正进行到一半, 这里完整再做一遍; destroy 可重复执行
        if not self.state.torn_down:
            self._teardown()
            self.state.torn_down = True
        self.terminate(signum)

    @staticmethod
    def terminate(signum):
        # 恢复默认处理后重新发给自己, 以信号的退出状态结束
        signal.signal(signum, signal.SIG_DFL)
        os.kill(os.getpid(), signum)
