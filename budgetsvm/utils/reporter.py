#!filepath: budgetsvm/utils/reporter.py
from __future__ import annotations

from typing import Callable, NoReturn, Optional

from budgetsvm.utils import logger as _logger
from budgetsvm.utils.errors import BudgetedSVMError


class Reporter:
    """
    Warning / error sink（注入式，替代全局 print 回调）

    - info()    : 过程信息，verbose=False 时静默
    - warning() : 非致命问题（未见过的测试标签、越界读取等），始终输出
    - fatal()   : 唯一的致命出口：先记录日志，再调用宿主 hook，最后 raise

    宿主环境（CLI / notebook / 服务）通过 on_message / on_fatal 替换行为，
    例如 CLI 把 on_fatal 设为“打印并 exit(1)”。
    """

    def __init__(
        self,
        *,
        verbose: bool = True,
        on_message: Optional[Callable[[str], None]] = None,
        on_fatal: Optional[Callable[[BudgetedSVMError], None]] = None,
    ):
        self.verbose = verbose
        self.on_message = on_message
        self.on_fatal = on_fatal

    def info(self, msg: str) -> None:
        if not self.verbose:
            return
        if self.on_message is not None:
            self.on_message(msg)
        else:
            _logger.logs.info(msg)

    def warning(self, msg: str) -> None:
        if self.on_message is not None:
            self.on_message(msg)
        else:
            _logger.logs.warning(msg)

    def fatal(self, error: BudgetedSVMError) -> NoReturn:
        _logger.logs.error(f"[{type(error).__name__}] {error}")
        if self.on_fatal is not None:
            self.on_fatal(error)
        raise error


# 默认 reporter：日志走 loguru，致命错误直接 raise
DEFAULT_REPORTER = Reporter()


def resolve_reporter(reporter: Optional[Reporter]) -> Reporter:
    return reporter if reporter is not None else DEFAULT_REPORTER
