from __future__ import annotations


class DatabaseError(Exception):
    """
    存储层统一异常：包装底层 sqlite3 错误并附带可读信息。

    "重复邮箱" 和 "记录不存在" 不走这里，由仓储方法返回 False。
    """

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message
