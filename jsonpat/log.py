"""jsonpat 日志记录器."""

import logging

logger = logging.getLogger("jsonpat")


def get_snippet(text: str | bytes | bytearray, pos: int, window: int = 16) -> str:
    """获取指定位置周围输入的文本片段."""
    if isinstance(text, (bytes, bytearray)):
        text = bytes(text).decode("utf-8", errors="replace")

    start = max(0, pos - window)
    end = min(len(text), pos + window)
    chunk = text[start:end]

    # 换行符转义, 保证片段单行显示
    chunk = chunk.replace("\r", "\\r").replace("\n", "\\n")

    return f"位置 {pos} 的上下文 (显示 {start}-{end}):\n{chunk}"
