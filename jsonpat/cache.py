"""路由表缓存.

按模型类缓存 `RoutingTable`, 整个进程生命周期内有效, 不做淘汰.

读取不加锁; 首次构建使用 `dict.setdefault` 发布 (对内置 dict 是原子操作),
并发的首次请求可能重复分析, 但最终只有一张表被发布, 落败者丢弃自己的结果.
分析失败不会被缓存, 每次调用都会重新分析并抛出同样的错误.
"""

from typing import Any

from pydantic import BaseModel

from .analyzer import RoutingTable, analyze

_type_cache: dict[type[BaseModel], RoutingTable] = {}


def get_routing_table(model_cls: Any) -> RoutingTable:
    """获取模型类的路由表, 首次请求时触发分析.

    Raises:
        AnalysisError: 模型字段声明无效.
    """
    if isinstance(model_cls, type):
        table = _type_cache.get(model_cls)
        if table is not None:
            return table

    table = analyze(model_cls)
    return _type_cache.setdefault(model_cls, table)


def clear_cache() -> None:
    """清空缓存 (主要用于测试)."""
    _type_cache.clear()
