"""jsonpat 解码器实现.

该模块提供按路由表分派 JSON 键的 `PatternDecoder`,
以及按字段路径读写模型实例的 `ModelSink`.
"""

import json
from collections.abc import Mapping, MutableMapping
from typing import Any

from pydantic import BaseModel, TypeAdapter, ValidationError

from .analyzer import DynamicField, FieldPath, RoutingTable
from .config import Config
from .exceptions import DecodeError, FieldDecodeError
from .log import logger
from .rule import matches


class ModelSink:
    """按字段路径读写 pydantic 模型实例.

    路径中除最后一级外的索引都指向被平铺的内嵌字段, 写入时缺失的内嵌实例
    由 `model_construct()` 创建.

    值在写入前已由字段解码器完成验证 (约束、验证器), 因此直接写入实例字典,
    不再经过 `__setattr__` 的赋值校验.
    """

    __slots__ = ("_root", "_table")

    def __init__(self, root: BaseModel, table: RoutingTable):
        self._root = root
        self._table = table

    @property
    def root(self) -> BaseModel:
        """写入目标."""
        return self._root

    def get(self, path: FieldPath) -> Any:
        """读取字段当前值, 字段或其所在的内嵌结构体不存在时返回 None."""
        parent, name = self._resolve(path, create=False)
        if parent is None:
            return None
        return getattr(parent, name, None)

    def set(self, path: FieldPath, value: Any) -> None:
        """写入字段值, 按需创建路径上缺失的内嵌结构体."""
        parent, name = self._resolve(path, create=True)
        self._assign(parent, name, value)

    def reachable(self, path: FieldPath) -> bool:
        """字段所在的内嵌结构体是否都已存在."""
        return self._resolve(path, create=False)[0] is not None

    def missing_fields(self) -> list[tuple[str, ...]]:
        """返回尚未赋值的必填字段 (按字段名的位置), 不存在的可选内嵌结构体不展开."""
        missing: list[tuple[str, ...]] = []
        self._collect_missing(self._root, self._table.model, (), (), missing)
        return missing

    def _collect_missing(
        self,
        obj: BaseModel,
        model_cls: type[BaseModel],
        prefix: FieldPath,
        loc: tuple[str, ...],
        missing: list[tuple[str, ...]],
    ) -> None:
        for index, (name, info) in enumerate(model_cls.model_fields.items()):
            path = (*prefix, index)
            if name not in obj.__dict__:
                if info.is_required():
                    missing.append((*loc, name))
                continue

            embedded = self._table.embedded.get(path)
            child = obj.__dict__[name]
            if embedded is not None and child is not None:
                self._collect_missing(child, embedded, path, (*loc, name), missing)

    def _resolve(self, path: FieldPath, create: bool) -> tuple[Any, str]:
        names = self._table.field_names
        obj: Any = self._root
        model_cls = self._table.model
        for depth in range(len(path) - 1):
            name = names[model_cls][path[depth]]
            model_cls = self._table.embedded[path[: depth + 1]]
            child = getattr(obj, name, None)
            if child is None and create:
                # 内嵌结构体缺失时创建空实例 (不做校验, 字段按默认值填充)
                self._assign(obj, name, model_cls.model_construct())
                child = getattr(obj, name)
            obj = child
            if obj is None:
                break
        return obj, names[model_cls][path[-1]]

    @staticmethod
    def _assign(obj: BaseModel, name: str, value: Any) -> None:
        obj.__dict__[name] = value
        obj.__pydantic_fields_set__.add(name)


class PatternDecoder:
    """基于路由表的解码器.

    每次 `decode` 调用相互独立, 解码器本身不保存跨调用状态.
    """

    __slots__ = ("_config", "_table")

    _table: RoutingTable
    _config: Config

    def __init__(self, table: RoutingTable, config: Config | None = None):
        self._table = table
        self._config = config if config is not None else Config()

    def decode(
        self,
        raw: Mapping[str, Any],
        sink: ModelSink,
        suppress_log: bool = False,
    ) -> None:
        """将已解析的 JSON 对象按路由表写入 sink.

        键按字典序升序处理, 这是标量字段 "首个命中者胜出" 的唯一确定性来源.

        Args:
            raw: JSON 键 -> 原始值 (`json.loads` 的结果).
            sink: 写入目标.
            suppress_log: 是否抑制日志.

        Raises:
            FieldDecodeError: 某个键的值无法转换为目标字段类型. 已写入的字段不回滚.
        """
        table = self._table
        if not suppress_log:
            logger.debug(
                "[PatternDecoder] 开始解码 %s (%d 个键)",
                table.model.__name__,
                len(raw),
            )

        try:
            if self._config.eager_maps:
                for dyn in table.dynamic_map_fields:
                    self._ensure_map(sink, dyn)

            filled: set[FieldPath] = set()
            # Map 字段路径 -> 最后一个写入的键
            touched: dict[FieldPath, str] = {}
            dropped = 0

            for key in sorted(raw):
                value = raw[key]

                known = table.known_fields.get(key)
                if known is not None:
                    decoded = self._decode_value(key, value, known.adapter, known.path)
                    sink.set(known.path, decoded)
                    continue

                routed = False
                for dyn in table.dynamic_map_fields:
                    if not matches(key, dyn.rule):
                        continue
                    decoded = self._decode_value(key, value, dyn.adapter, dyn.path)
                    self._ensure_map(sink, dyn)[key] = decoded
                    touched[dyn.path] = key
                    routed = True

                for dyn in table.dynamic_scalar_fields:
                    if dyn.path in filled or not matches(key, dyn.rule):
                        continue
                    decoded = self._decode_value(key, value, dyn.adapter, dyn.path)
                    sink.set(dyn.path, decoded)
                    filled.add(dyn.path)
                    routed = True
                    # 每个键最多填充一个标量字段
                    break

                if not routed:
                    dropped += 1
                    if not suppress_log:
                        logger.debug("[PatternDecoder] 跳过未匹配的键 %r", key)

            for dyn in table.dynamic_map_fields:
                if dyn.path in touched:
                    if dyn.map_adapter is not None:
                        self._validate_map(
                            sink, dyn, dyn.map_adapter, touched[dyn.path]
                        )
                    continue
                # 无命中的非 Optional Map 仍需可见 (None -> 空 Map), 已有的 Map 保持原样.
                # 不为此创建缺失的内嵌结构体.
                if dyn.optional or not sink.reachable(dyn.path):
                    continue
                if sink.get(dyn.path) is None:
                    sink.set(dyn.path, {})

            if not suppress_log:
                logger.debug(
                    "[PatternDecoder] 成功解码 %s (跳过 %d 个键)",
                    table.model.__name__,
                    dropped,
                )
        except Exception as e:
            if not isinstance(e, DecodeError) and not suppress_log:
                logger.error(
                    "[PatternDecoder] 解码 %s 时出错: %s",
                    table.model.__name__,
                    e,
                )
            raise

    def _field_name(self, path: FieldPath) -> str:
        model_cls = self._table.embedded.get(path[:-1], self._table.model)
        return self._table.field_names[model_cls][path[-1]]

    def _decode_value(
        self,
        key: str,
        value: Any,
        adapter: TypeAdapter[Any],
        path: FieldPath,
    ) -> Any:
        try:
            return adapter.validate_json(
                json.dumps(value),
                strict=self._config.strict,
                context=self._config.context,
            )
        except ValidationError as e:
            detail = e.errors(include_url=False)[0]["msg"]
            raise FieldDecodeError(
                f"failed to decode key {key!r}: {detail}", key=key, path=path
            ) from e

    def _validate_map(
        self,
        sink: ModelSink,
        dyn: DynamicField,
        adapter: TypeAdapter[Any],
        key: str,
    ) -> None:
        """对收集完成的 Map 执行字段上的 after 验证器, key 为最后写入该 Map 的键."""
        try:
            validated = adapter.validate_python(
                sink.get(dyn.path),
                strict=self._config.strict,
                context=self._config.context,
            )
        except ValidationError as e:
            detail = e.errors(include_url=False)[0]["msg"]
            raise FieldDecodeError(
                f"failed to validate field {self._field_name(dyn.path)!r}: {detail}",
                key=key,
                path=dyn.path,
            ) from e
        sink.set(dyn.path, validated)

    @staticmethod
    def _ensure_map(sink: ModelSink, dyn: DynamicField) -> MutableMapping[str, Any]:
        current = sink.get(dyn.path)
        if isinstance(current, MutableMapping):
            return current

        created = dict(current) if current is not None else {}
        sink.set(dyn.path, created)
        return created
