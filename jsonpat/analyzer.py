"""结构体分析器.

将模型类声明的字段集合转换为不可变的路由表 (`RoutingTable`).
分析只依赖模型类本身, 结果由 `cache` 模块按类缓存.
"""

import types as stdlib_types
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, TypeAlias, Union, get_args, get_origin

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    PlainValidator,
    PydanticUndefinedAnnotation,
    PydanticUserError,
    TypeAdapter,
    WrapValidator,
)
from pydantic.fields import FieldInfo

from .exceptions import AnalysisError, RuleSyntaxError
from .log import logger
from .rule import Rule, parse_rule
from .struct import EMBED_KEY, IGNORE_NAME, NAME_KEY, PATTERN_KEY, Pattern

FieldPath: TypeAlias = tuple[int, ...]

_MAPPING_ORIGINS = (dict, Mapping, MutableMapping)

# `@field_validator` 的 mode -> 对应的 Annotated 验证器
_VALIDATOR_TYPES: dict[str, Any] = {
    "before": BeforeValidator,
    "after": AfterValidator,
    "plain": PlainValidator,
    "wrap": WrapValidator,
}


class FieldKind(Enum):
    """动态字段的目标类型."""

    MAP = "map"
    SCALAR = "scalar"


@dataclass(frozen=True)
class KnownField:
    """按精确键名绑定的字段."""

    path: FieldPath
    annotation: Any
    adapter: TypeAdapter[Any] = field(compare=False, repr=False)


@dataclass(frozen=True)
class DynamicField:
    """按匹配规则绑定的字段.

    Attributes:
        path: 字段路径.
        rule: 匹配规则.
        kind: `MAP` 收集所有命中的键; `SCALAR` 只接收第一个命中的键.
        annotation: `MAP` 为值类型, `SCALAR` 为字段类型.
        optional: 字段是否接受 `None` (决定无命中时是否创建空 Map).
        map_adapter: `MAP` 字段上的 after 验证器, 在路由结束后作用于整个 Map.
    """

    path: FieldPath
    rule: Rule
    kind: FieldKind
    annotation: Any
    adapter: TypeAdapter[Any] = field(compare=False, repr=False)
    optional: bool = False
    map_adapter: TypeAdapter[Any] | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class RoutingTable:
    """一个模型类的完整解码计划 (构建后只读).

    Attributes:
        model: 模型类.
        known_fields: 精确 JSON 键 -> 字段.
        dynamic_map_fields: Map 类型的动态字段, 按声明顺序.
        dynamic_scalar_fields: 标量类型的动态字段, 按声明顺序.
        embedded: 被平铺的内嵌字段路径 -> 其模型类.
        field_names: 模型类 (含内嵌模型) -> 按声明顺序的字段名, 字段路径中的索引指向此元组.
    """

    model: type[BaseModel]
    known_fields: Mapping[str, KnownField]
    dynamic_map_fields: tuple[DynamicField, ...]
    dynamic_scalar_fields: tuple[DynamicField, ...]
    embedded: Mapping[FieldPath, type[BaseModel]]
    field_names: Mapping[type[BaseModel], tuple[str, ...]] = field(
        default_factory=dict, repr=False
    )


def _unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    origin = get_origin(annotation)
    if origin is Union or origin is stdlib_types.UnionType:
        args = get_args(annotation)
        non_none = [a for a in args if a is not type(None)]
        if len(non_none) == 1 and len(args) > 1:
            return non_none[0], True
    return annotation, False


def _map_value_type(annotation: Any) -> tuple[bool, Any]:
    """判断是否为字符串键的 Map, 返回 (是否 Map, 值类型)."""
    if annotation is dict:
        return True, Any

    origin = get_origin(annotation)
    is_mapping = origin in _MAPPING_ORIGINS or (
        isinstance(origin, type) and issubclass(origin, dict)
    )
    if not is_mapping:
        return False, None

    args = get_args(annotation)
    if not args:
        return True, Any
    if args[0] is not str:
        # 非字符串键的 Map 当作标量整体解码
        return False, None
    return True, args[1]


def _field_validators(model_cls: type[BaseModel], name: str) -> list[Any]:
    """把作用于该字段的 `@field_validator` 转换为 Annotated 验证器.

    顺序与 pydantic 构建字段 schema 时一致: 排在字段自身元数据之后.
    """
    validators = []
    for decorator in model_cls.__pydantic_decorators__.field_validators.values():
        fields = decorator.info.fields
        if "*" in fields or name in fields:
            validators.append(_VALIDATOR_TYPES[decorator.info.mode](decorator.func))
    return validators


def _field_annotation(info: FieldInfo, validators: list[Any]) -> Any:
    """还原字段注解: 保留约束 (如 `Field(gt=0)`) 和验证器, 去掉 Pattern 标记."""
    metadata = [m for m in info.metadata if not isinstance(m, Pattern)]
    metadata.extend(validators)
    if metadata:
        return Annotated[(info.annotation, *metadata)]
    return info.annotation


def _ensure_complete(model_cls: type[BaseModel], loc: list[str | int]) -> None:
    if model_cls.__pydantic_complete__:
        return
    try:
        model_cls.model_rebuild()
    except PydanticUndefinedAnnotation as e:
        raise AnalysisError(
            f"model {model_cls.__name__} is not fully defined: {e}", loc=loc
        ) from e


def _make_adapter(annotation: Any, loc: list[str | int]) -> TypeAdapter[Any]:
    try:
        return TypeAdapter(annotation)
    except PydanticUserError as e:
        raise AnalysisError(f"unsupported field type {annotation!r}: {e}", loc=loc) from e


class _TableBuilder:
    """深度优先遍历字段, 累积路由表内容."""

    def __init__(self, model_cls: type[BaseModel]):
        self.model = model_cls
        self.known: dict[str, KnownField] = {}
        self.maps: list[DynamicField] = []
        self.scalars: list[DynamicField] = []
        self.embedded: dict[FieldPath, type[BaseModel]] = {}
        self.names: dict[type[BaseModel], tuple[str, ...]] = {}

    def walk(
        self,
        model_cls: type[BaseModel],
        prefix: FieldPath,
        stack: tuple[type[BaseModel], ...],
        loc: list[str | int],
    ) -> None:
        _ensure_complete(model_cls, loc)
        self.names[model_cls] = tuple(model_cls.model_fields)

        for index, (name, info) in enumerate(model_cls.model_fields.items()):
            path = (*prefix, index)
            field_loc = [*loc, name]
            extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
            tag = self._pattern_tag(info, extra, field_loc)

            if extra.get(EMBED_KEY):
                self._add_embedded(info, path, tag, stack, field_loc)
                continue

            validators = _field_validators(model_cls, name)

            if tag is not None:
                self._add_dynamic(info, path, tag, validators, field_loc)
                continue

            json_name = self._json_name(name, info, extra)
            if json_name is None:
                continue

            annotation = _field_annotation(info, validators)
            self.known[json_name] = KnownField(
                path, annotation, _make_adapter(annotation, field_loc)
            )

    def _add_embedded(
        self,
        info: FieldInfo,
        path: FieldPath,
        tag: str | None,
        stack: tuple[type[BaseModel], ...],
        loc: list[str | int],
    ) -> None:
        if tag is not None:
            raise AnalysisError("embedded field cannot carry a pattern tag", loc=loc)

        inner, _ = _unwrap_optional(info.annotation)
        if not (isinstance(inner, type) and issubclass(inner, BaseModel)):
            raise AnalysisError(
                f"embedded field must be a model, got {info.annotation!r}", loc=loc
            )
        if inner in stack:
            raise AnalysisError(f"model {inner.__name__} embeds itself", loc=loc)
        if inner.model_config.get("frozen"):
            raise AnalysisError(
                f"embedded model {inner.__name__} is frozen and cannot be written",
                loc=loc,
            )

        self.embedded[path] = inner
        self.walk(inner, path, (*stack, inner), loc)

    def _pattern_tag(
        self, info: FieldInfo, extra: Any, loc: list[str | int]
    ) -> str | None:
        tags: list[Any] = [m.tag for m in info.metadata if isinstance(m, Pattern)]
        if PATTERN_KEY in extra:
            tags.append(extra[PATTERN_KEY])

        if not tags:
            return None
        if len(tags) > 1:
            raise AnalysisError("field has more than one pattern tag", loc=loc)
        if not isinstance(tags[0], str):
            raise AnalysisError(
                f"pattern tag must be a string, got {type(tags[0]).__name__}", loc=loc
            )
        return tags[0]

    @staticmethod
    def _json_name(name: str, info: FieldInfo, extra: Any) -> str | None:
        if info.exclude is True:
            return None

        override = extra.get(NAME_KEY)
        if override is None and isinstance(info.validation_alias, str):
            override = info.validation_alias
        if override is None and info.alias:
            override = info.alias

        if override == IGNORE_NAME:
            return None
        return override or name

    def _add_dynamic(
        self,
        info: FieldInfo,
        path: FieldPath,
        tag: str,
        validators: list[Any],
        loc: list[str | int],
    ) -> None:
        try:
            rule = parse_rule(tag)
        except RuleSyntaxError as e:
            raise AnalysisError(str(e), loc=loc) from e

        annotation, optional = _unwrap_optional(info.annotation)
        is_map, value_type = _map_value_type(annotation)

        if is_map:
            # Map 按键逐个写入, 只有 after 验证器能在路由结束后作用于完整的 Map
            if any(not isinstance(v, AfterValidator) for v in validators):
                raise AnalysisError(
                    "only after-mode field validators are supported on pattern map fields",
                    loc=loc,
                )
            map_adapter = None
            if validators:
                map_adapter = _make_adapter(Annotated[(Any, *validators)], loc)

            self.maps.append(
                DynamicField(
                    path,
                    rule,
                    FieldKind.MAP,
                    value_type,
                    _make_adapter(value_type, loc),
                    optional,
                    map_adapter,
                )
            )
            return

        annotation = _field_annotation(info, validators)
        self.scalars.append(
            DynamicField(
                path,
                rule,
                FieldKind.SCALAR,
                annotation,
                _make_adapter(annotation, loc),
                optional,
            )
        )

    def build(self) -> RoutingTable:
        return RoutingTable(
            model=self.model,
            known_fields=stdlib_types.MappingProxyType(self.known),
            dynamic_map_fields=tuple(self.maps),
            dynamic_scalar_fields=tuple(self.scalars),
            embedded=stdlib_types.MappingProxyType(self.embedded),
            field_names=stdlib_types.MappingProxyType(self.names),
        )


def analyze(model_cls: Any) -> RoutingTable:
    """分析模型类, 生成路由表.

    遍历规则:
        1. 按声明顺序深度优先遍历 `model_fields` (私有属性不在其中).
        2. `PatField(embed=True)` 字段递归展开, 其字段以该字段索引为前缀并入同一张表.
           被内嵌的模型不能是 frozen.
        3. 带模式标签的字段: `dict[str, T]` 注册为 Map 动态字段, 其余为标量动态字段.
        4. 否则 `exclude=True` 或名称为 `"-"` 的字段被忽略.
        5. 否则使用 `PatField(name=...)` / pydantic `alias`, 最后回退到字段名.

    字段的约束、Annotated 验证器和 `@field_validator` 都编入该字段的解码器,
    每个值只被验证一次.

    Args:
        model_cls: pydantic 模型类.

    Returns:
        RoutingTable: 新构建的路由表 (不经过缓存).

    Raises:
        AnalysisError: 标签语法错误、正则无效或不支持的字段组合.
    """
    if not (isinstance(model_cls, type) and issubclass(model_cls, BaseModel)):
        raise AnalysisError(
            f"expected a pydantic model class, got {model_cls!r}"
        )

    builder = _TableBuilder(model_cls)
    builder.walk(model_cls, (), (model_cls,), [model_cls.__name__])
    table = builder.build()

    logger.debug(
        "[analyze] %s: %d 个已知字段, %d 个动态 Map, %d 个动态标量",
        model_cls.__name__,
        len(table.known_fields),
        len(table.dynamic_map_fields),
        len(table.dynamic_scalar_fields),
    )
    return table
