"""jsonpat API模块.

提供用于模式路由 JSON 反序列化的高级接口 `unmarshal`, `loads`, `load`.
"""

import json
from typing import IO, Any, TypeVar

from pydantic import BaseModel, ValidationError

from .cache import get_routing_table
from .config import Config
from .decoder import ModelSink, PatternDecoder
from .exceptions import InvalidTargetError, MalformedInputError
from .log import get_snippet, logger
from .options import PatOption

T = TypeVar("T", bound=BaseModel)

JsonInput = str | bytes | bytearray | memoryview

_JSON_TYPE_NAMES = {
    list: "array",
    str: "string",
    bool: "boolean",
    int: "number",
    float: "number",
}


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant {name!r}")


def _parse_object(data: JsonInput) -> dict[str, Any]:
    """将输入解析为 JSON 键 -> 原始值 的映射.

    顶层 `null` 视为空对象; 其余非对象值均为格式错误.
    """
    if isinstance(data, memoryview):
        data = bytes(data)

    try:
        raw = json.loads(data, parse_constant=_reject_constant)
    except json.JSONDecodeError as e:
        logger.debug("[loads] JSON 解析失败\n%s", get_snippet(data, e.pos))
        raise MalformedInputError(
            f"malformed JSON: {e.msg} (line {e.lineno} column {e.colno})",
            pos=e.pos,
            lineno=e.lineno,
            colno=e.colno,
        ) from e
    except RecursionError as e:
        raise MalformedInputError("malformed JSON: nesting too deep") from e
    except (TypeError, ValueError) as e:
        # 非法编码 (UnicodeDecodeError) / NaN 等常量 / 不支持的输入类型
        raise MalformedInputError(f"malformed JSON: {e}") from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        type_name = _JSON_TYPE_NAMES.get(type(raw), type(raw).__name__)
        raise MalformedInputError(f"expected a JSON object, got {type_name}")
    return raw


def _check_target(target: Any) -> None:
    if isinstance(target, type):
        raise InvalidTargetError(
            f"target must be a model instance, got class {target.__name__}; "
            f"use loads() to create a new instance"
        )
    if not isinstance(target, BaseModel):
        raise InvalidTargetError(
            f"target must be a pydantic model instance, got {type(target).__name__}"
        )
    if target.model_config.get("frozen"):
        raise InvalidTargetError(
            f"target {type(target).__name__} is frozen and cannot be written"
        )


def unmarshal(
    data: JsonInput,
    target: BaseModel,
    option: PatOption = PatOption.NONE,
    *,
    context: dict[str, Any] | None = None,
) -> None:
    """将 JSON 对象原地解码到模型实例.

    已知字段 (字段名 / alias / `PatField(name=...)`) 按精确键名绑定,
    其余键依次尝试所有动态字段的匹配规则.

    Args:
        data: JSON 文本或字节.
        target: 可写的 pydantic 模型实例.
        option: 反序列化选项 (如 `PatOption.LAX`).
        context: 透传给 pydantic 验证器的上下文.

    Raises:
        InvalidTargetError: target 不是可写的模型实例.
        AnalysisError: 模型字段声明无效.
        MalformedInputError: 输入不是合法的 JSON 对象.
        FieldDecodeError: 某个键的值类型与字段不符. 已写入的字段不会回滚.

    Examples:
        >>> from jsonpat import PatField, PatStruct, unmarshal
        >>> class Data(PatStruct):
        ...     known: str = ""
        ...     dyn: dict[str, int] = PatField(default_factory=dict, pattern="dyn_")
        >>> d = Data()
        >>> unmarshal(b'{"known": "x", "dyn_a": 1, "other": 2}', d)
        >>> d.dyn
        {'dyn_a': 1}
    """
    _check_target(target)
    config = Config.from_params(option=option, context=context)
    table = get_routing_table(type(target))
    raw = _parse_object(data)

    PatternDecoder(table, config).decode(raw, ModelSink(target, table))


def loads(
    data: JsonInput,
    target: type[T],
    option: PatOption = PatOption.NONE,
    *,
    context: dict[str, Any] | None = None,
) -> T:
    """将 JSON 对象解码为新的模型实例.

    实例由 `model_construct()` 创建 (填充默认值), 之后与 `unmarshal` 走同一条写入路径,
    每个值只经过其字段解码器验证一次. 最后检查必填字段是否都已赋值.
    模型级验证器 (`@model_validator`) 不会执行.

    Args:
        data: JSON 文本或字节.
        target: pydantic 模型类.
        option: 反序列化选项.
        context: 透传给 pydantic 验证器的上下文.

    Returns:
        T: 目标类型实例.

    Raises:
        InvalidTargetError: target 不是模型类.
        AnalysisError: 模型字段声明无效.
        MalformedInputError: 输入不是合法的 JSON 对象.
        FieldDecodeError: 某个键的值类型与字段不符.
        ValidationError: 缺少必填字段.
    """
    if not (isinstance(target, type) and issubclass(target, BaseModel)):
        raise InvalidTargetError(
            f"target must be a pydantic model class, got {target!r}"
        )

    config = Config.from_params(option=option, context=context)
    table = get_routing_table(target)
    raw = _parse_object(data)

    instance = target.model_construct()
    sink = ModelSink(instance, table)
    PatternDecoder(table, config).decode(raw, sink)

    missing = sink.missing_fields()
    if missing:
        raise ValidationError.from_exception_data(
            target.__name__,
            [{"type": "missing", "loc": loc, "input": raw} for loc in missing],
        )
    return instance


def load(
    fp: IO[str] | IO[bytes],
    target: type[T],
    option: PatOption = PatOption.NONE,
    *,
    context: dict[str, Any] | None = None,
) -> T:
    """从文件读取并解码 JSON 对象.

    封装了 `read()` 和 `loads()`.

    Args:
        fp: 打开的文件对象 (文本或二进制).
        target: pydantic 模型类.
        option: 反序列化选项.
        context: 上下文.

    Returns:
        解析后的对象.
    """
    return loads(fp.read(), target, option, context=context)
