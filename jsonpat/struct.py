"""jsonpat 结构体字段声明模块."""

from typing import TYPE_CHECKING, Any, TypeVar, cast

from pydantic import BaseModel, Field
from pydantic_core import PydanticUndefined
from typing_extensions import Self

from .options import PatOption

if TYPE_CHECKING:
    from .analyzer import RoutingTable

S = TypeVar("S", bound="PatStruct")

# json_schema_extra 中使用的元数据键
PATTERN_KEY = "jsonpat"
NAME_KEY = "jsonpat_name"
EMBED_KEY = "jsonpat_embed"

# 显式忽略字段的名称
IGNORE_NAME = "-"


class Pattern:
    """`Annotated` 元数据形式的模式标签.

    Examples:
        >>> from typing import Annotated
        >>> class Item(PatStruct):
        ...     attrs: Annotated[dict[str, int], Pattern("attr_,prefix")] = {}
    """

    __slots__ = ("tag",)

    def __init__(self, tag: str) -> None:
        self.tag = tag

    def __repr__(self) -> str:
        return f"Pattern({self.tag!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Pattern):
            return NotImplemented
        return self.tag == other.tag

    def __hash__(self) -> int:
        return hash((Pattern, self.tag))


def PatField(
    default: Any = PydanticUndefined,
    *,
    name: str | None = None,
    pattern: str | None = None,
    embed: bool = False,
    default_factory: Any | None = None,
    **kwargs: Any,
) -> Any:
    """创建 jsonpat 结构体字段配置.

    这是一个 Pydantic `Field` 的包装函数, 用于注入路由所需的元数据.
    未使用 `PatField` 的字段按字段名 (或 pydantic `alias`) 精确匹配.

    Args:
        default: 字段的静态默认值.
        name: 精确匹配的 JSON 键, 覆盖字段名. `"-"` 表示忽略该字段.
        pattern: 模式标签, 语法为 `value[,mode]`,
            `mode` 为 `prefix` (默认) / `contains` / `suffix` / `regex`.
            字段类型为 `dict[str, T]` 时收集所有命中的键,
            否则只接收排序后第一个命中的键.
        embed: 将该字段 (类型必须是模型) 的字段平铺到外层结构体中.
        default_factory: 用于生成默认值的无参可调用对象.
        **kwargs: 其余参数原样传给 `pydantic.Field` (如 `gt`, `alias`, `exclude`).

    Returns:
        Any: 包含 jsonpat 元数据的 Pydantic FieldInfo 对象.

    Raises:
        ValueError: `name` 为空字符串.

    Examples:
        >>> class Metrics(PatStruct):
        ...     host: str = PatField(name="hostname")
        ...     cpu: dict[str, float] = PatField(default_factory=dict, pattern="cpu_")
        ...     first_tag: str = PatField("", pattern="^tag_\\d+$,regex")
    """
    if name is not None and not name:
        raise ValueError("JSON name must not be empty")

    extra: dict[str, Any] = dict(kwargs.pop("json_schema_extra", None) or {})
    if pattern is not None:
        extra[PATTERN_KEY] = pattern
    if name is not None:
        extra[NAME_KEY] = name
    if embed:
        extra[EMBED_KEY] = True

    if extra:
        kwargs["json_schema_extra"] = extra

    if default is not PydanticUndefined:
        kwargs["default"] = default

    if default_factory is not None:
        kwargs["default_factory"] = default_factory

    return cast(Any, Field)(**kwargs)


class PatStruct(BaseModel):
    """jsonpat 结构体基类.

    继承自 `pydantic.BaseModel`, 只提供便捷方法; 任何 pydantic 模型都可以
    直接交给 `unmarshal` / `loads`.

    Examples:
        >>> class Config(PatStruct):
        ...     name: str
        ...     env: dict[str, str] = PatField(default_factory=dict, pattern="ENV_")
        >>> cfg = Config.model_validate_jsonpat(b'{"name": "a", "ENV_HOME": "/root"}')
        >>> cfg.env
        {'ENV_HOME': '/root'}
    """

    @classmethod
    def model_validate_jsonpat(
        cls,
        data: str | bytes | bytearray | memoryview,
        option: PatOption = PatOption.NONE,
        context: dict[str, Any] | None = None,
    ) -> Self:
        """从 JSON 数据创建新实例.

        Raises:
            DecodeError: 解析或字段解码失败.
            ValidationError: 缺少必填字段.
        """
        from .api import loads

        return loads(data, cls, option, context=context)

    def model_update_jsonpat(
        self,
        data: str | bytes | bytearray | memoryview,
        option: PatOption = PatOption.NONE,
        context: dict[str, Any] | None = None,
    ) -> None:
        """将 JSON 数据原地解码到当前实例."""
        from .api import unmarshal

        unmarshal(data, self, option, context=context)

    @classmethod
    def model_routing_table(cls) -> "RoutingTable":
        """返回该结构体 (已缓存的) 路由表."""
        from .cache import get_routing_table

        return get_routing_table(cls)
