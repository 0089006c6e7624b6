"""jsonpat 配置对象."""

from dataclasses import dataclass, field
from typing import Any

from .options import PatOption


@dataclass(frozen=True)
class Config:
    """jsonpat 反序列化配置 (不可变).

    在 API 入口层创建, 然后传递给 Decoder 内核.

    Attributes:
        flags: 选项标志 (IntFlag).
        context: 用户提供的上下文数据, 透传给 pydantic 验证器.
    """

    flags: PatOption = PatOption.NONE
    context: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_params(
        cls,
        option: PatOption = PatOption.NONE,
        context: dict[str, Any] | None = None,
    ) -> "Config":
        """从参数构建配置对象.

        Args:
            option: PatOption 枚举.
            context: 用户提供的上下文数据.

        Returns:
            Config: 配置对象.
        """
        ctx = context if context is not None else {}

        return cls(flags=PatOption(option), context=ctx)

    @property
    def strict(self) -> bool:
        """是否使用严格类型匹配."""
        return not (self.flags & PatOption.LAX)

    @property
    def eager_maps(self) -> bool:
        """是否预先创建所有动态 Map."""
        return bool(self.flags & PatOption.EAGER_MAPS)

    @property
    def option(self) -> int:
        """返回 int 形式的 option 值."""
        return int(self.flags)
