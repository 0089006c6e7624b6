"""jsonpat 异常类.

该模块为 jsonpat 库定义了异常层次结构.
"""


class JsonPatError(Exception):
    """所有 jsonpat 异常的基类."""

    pass


class RuleSyntaxError(JsonPatError, ValueError):
    """匹配规则 (`value[,mode]`) 语法错误时抛出.

    Case:
        - 缺少匹配值.
        - 逗号分隔的部分超过两个.
        - 未知的匹配模式.
        - 正则表达式无法编译.
    """

    pass


class DecodeError(JsonPatError):
    """反序列化失败时抛出.

    `unmarshal` / `loads` 抛出的所有错误都是它的子类.
    """

    def __init__(
        self,
        msg: str,
        loc: list[str | int] | None = None,
    ) -> None:
        """初始化解码错误.

        Args:
            msg: 错误描述信息.
            loc: 错误发生的位置路径 (字段名或 JSON 键).
        """
        super().__init__(msg)
        self.loc = loc or []

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.loc:
            loc_str = ".".join(str(x) for x in self.loc)
            return f"{base_msg} (at {loc_str})"
        return base_msg


class InvalidTargetError(DecodeError, TypeError):
    """解码目标不是可写的模型实例时抛出.

    Case:
        - 传入 `None`、模型类本身或非 pydantic 对象.
        - 模型配置为 `frozen=True`.
    """

    pass


class AnalysisError(DecodeError):
    """结构体字段声明无法生成路由表时抛出.

    Case:
        - 匹配规则语法错误或正则无效.
        - `embed` 字段的类型不是模型.
        - 不支持的字段/标签组合 (如 `embed` 与 `pattern` 同时使用).
    """

    pass


class MalformedInputError(DecodeError, ValueError):
    """输入不是合法的 JSON 对象时抛出."""

    def __init__(
        self,
        msg: str,
        pos: int | None = None,
        lineno: int | None = None,
        colno: int | None = None,
    ) -> None:
        super().__init__(msg)
        self.pos = pos
        self.lineno = lineno
        self.colno = colno


class FieldDecodeError(DecodeError):
    """某个已匹配键的值无法转换为目标字段类型时抛出.

    在此之前已写入的字段不会回滚.
    """

    def __init__(
        self,
        msg: str,
        key: str,
        path: tuple[int, ...] = (),
    ) -> None:
        super().__init__(msg, loc=[key])
        self.key = key
        self.path = path
