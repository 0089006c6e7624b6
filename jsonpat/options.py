"""jsonpat 反序列化的配置选项.

该模块定义了用于控制 `unmarshal` 和 `loads` 函数行为的选项标志.
"""

from enum import IntFlag


class PatOption(IntFlag):
    """jsonpat 配置选项标志.

    可以使用位运算组合多个选项:
        option = PatOption.LAX | PatOption.EAGER_MAPS
    """

    # 默认行为: 严格类型匹配, 动态 Map 按需创建
    NONE = 0x0000

    # 使用 pydantic 的宽松模式 (如 "123" -> 123)
    LAX = 0x0001

    # 在路由任何键之前创建所有动态 Map 字段
    EAGER_MAPS = 0x0002
