"""键匹配规则.

负责解析 `value[,mode]` 形式的模式标签, 并判断 JSON 键是否命中规则.
"""

import re
from dataclasses import dataclass, field
from enum import Enum

from .exceptions import RuleSyntaxError

RULE_SEPARATOR = ","


class MatchMode(str, Enum):
    """匹配模式."""

    PREFIX = "prefix"
    CONTAINS = "contains"
    SUFFIX = "suffix"
    REGEX = "regex"


DEFAULT_MODE = MatchMode.PREFIX

_MODES = ", ".join(m.value for m in MatchMode)


@dataclass(frozen=True)
class Rule:
    """一条匹配规则 (模式 + 匹配值).

    `regex` 模式下, 正则在规则创建时即完成编译.

    Attributes:
        mode: 匹配模式.
        value: 子串或正则源码.
        regex: 预编译的正则 (仅 `regex` 模式).
    """

    mode: MatchMode
    value: str
    regex: re.Pattern[str] | None = field(default=None, repr=False)

    def matches(self, key: str) -> bool:
        """判断 key 是否命中此规则."""
        return matches(key, self)


def parse_rule(tag: str) -> Rule:
    """解析模式标签.

    语法为 `value[,mode]`, `mode` 缺省为 `prefix`. 各部分两端空白会被去除.

    Args:
        tag: 标签文本, 如 `"dyn_,prefix"` 或 `"^re_\\d+$,regex"`.

    Returns:
        Rule: 解析后的规则.

    Raises:
        RuleSyntaxError: 缺少匹配值、部分过多、未知模式或正则无效.

    Examples:
        >>> parse_rule("dyn_")
        Rule(mode=<MatchMode.PREFIX: 'prefix'>, value='dyn_')
        >>> parse_rule("_id,suffix").mode
        <MatchMode.SUFFIX: 'suffix'>
    """
    parts = tag.split(RULE_SEPARATOR)
    if len(parts) > 2:
        raise RuleSyntaxError(
            f"pattern tag {tag!r} must have a value and optional match mode"
        )

    value = parts[0].strip()
    if not value:
        raise RuleSyntaxError(f"pattern tag {tag!r} is missing a match value")

    mode = DEFAULT_MODE
    if len(parts) == 2:
        raw_mode = parts[1].strip()
        try:
            mode = MatchMode(raw_mode)
        except ValueError:
            raise RuleSyntaxError(
                f"pattern tag {tag!r} has invalid match mode {raw_mode!r}; "
                f"must be one of: {_MODES}"
            ) from None

    if mode is MatchMode.REGEX:
        try:
            regex = re.compile(value)
        except re.error as e:
            raise RuleSyntaxError(
                f"pattern tag {tag!r} has invalid regular expression: {e}"
            ) from e
        return Rule(mode, value, regex)

    return Rule(mode, value)


def matches(key: str, rule: Rule) -> bool:
    """判断 key 是否命中规则.

    - `prefix`: key 以 value 开头.
    - `contains`: value 出现在 key 中任意位置.
    - `suffix`: key 以 value 结尾.
    - `regex`: 在 key 中搜索正则 (锚定由正则本身的 `^`/`$` 决定).
    """
    mode = rule.mode
    if mode is MatchMode.PREFIX:
        return key.startswith(rule.value)
    if mode is MatchMode.CONTAINS:
        return rule.value in key
    if mode is MatchMode.SUFFIX:
        return key.endswith(rule.value)
    if mode is MatchMode.REGEX:
        # regex 为 None 只可能来自手工构造的 Rule
        if rule.regex is None:
            return False
        return rule.regex.search(key) is not None
    return False
