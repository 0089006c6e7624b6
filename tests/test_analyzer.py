"""测试结构体分析器.

覆盖 jsonpat.analyzer 模块:
1. 已知字段 (字段名, alias, PatField(name=...), 忽略)
2. 动态字段分类 (Map / 标量 / Optional)
3. 内嵌结构体平铺与字段路径
4. 分析错误 (标签语法, 无效正则, 不支持的组合)
5. 字段验证器
6. 分析结果只依赖类型本身
"""

from typing import Annotated, Any, Optional

import pytest
from pydantic import BaseModel, ConfigDict, Field, field_validator

from jsonpat import (
    AnalysisError,
    DecodeError,
    FieldKind,
    MatchMode,
    PatField,
    Pattern,
    analyze,
)

# --- 辅助模型 ---


class Plain(BaseModel):
    """不含任何模式标签的模型."""

    name: str = ""
    count: int = 0


class Aliased(BaseModel):
    """使用各种名称覆盖方式的模型."""

    user_name: str = Field("", alias="userName")
    host: str = PatField("", name="hostname")
    both: str = PatField("", name="explicit", alias="fromAlias")
    secret: str = Field("", exclude=True)
    skipped: str = PatField("", name="-")
    _private: int = 0


class Dynamic(BaseModel):
    """包含各类动态字段的模型."""

    known: str = ""
    by_prefix: dict[str, int] = PatField(default_factory=dict, pattern="dyn_")
    maybe_map: Optional[dict[str, str]] = PatField(None, pattern="opt_,prefix")
    bare_map: dict = PatField(default_factory=dict, pattern="bare_,prefix")
    first: str = PatField("", pattern="pfx_,prefix")
    int_keys: dict[int, str] = PatField(default_factory=dict, pattern="ik_")
    annotated: Annotated[dict[str, float], Pattern("_val_,contains")] = {}


class Inner(BaseModel):
    """被内嵌的结构体."""

    embedded_field: str = ""
    dynamic_suffix: dict[str, Any] = PatField(default_factory=dict, pattern="_suffix,suffix")


class Outer(BaseModel):
    """内嵌 Inner 的结构体."""

    known_field: str = ""
    base: Inner = PatField(default_factory=Inner, embed=True)
    scalar: int = PatField(0, pattern="s_")


class Deep(BaseModel):
    """两层内嵌."""

    outer: Outer = PatField(default_factory=Outer, embed=True)


class SelfEmbedding(BaseModel):
    """内嵌自身的非法结构体."""

    child: Optional["SelfEmbedding"] = PatField(None, embed=True)


# --- 已知字段 ---


def test_plain_model_uses_field_names() -> None:
    """无模式标签的模型应按字段名注册所有字段."""
    table = analyze(Plain)

    assert set(table.known_fields) == {"name", "count"}
    assert table.known_fields["name"].path == (0,)
    assert table.known_fields["count"].path == (1,)
    assert table.dynamic_map_fields == ()
    assert table.dynamic_scalar_fields == ()


def test_name_overrides_and_ignore() -> None:
    """alias / PatField(name=...) 应覆盖字段名, exclude 和 "-" 应忽略字段."""
    table = analyze(Aliased)

    assert set(table.known_fields) == {"userName", "hostname", "explicit"}
    assert table.known_fields["explicit"].path == (2,)


def test_private_attributes_are_skipped() -> None:
    """私有属性不参与路由."""
    table = analyze(Aliased)

    assert "_private" not in table.known_fields


def test_known_name_collision_last_wins() -> None:
    """名称冲突时后声明的字段生效."""

    class Colliding(BaseModel):
        a: int = PatField(0, name="x")
        b: int = PatField(0, name="x")

    table = analyze(Colliding)

    assert table.known_fields["x"].path == (1,)


# --- 动态字段 ---


def test_dynamic_field_classification() -> None:
    """字符串键的 Map 应归为 MAP, 其余归为 SCALAR."""
    table = analyze(Dynamic)

    maps = {f.path: f for f in table.dynamic_map_fields}
    scalars = {f.path: f for f in table.dynamic_scalar_fields}

    assert set(maps) == {(1,), (2,), (3,), (6,)}
    assert set(scalars) == {(4,), (5,)}
    assert set(table.known_fields) == {"known"}

    assert maps[(1,)].kind is FieldKind.MAP
    assert maps[(1,)].annotation is int
    assert maps[(1,)].rule.mode is MatchMode.PREFIX
    assert maps[(3,)].annotation is Any
    assert maps[(6,)].rule.mode is MatchMode.CONTAINS

    assert scalars[(4,)].kind is FieldKind.SCALAR
    assert scalars[(5,)].annotation == dict[int, str]


def test_optional_map_is_marked() -> None:
    """Optional Map 字段应标记为 optional."""
    table = analyze(Dynamic)
    maps = {f.path: f for f in table.dynamic_map_fields}

    assert maps[(2,)].optional
    assert not maps[(1,)].optional


def test_dynamic_fields_keep_declaration_order() -> None:
    """动态字段应按声明顺序排列."""
    table = analyze(Dynamic)

    paths = [f.path for f in table.dynamic_map_fields]
    assert paths == sorted(paths)


def test_constraints_are_kept() -> None:
    """字段约束应保留在解码用的注解中."""

    class Constrained(BaseModel):
        count: int = Field(1, gt=0)

    table = analyze(Constrained)
    adapter = table.known_fields["count"].adapter

    assert adapter.validate_python(5) == 5
    with pytest.raises(ValueError):
        adapter.validate_python(0)


# --- 内嵌 ---


def test_embedded_fields_are_flattened() -> None:
    """内嵌结构体的字段应以内嵌字段索引为前缀并入外层表."""
    table = analyze(Outer)

    assert table.known_fields["known_field"].path == (0,)
    assert table.known_fields["embedded_field"].path == (1, 0)
    assert "base" not in table.known_fields
    assert [f.path for f in table.dynamic_map_fields] == [(1, 1)]
    assert [f.path for f in table.dynamic_scalar_fields] == [(2,)]
    assert dict(table.embedded) == {(1,): Inner}


def test_nested_embedding() -> None:
    """多层内嵌应累积路径前缀."""
    table = analyze(Deep)

    assert table.known_fields["embedded_field"].path == (0, 1, 0)
    assert dict(table.embedded) == {(0,): Outer, (0, 1): Inner}


def test_embedding_itself_fails() -> None:
    """内嵌自身应报错而不是无限递归."""
    with pytest.raises(AnalysisError, match="embeds itself"):
        analyze(SelfEmbedding)


def test_embed_requires_model() -> None:
    """embed 字段类型必须是模型."""

    class BadEmbed(BaseModel):
        value: int = PatField(0, embed=True)

    with pytest.raises(AnalysisError, match="must be a model"):
        analyze(BadEmbed)


def test_embed_with_pattern_fails() -> None:
    """embed 与 pattern 不能同时使用."""

    class BadCombo(BaseModel):
        inner: Inner = PatField(default_factory=Inner, embed=True, pattern="x_")

    with pytest.raises(AnalysisError, match="cannot carry a pattern"):
        analyze(BadCombo)


def test_frozen_embedded_model_fails() -> None:
    """被内嵌的模型为 frozen 时无法写入, 应在分析阶段报错."""

    class FrozenInner(BaseModel):
        model_config = ConfigDict(frozen=True)

        m: Optional[dict[str, int]] = PatField(None, pattern="m_")

    class HoldsFrozen(BaseModel):
        inner: FrozenInner = PatField(default_factory=FrozenInner, embed=True)

    with pytest.raises(AnalysisError, match="frozen") as exc_info:
        analyze(HoldsFrozen)

    assert exc_info.value.loc == ["HoldsFrozen", "inner"]


def test_field_names_cover_embedded_models() -> None:
    """路由表记录每个 (内嵌) 模型按声明顺序的字段名."""
    table = analyze(Deep)

    assert dict(table.field_names) == {
        Deep: ("outer",),
        Outer: ("known_field", "base", "scalar"),
        Inner: ("embedded_field", "dynamic_suffix"),
    }


# --- 分析错误 ---


@pytest.mark.parametrize("tag", [",prefix", "prefix,invalid_type", "a,b,c", "(,regex"])
def test_bad_tags_fail_analysis(tag: str) -> None:
    """无效标签应在分析阶段失败."""

    class Bad(BaseModel):
        field: dict[str, int] = PatField(default_factory=dict, pattern=tag)

    with pytest.raises(AnalysisError):
        analyze(Bad)


def test_analysis_error_location() -> None:
    """分析错误应指明模型与字段."""

    class BadRegex(BaseModel):
        ok: str = ""
        broken: str = PatField("", pattern="[,regex")

    with pytest.raises(AnalysisError) as exc_info:
        analyze(BadRegex)

    assert exc_info.value.loc == ["BadRegex", "broken"]
    assert "(at BadRegex.broken)" in str(exc_info.value)
    assert isinstance(exc_info.value, DecodeError)


def test_two_pattern_tags_fail() -> None:
    """同一字段同时使用 Pattern 和 PatField(pattern=...) 应报错."""

    class Twice(BaseModel):
        field: Annotated[dict[str, int], Pattern("a_")] = PatField(
            default_factory=dict, pattern="b_"
        )

    with pytest.raises(AnalysisError, match="more than one pattern"):
        analyze(Twice)


@pytest.mark.parametrize("target", [int, "Plain", Plain(), None])
def test_analyze_rejects_non_models(target: Any) -> None:
    """非模型类应被拒绝."""
    with pytest.raises(AnalysisError, match="pydantic model class"):
        analyze(target)


# --- 字段验证器 ---


def test_field_validators_compiled_into_adapter() -> None:
    """`@field_validator` 应编入字段解码器, Map 字段的 after 验证器单独作用于整个 Map."""

    class Validated(BaseModel):
        name: str = ""
        tags: dict[str, int] = PatField(default_factory=dict, pattern="t_")

        @field_validator("name")
        @classmethod
        def strip(cls, v: str) -> str:
            return v.strip()

        @field_validator("tags")
        @classmethod
        def non_empty(cls, v: dict[str, int]) -> dict[str, int]:
            return v

    table = analyze(Validated)

    assert table.known_fields["name"].adapter.validate_python(" a ") == "a"
    (tags,) = table.dynamic_map_fields
    assert tags.map_adapter is not None
    assert tags.adapter.validate_python(3) == 3


def test_map_field_without_validator_has_no_map_adapter() -> None:
    """未声明验证器的 Map 字段不做整体验证."""
    table = analyze(Outer)

    assert table.dynamic_map_fields[0].map_adapter is None


def test_before_validator_on_map_field_fails() -> None:
    """Map 字段只支持 after 模式的验证器."""

    class BeforeOnMap(BaseModel):
        tags: dict[str, int] = PatField(default_factory=dict, pattern="t_")

        @field_validator("tags", mode="before")
        @classmethod
        def coerce(cls, v: Any) -> Any:
            return v

    with pytest.raises(AnalysisError, match="after-mode"):
        analyze(BeforeOnMap)


# --- 确定性 ---


def test_reanalysis_produces_equal_table() -> None:
    """重复分析同一类型应得到内容相等 (但不是同一个) 的表."""
    first = analyze(Outer)
    second = analyze(Outer)

    assert first == second
    assert first is not second


def test_pattern_marker_equality() -> None:
    """Pattern 标记按标签比较."""
    assert Pattern("a_") == Pattern("a_")
    assert Pattern("a_") != Pattern("b_")
    assert repr(Pattern("a_")) == "Pattern('a_')"
