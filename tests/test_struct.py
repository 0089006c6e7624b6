"""测试 jsonpat 结构体字段声明.

覆盖 jsonpat.struct 模块:
1. PatField 元数据注入与 pydantic 参数透传
2. 默认值 (default, default_factory)
3. PatStruct 便捷方法
"""

import pytest

from jsonpat import PatField, PatStruct
from jsonpat.struct import EMBED_KEY, NAME_KEY, PATTERN_KEY

# --- 辅助模型 ---


class Item(PatStruct):
    """基础测试结构体."""

    sku: str = PatField(name="SKU")
    qty: int = PatField(1, gt=0)
    attrs: dict[str, str] = PatField(default_factory=dict, pattern="attr_")


# --- 测试用例 ---


def test_patfield_metadata() -> None:
    """PatField 应把路由元数据写入 json_schema_extra."""
    fields = Item.model_fields

    assert fields["sku"].json_schema_extra == {NAME_KEY: "SKU"}
    assert fields["attrs"].json_schema_extra == {PATTERN_KEY: "attr_"}
    assert fields["qty"].json_schema_extra is None


def test_patfield_keeps_user_schema_extra() -> None:
    """已有的 json_schema_extra 应与路由元数据合并."""
    info = PatField(0, embed=True, json_schema_extra={"title": "x"})

    assert info.json_schema_extra == {"title": "x", EMBED_KEY: True}


def test_patfield_defaults_and_constraints() -> None:
    """默认值与约束应按 pydantic 规则生效."""
    item = Item(sku="a")

    assert item.qty == 1
    assert item.attrs == {}
    assert Item.model_fields["sku"].is_required()

    with pytest.raises(ValueError):
        Item(sku="a", qty=0)


def test_patfield_rejects_empty_name() -> None:
    """空名称应立即报错."""
    with pytest.raises(ValueError, match="must not be empty"):
        PatField("", name="")


def test_struct_methods() -> None:
    """PatStruct 便捷方法应使用缓存的路由表."""
    item = Item.model_validate_jsonpat(b'{"SKU": "k1", "attr_color": "red"}')
    assert item.sku == "k1"
    assert item.attrs == {"attr_color": "red"}

    item.model_update_jsonpat(b'{"qty": 3, "attr_size": "L"}')
    assert item.qty == 3
    assert item.attrs == {"attr_color": "red", "attr_size": "L"}

    table = Item.model_routing_table()
    assert set(table.known_fields) == {"SKU", "qty"}
