"""提供 jsonpat 测试的公共 Fixtures 和配置."""

from collections.abc import Generator

import pytest

from jsonpat import clear_cache


@pytest.fixture(autouse=True)
def fresh_cache() -> Generator[None, None, None]:
    """每个测试前后清空路由表缓存, 避免测试之间互相影响."""
    clear_cache()
    yield
    clear_cache()


@pytest.fixture
def sample_json() -> bytes:
    """覆盖所有匹配模式的完整输入."""
    return b"""{
        "known_field": "hello",
        "other": 123,
        "ignored": "should not be loaded",
        "embedded_field": "i am embedded",
        "dyn_abc": 1,
        "dyn_xyz": 2,
        "field_val_1": 10.5,
        "field_val_2": 20.75,
        "some_suffix": "test",
        "another_suffix": true,
        "re_a123": "regex-A",
        "re_b456": "regex-B",
        "scalar_pfx_data": "scalar-prefix-val",
        "other_scalar_pfx_field": "not a prefix match",
        "data_scalar_sfx": "scalar-suffix-val",
        "data_scalar_cont_data": 12345,
        "scalar_re_99": true,
        "not_matching": "skip me"
    }"""
