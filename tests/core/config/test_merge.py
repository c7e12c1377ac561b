# tests/core/config/test_merge.py
"""
Testes do deep-merge de configuração.

Política verificada:
    - dicts são combinados recursivamente
    - listas e escalares são sobrescritos
    - None sobrescreve (desliga limites) e aceita qualquer tipo depois
    - conflito de tipos é erro explícito
    - nenhum input é mutado
"""

import pytest

from atlas_orchestrator.core.config.errors import ConfigTypeConflictError
from atlas_orchestrator.core.config.merge import deep_merge


def test_nested_dicts_are_merged():
    base = {"engine": {"max_parallel": 4, "fail_fast": False}, "labels": {"team": "platform"}}
    override = {"engine": {"fail_fast": True}}

    assert deep_merge(base, override) == {
        "engine": {"max_parallel": 4, "fail_fast": True},
        "labels": {"team": "platform"},
    }


def test_lists_are_replaced():
    assert deep_merge({"tags": ["a", "b"]}, {"tags": ["c"]}) == {"tags": ["c"]}


def test_none_overrides_and_is_overridable():
    assert deep_merge({"engine": {"max_parallel": 4}}, {"engine": {"max_parallel": None}}) == {
        "engine": {"max_parallel": None}
    }
    assert deep_merge({"engine": {"max_parallel": None}}, {"engine": {"max_parallel": 2}}) == {
        "engine": {"max_parallel": 2}
    }


def test_type_conflict_is_rejected():
    with pytest.raises(ConfigTypeConflictError):
        deep_merge({"engine": {"fail_fast": False}}, {"engine": "fast"})


def test_non_dict_roots_are_rejected():
    with pytest.raises(ConfigTypeConflictError):
        deep_merge({"a": 1}, ["b"])  # type: ignore[arg-type]


def test_inputs_are_not_mutated():
    base = {"engine": {"max_parallel": 4}}
    override = {"engine": {"max_parallel": 8}, "labels": {"env": "ci"}}

    merged = deep_merge(base, override)
    merged["labels"]["env"] = "changed"

    assert base == {"engine": {"max_parallel": 4}}
    assert override["labels"] == {"env": "ci"}


def test_int_and_float_are_interchangeable():
    merged = deep_merge({"engine": {"deadline_seconds": 5}}, {"engine": {"deadline_seconds": 2.5}})
    assert merged == {"engine": {"deadline_seconds": 2.5}}
    assert deep_merge({"engine": {"deadline_seconds": 2.5}}, {"engine": {"deadline_seconds": 10}}) == {
        "engine": {"deadline_seconds": 10}
    }


def test_bool_is_not_a_number():
    with pytest.raises(ConfigTypeConflictError):
        deep_merge({"engine": {"max_parallel": 4}}, {"engine": {"max_parallel": True}})
