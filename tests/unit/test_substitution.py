"""
Unit Tests for Parameter Substitution.

Tests placeholder replacement in nested templates, type preservation,
clause dropping, and correlated selection scoping.
"""

import pytest

from src.query.errors import UnknownParameterError
from src.query.models import QuerySpec
from src.query.substitution import ParameterSubstitutor
from tests.conftest import FakeDocumentStore


def make_query(filter: dict, parameters: dict) -> QuerySpec:
    return QuerySpec.model_validate(
        {"name": "q", "collection": "c", "filter": filter, "parameters": parameters}
    )


class TestParameterSubstitutor:
    """Test cases for ParameterSubstitutor."""

    # =========================================================================
    # Template Walking
    # =========================================================================

    @pytest.mark.asyncio
    async def test_whole_string_keeps_type(self, make_context, fake_store) -> None:
        query = make_query(
            {"age": "${param:age}", "flags": "${param:flags}"},
            {"age": {"type": "fixed", "value": 42}, "flags": {"type": "fixed", "value": [1, 2]}},
        )
        context = make_context(query, fake_store)

        result = await ParameterSubstitutor().substitute(query.filter, context)

        assert result == {"age": 42, "flags": [1, 2]}

    @pytest.mark.asyncio
    async def test_embedded_placeholder_is_interpolated(self, make_context, fake_store) -> None:
        query = make_query(
            {"code": "pre-${param:n}-${param:s}"},
            {"n": {"type": "fixed", "value": 7}, "s": {"type": "fixed", "value": "x"}},
        )
        context = make_context(query, fake_store)

        result = await ParameterSubstitutor().substitute(query.filter, context)

        assert result == {"code": "pre-7-x"}

    @pytest.mark.asyncio
    async def test_nested_operators_and_lists(self, make_context, fake_store) -> None:
        query = make_query(
            {
                "$and": [
                    {"age": {"$gte": "${param:low}", "$lte": "${param:high}"}},
                    {"status": {"$in": ["${param:status}", "ARCHIVED"]}},
                ]
            },
            {
                "low": {"type": "fixed", "value": 18},
                "high": {"type": "fixed", "value": 65},
                "status": {"type": "fixed", "value": "ACTIVE"},
            },
        )
        context = make_context(query, fake_store)

        result = await ParameterSubstitutor().substitute(query.filter, context)

        assert result == {
            "$and": [
                {"age": {"$gte": 18, "$lte": 65}},
                {"status": {"$in": ["ACTIVE", "ARCHIVED"]}},
            ]
        }

    @pytest.mark.asyncio
    async def test_template_not_modified(self, make_context, fake_store) -> None:
        query = make_query({"a": {"b": "${param:v}"}}, {"v": {"type": "fixed", "value": 1}})
        context = make_context(query, fake_store)

        await ParameterSubstitutor().substitute(query.filter, context)

        assert query.filter == {"a": {"b": "${param:v}"}}

    @pytest.mark.asyncio
    async def test_template_without_placeholders(self, make_context, fake_store) -> None:
        query = make_query({"status": "ACTIVE", "n": 3}, {})
        context = make_context(query, fake_store)
        substitutor = ParameterSubstitutor()

        assert await substitutor.substitute(query.filter, context) == {"status": "ACTIVE", "n": 3}
        assert await substitutor.substitute(None, context) is None
        assert fake_store.calls == []

    @pytest.mark.asyncio
    async def test_unknown_parameter(self, make_context, fake_store) -> None:
        query = make_query({"a": "${param:nope}"}, {})
        context = make_context(query, fake_store)

        with pytest.raises(UnknownParameterError) as exc_info:
            await ParameterSubstitutor().substitute(query.filter, context)

        assert exc_info.value.name == "nope"
        assert exc_info.value.query == "q"

    @pytest.mark.asyncio
    async def test_fresh_values_per_call(self, make_context, fake_store) -> None:
        query = make_query({"n": "${param:seq}"}, {"seq": {"type": "sequence", "min": 1, "max": 100}})
        context = make_context(query, fake_store)
        substitutor = ParameterSubstitutor()

        first = await substitutor.substitute(query.filter, context)
        second = await substitutor.substitute(query.filter, context)

        assert first == {"n": 1}
        assert second == {"n": 2}

    # =========================================================================
    # Correlated Parameters
    # =========================================================================

    @pytest.mark.asyncio
    async def test_correlated_values_match(self, make_context, customer_store) -> None:
        query = make_query(
            {
                "_id.customerNumber": "${param:customer}",
                "common.taxIdentificationNumberLast4": "${param:last4}",
            },
            {
                "customer": {"correlationGroup": "c", "collection": "identity", "field": "_id.customerNumber"},
                "last4": {"correlationGroup": "c", "field": "common.taxIdentificationNumberLast4"},
            },
        )
        substitutor = ParameterSubstitutor()

        for seed in range(8):
            context = make_context(query, customer_store, seed=seed)
            result = await substitutor.substitute(query.filter, context)
            matching = [
                d for d in customer_store.collections["identity"]
                if d["_id"]["customerNumber"] == result["_id.customerNumber"]
            ]
            assert matching[0]["common"]["taxIdentificationNumberLast4"] == result[
                "common.taxIdentificationNumberLast4"
            ]

    @pytest.mark.asyncio
    async def test_reselect_false_reuses_selection(self, make_context, customer_store) -> None:
        query = make_query(
            {"_id.customerNumber": "${param:customer}"},
            {"customer": {"correlationGroup": "c", "collection": "identity", "field": "_id.customerNumber"}},
        )
        context = make_context(query, customer_store)
        substitutor = ParameterSubstitutor()

        primary = await substitutor.substitute(query.filter, context)
        for _ in range(10):
            again = await substitutor.substitute(query.filter, context, reselect=False)
            assert again == primary

    # =========================================================================
    # Dropping Unconstrained Clauses
    # =========================================================================

    @pytest.mark.asyncio
    async def test_missing_correlated_field_drops_clause(self, make_context, customer_store) -> None:
        query = make_query(
            {"_id.customerNumber": "${param:customer}", "nickname": "${param:nick}"},
            {
                "customer": {"correlationGroup": "c", "collection": "identity", "field": "_id.customerNumber"},
                "nick": {"correlationGroup": "c", "field": "common.nickname"},
            },
        )
        context = make_context(query, customer_store)

        result = await ParameterSubstitutor().substitute(query.filter, context)

        assert set(result) == {"_id.customerNumber"}

    @pytest.mark.asyncio
    async def test_emptied_containers_are_dropped(self, make_context, customer_store) -> None:
        query = make_query(
            {
                "status": "ACTIVE",
                "nickname": {"$eq": "${param:nick}"},
                "$or": [{"alias": "${param:nick}"}],
            },
            {"nick": {"correlationGroup": "c", "collection": "identity", "field": "common.nickname"}},
        )
        context = make_context(query, customer_store)

        result = await ParameterSubstitutor().substitute(query.filter, context)

        assert result == {"status": "ACTIVE"}

    @pytest.mark.asyncio
    async def test_fully_dropped_filter_matches_all(self, make_context) -> None:
        query = make_query(
            {"nickname": "${param:nick}"},
            {"nick": {"correlationGroup": "c", "collection": "identity", "field": "common.nickname"}},
        )
        context = make_context(query, FakeDocumentStore({"identity": []}))

        assert await ParameterSubstitutor().substitute(query.filter, context) == {}
