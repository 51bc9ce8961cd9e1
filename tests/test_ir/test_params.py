"""Tests for parse_query_params()."""

from __future__ import annotations

from sqla_rls.ir import parse_query_params


class TestParseQueryParams:
    def test_json_values_are_decoded(self) -> None:
        ir = parse_query_params({"filter": '{"status": "active"}', "limit": "5"})
        assert ir.filter == {"status": "active"}
        assert ir.limit == 5

    def test_undecodable_limit_uses_default(self) -> None:
        ir = parse_query_params({"limit": "lots"}, default_limit=20)
        assert ir.limit == 20

    def test_undecodable_offset_is_zero(self) -> None:
        assert parse_query_params({"offset": "later"}).offset == 0

    def test_json_lists_are_decoded(self) -> None:
        ir = parse_query_params({"groupBy": '["dept"]', "whereNull": '["deleted_at"]'})
        assert ir.group_by == ("dept",)
        assert ir.where_null == ("deleted_at",)

    def test_non_string_values_pass_through(self) -> None:
        ir = parse_query_params({"whereIn": {"id": [1, 2]}, "limit": 3})
        assert ir.where_in == {"id": (1, 2)}
        assert ir.limit == 3

    def test_non_json_string_is_kept_verbatim(self) -> None:
        ir = parse_query_params({"groupBy": ["dept"], "transforms": '{"select": ["dept"]}'})
        assert ir.transforms is not None
        assert ir.transforms.select == ("dept",)
