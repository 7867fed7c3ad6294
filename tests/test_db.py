"""Tests for the storage layer with a mocked Supabase query builder."""

from unittest.mock import MagicMock, patch

import pytest

from spark_engine.db.chat_sessions import get_recent_turns, list_sessions
from spark_engine.db.items import (
    keyword_search_items,
    list_embedded_items,
    list_items_for_backfill,
    parse_embedding,
    rank_items_lexical,
)
from spark_engine.db.workspaces import (
    create_workspace,
    delete_workspace,
    list_workspaces,
    update_workspace,
)

WORKSPACE_ID = "00000000-0000-0000-0000-000000000001"


def _mock_supabase(execute_results=None):
    """Supabase mock with chained query builder.

    Args:
        execute_results: Optional list of return values for successive
            .execute() calls.  When not provided, every .execute()
            returns ``MagicMock(data=[])``.
    """
    sb = MagicMock()
    chain = MagicMock()
    if execute_results is not None:
        chain.execute.side_effect = execute_results
    else:
        chain.execute.return_value = MagicMock(data=[])
    for method in ("select", "insert", "update", "delete", "eq", "neq", "in_", "or_", "order", "limit", "is_"):
        getattr(chain, method).return_value = chain
    chain.not_ = chain
    sb.table.return_value = chain
    sb.rpc.return_value = chain
    return sb, chain


def test_parse_embedding_from_pgvector_string():
    assert parse_embedding("[0.5,1,-2]") == [0.5, 1.0, -2.0]
    assert parse_embedding("not json") is None
    assert parse_embedding(None) is None
    assert parse_embedding([]) is None


def test_list_embedded_items_parses_vectors():
    rows = [
        {"id": "a", "type": "note", "title": "A", "summary": None, "embedding": "[0.1,0.2]"},
        {"id": "b", "type": "note", "title": "B", "summary": None, "embedding": "garbage"},
    ]
    sb, _ = _mock_supabase([MagicMock(data=rows)])
    with patch("spark_engine.db.items.get_supabase", return_value=sb):
        items = list_embedded_items(WORKSPACE_ID)

    assert [i["id"] for i in items] == ["a"]
    assert items[0]["embedding"] == [0.1, 0.2]


def test_keyword_search_strips_filter_syntax():
    sb, chain = _mock_supabase()
    with patch("spark_engine.db.items.get_supabase", return_value=sb):
        keyword_search_items(WORKSPACE_ID, "pg,vector)")

    expression = chain.or_.call_args.args[0]
    assert expression == "title.ilike.%pg vector%,body.ilike.%pg vector%,summary.ilike.%pg vector%"


def test_keyword_search_blank_term_skips_query():
    sb, _ = _mock_supabase()
    with patch("spark_engine.db.items.get_supabase", return_value=sb):
        assert keyword_search_items(WORKSPACE_ID, "%%") == []
    sb.table.assert_not_called()


def test_rank_items_lexical_rpc_params():
    sb, _ = _mock_supabase([MagicMock(data=[{"id": "a", "rank_ix": 1}])])
    with patch("spark_engine.db.items.get_supabase", return_value=sb):
        rows = rank_items_lexical(WORKSPACE_ID, "vector search", 16)

    sb.rpc.assert_called_once_with(
        "rank_items_lexical",
        {"p_workspace_id": WORKSPACE_ID, "query_text": "vector search", "match_count": 16},
    )
    assert rows == [{"id": "a", "rank_ix": 1}]


def test_recent_turns_returned_oldest_first():
    newest_first = [
        {"id": "3", "role": "assistant", "content": "c"},
        {"id": "2", "role": "user", "content": "b"},
        {"id": "1", "role": "assistant", "content": "a"},
    ]
    sb, chain = _mock_supabase([MagicMock(data=newest_first)])
    with patch("spark_engine.db.chat_sessions.get_supabase", return_value=sb):
        turns = get_recent_turns("s1", 30, exclude_id="4")

    assert [t["id"] for t in turns] == ["1", "2", "3"]
    chain.neq.assert_called_once_with("id", "4")
    chain.limit.assert_called_once_with(30)


def test_list_sessions_counts_and_previews():
    sessions = [{"id": "s1", "title": "One"}, {"id": "s2", "title": "Two"}]
    messages = [
        {"id": "m3", "session_id": "s1", "content": "x" * 150},
        {"id": "m2", "session_id": "s1", "content": "older"},
        {"id": "m1", "session_id": "s2", "content": "hello"},
    ]
    sb, _ = _mock_supabase([MagicMock(data=sessions), MagicMock(data=messages)])
    with patch("spark_engine.db.chat_sessions.get_supabase", return_value=sb):
        result = list_sessions(WORKSPACE_ID)

    by_id = {s["id"]: s for s in result}
    assert by_id["s1"]["message_count"] == 2
    assert by_id["s1"]["last_message_preview"] == "x" * 100 + "..."
    assert by_id["s2"]["last_message_preview"] == "hello"


def test_backfill_selection_is_ordered_and_keyset_paged():
    sb, chain = _mock_supabase()
    with patch("spark_engine.db.items.get_supabase", return_value=sb):
        list_items_for_backfill(WORKSPACE_ID, False, 50, after=("2026-01-01T00:00:00+00:00", "item-9"))

    chain.is_.assert_called_once_with("embedding", "null")
    assert [c.args[0] for c in chain.order.call_args_list] == ["created_at", "id"]
    chain.or_.assert_called_once_with(
        'created_at.gt."2026-01-01T00:00:00+00:00",'
        'and(created_at.eq."2026-01-01T00:00:00+00:00",id.gt.item-9)'
    )
    chain.limit.assert_called_once_with(50)


def test_backfill_first_page_has_no_cursor():
    sb, chain = _mock_supabase()
    with patch("spark_engine.db.items.get_supabase", return_value=sb):
        list_items_for_backfill(None, True, 50)

    chain.or_.assert_not_called()
    chain.is_.assert_not_called()
    chain.eq.assert_not_called()


def test_create_workspace_inserts_defaults():
    row = {"id": WORKSPACE_ID, "name": "Research"}
    sb, chain = _mock_supabase([MagicMock(data=[row])])
    with patch("spark_engine.db.workspaces.get_supabase", return_value=sb):
        result = create_workspace("Research")

    assert result == row
    chain.insert.assert_called_once_with({"name": "Research", "description": None, "metadata": {}})


def test_create_workspace_without_row_raises():
    sb, _ = _mock_supabase([MagicMock(data=[])])
    with patch("spark_engine.db.workspaces.get_supabase", return_value=sb):
        with pytest.raises(RuntimeError):
            create_workspace("Research")


def test_list_workspaces_most_recent_first():
    sb, chain = _mock_supabase([MagicMock(data=[{"id": "w1"}])])
    with patch("spark_engine.db.workspaces.get_supabase", return_value=sb):
        assert list_workspaces() == [{"id": "w1"}]
    chain.order.assert_called_once_with("updated_at", desc=True)


def test_update_workspace_stamps_updated_at():
    sb, chain = _mock_supabase([MagicMock(data=[])])
    with patch("spark_engine.db.workspaces.get_supabase", return_value=sb):
        assert update_workspace(WORKSPACE_ID, {"name": "Renamed"}) is None

    written = chain.update.call_args.args[0]
    assert written["name"] == "Renamed"
    assert "updated_at" in written


def test_delete_workspace_by_id():
    sb, chain = _mock_supabase()
    with patch("spark_engine.db.workspaces.get_supabase", return_value=sb):
        delete_workspace(WORKSPACE_ID)

    sb.table.assert_called_once_with("workspaces")
    chain.delete.assert_called_once_with()
    chain.eq.assert_called_once_with("id", WORKSPACE_ID)
