"""Similarity thresholds are tuned per call site; pin them so a change is deliberate."""

from spark_engine.core.config import Settings


def _defaults() -> Settings:
    return Settings(SUPABASE_URL="https://test.supabase.co", SUPABASE_SERVICE_ROLE_KEY="test-key")


def test_per_call_site_thresholds():
    settings = _defaults()
    assert settings.CHAT_ITEM_MATCH_THRESHOLD == 0.25
    assert settings.CHAT_SESSION_MATCH_THRESHOLD == 0.25
    assert settings.TOOL_MATCH_THRESHOLD == 0.3
    assert settings.SEARCH_MATCH_THRESHOLD == 0.7


def test_fusion_and_projection_constants():
    settings = _defaults()
    assert settings.RRF_K == 50
    assert settings.RRF_CANDIDATE_CAP == 30
    assert settings.PROJECTION_EDGE_THRESHOLD == 0.5
    assert settings.PROJECTION_VISUAL_BOUND == 3.0
    assert settings.CHAT_MAX_TOOL_ROUNDS == 10
    assert settings.EMBED_BATCH_SIZE == 50
