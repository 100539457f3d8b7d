def test_package_imports() -> None:
    import live_feed  # noqa: F401

    from live_feed.core import config  # noqa: F401
    from live_feed.models import record  # noqa: F401
    from live_feed.storage import live_store  # noqa: F401

    try:
        import pytest
    except Exception:
        return
    pytest.importorskip("feedparser")
    pytest.importorskip("requests")
    from live_feed.processing import pipeline  # noqa: F401
    from live_feed import runner  # noqa: F401


def test_default_data_paths() -> None:
    from live_feed.core.config import LIVE_STORE_PATH

    assert LIVE_STORE_PATH.endswith("/data/live_feed.json") or LIVE_STORE_PATH.endswith("\\data\\live_feed.json")


def test_scoring_weights_env_keeps_raw_values(monkeypatch) -> None:
    from live_feed.core import config
    from live_feed.processing.scoring import WeightTable

    monkeypatch.setenv("SCORING_WEIGHTS", '{"recency": "high", "score": "2"}')
    weights = config._env_weights("SCORING_WEIGHTS", {})

    assert weights == {"recency": "high", "score": "2"}
    assert WeightTable(weights).as_dict() == {"score": 2.0}
