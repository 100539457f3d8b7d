from live_feed.core.constants import DEFAULT_SCORING_WEIGHTS, NARRATION_TIERS, TOPIC_KEYWORDS
from live_feed.models.record import FeatureVector


def test_default_weights_reference_known_features() -> None:
    known = set(FeatureVector.field_names())
    assert set(DEFAULT_SCORING_WEIGHTS) <= known


def test_adult_content_is_penalized() -> None:
    assert DEFAULT_SCORING_WEIGHTS["over_18"] < 0


def test_topic_keywords_cover_original_labels() -> None:
    assert {"technology", "politics", "science"} <= set(TOPIC_KEYWORDS)


def test_narration_tiers_order() -> None:
    assert NARRATION_TIERS == ("high", "medium", "low")
