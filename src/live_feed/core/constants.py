from __future__ import annotations

DEFAULT_SUBREDDITS = [  # 기본 수집 대상 서브레딧
    "worldnews", "news", "technology", "science", "politics", "futurology",
]

DEFAULT_SORT_STRATEGIES = ["hot", "new", "rising"]  # 서브레딧별 수집 정렬 방식

SUPPORTED_SORT_STRATEGIES = {"hot", "new", "rising", "top"}

POSITIVE_WORDS = [  # 감성 점수 가산 키워드
    "great", "amazing", "awesome", "excellent", "fantastic", "good", "best",
    "wonderful", "brilliant", "outstanding", "breakthrough", "success", "win",
    "record", "celebrate", "hope", "progress",
]

NEGATIVE_WORDS = [  # 감성 점수 감산 키워드
    "terrible", "awful", "horrible", "disaster", "crisis", "bad", "worst", "fail",
    "problem", "issue", "death", "killed", "war", "attack", "collapse", "scandal",
    "fraud", "lawsuit",
]

TOPIC_KEYWORDS = {  # 토픽 라벨 -> 제목/서브레딧 매칭 키워드
    "technology": ["tech", "programming", "software", "computer", "ai", "robot", "chip", "apple", "google"],
    "politics": ["politic", "election", "government", "policy", "vote", "senate", "congress", "president"],
    "science": ["science", "research", "study", "discovery", "experiment", "space", "nasa", "physics"],
    "business": ["market", "stock", "economy", "company", "earnings", "inflation", "bank"],
    "world": ["worldnews", "ukraine", "china", "europe", "russia", "israel", "global"],
}

# 단어 경계 없이 substring 매칭하면 오탐이 큰 짧은 키워드
SHORT_TOPIC_TOKENS = {"ai"}

IMAGE_DOMAINS = ("i.redd.it", "i.imgur.com", "imgur.com")  # 이미지 게시물 판정용 도메인
IMAGE_SUFFIXES = (".jpg", ".jpeg", ".png", ".gif", ".webp")

NON_THUMBNAIL_VALUES = {"", "self", "default", "nsfw", "spoiler", "image"}  # 실제 썸네일이 아닌 값

# 우선순위 가중치 (Σ weight * feature)
# - 시간당 반응(engagement_per_hour)이 가장 큰 비중
# - 성인/과도한 대문자/느낌표는 감점
DEFAULT_SCORING_WEIGHTS: dict[str, float] = {
    "engagement_per_hour": 3.0,
    "engagement_score": 2.0,
    "recency": 1.5,
    "comment_ratio": 0.5,
    "upvote_ratio": 0.5,
    "has_media": 0.3,
    "sentiment_magnitude": 0.4,
    "topic_count": 0.2,
    "title_length_norm": 0.2,
    "body_length_norm": 0.1,
    "over_18": -3.0,
    "caps_ratio": -1.0,
    "exclamation_norm": -0.5,
}

NARRATION_TIERS = ("high", "medium", "low")  # high -> medium -> low 순으로 소비

ARCHIVE_REASON_SIZE_LIMIT = "size_limit"
ARCHIVE_REASON_AGED_OUT = "aged_out"

CONTENT_MODES = {"sfw", "nsfw", "all"}
