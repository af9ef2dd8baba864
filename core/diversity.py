"""Source diversity scoring.

Independent corroboration across provenance categories is stronger evidence
than volume from one category. These functions turn a signal set into a
SourceBreakdown and a signed confidence adjustment. They are pure and
deterministic.
"""

from schemas.reasoning import MultiVectorResult, SourceBreakdown
from schemas.signal import Signal, SignalSource

_CATEGORY_ALIASES: dict[str, SignalSource] = {
    "bmkg": SignalSource.OFFICIAL,
    "bnpb": SignalSource.OFFICIAL,
    "official": SignalSource.OFFICIAL,
    "user_report": SignalSource.USER_REPORT,
    "user": SignalSource.USER_REPORT,
    "social_media": SignalSource.SOCIAL_MEDIA,
    "tiktok": SignalSource.SOCIAL_MEDIA,
    "twitter": SignalSource.SOCIAL_MEDIA,
    "instagram": SignalSource.SOCIAL_MEDIA,
    "news": SignalSource.NEWS,
    "rss": SignalSource.NEWS,
}

# Trust weight per category. Unrecognised sources get UNKNOWN_SOURCE_WEIGHT.
SOURCE_WEIGHTS: dict[SignalSource, float] = {
    SignalSource.OFFICIAL: 0.40,
    SignalSource.USER_REPORT: 0.25,
    SignalSource.SOCIAL_MEDIA: 0.20,
    SignalSource.NEWS: 0.20,
}
UNKNOWN_SOURCE_WEIGHT = 0.10

MULTI_CATEGORY_BONUS = 0.15
TWO_CATEGORY_BONUS = 0.10
SINGLE_CATEGORY_BONUS = 0.05
SINGLE_SOURCE_PENALTY = -0.05
OFFICIAL_SOURCE_BONUS = 0.05


def categorize(source: str) -> SignalSource:
    """Map a raw source string onto a category. Unknown sources count as user reports."""
    return _CATEGORY_ALIASES.get((source or "").strip().lower(), SignalSource.USER_REPORT)


def is_official_source(source: str) -> bool:
    return (source or "").strip().lower() in {"bmkg", "bnpb", "official"}


def get_source_weight(source: str) -> float:
    category = _CATEGORY_ALIASES.get((source or "").strip().lower())
    if category is None:
        return UNKNOWN_SOURCE_WEIGHT
    return SOURCE_WEIGHTS[category]


def calculate_source_breakdown(signals: list[Signal]) -> SourceBreakdown:
    """Count signals per category.

    total equals the sum of the four counts. unique_sources lists the raw
    source strings in first-seen order.
    """
    counts = {category: 0 for category in SOURCE_WEIGHTS}
    unique: list[str] = []
    for signal in signals:
        counts[categorize(signal.source)] += 1
        if signal.source not in unique:
            unique.append(signal.source)

    return SourceBreakdown(
        official=counts[SignalSource.OFFICIAL],
        user_report=counts[SignalSource.USER_REPORT],
        social_media=counts[SignalSource.SOCIAL_MEDIA],
        news=counts[SignalSource.NEWS],
        total=len(signals),
        unique_sources=unique,
    )


def get_source_diversity_bonus(breakdown: SourceBreakdown) -> MultiVectorResult:
    """Score a breakdown.

    Three or more categories earn +0.15, two earn +0.10. One category earns
    +0.05 when it holds several signals, but a lone signal is penalised
    -0.05. Any official signal adds a further +0.05. The result is not
    clamped; the orchestrator clamps the adjusted confidence.
    """
    category_count = sum(
        1 for n in (breakdown.official, breakdown.user_report, breakdown.social_media, breakdown.news) if n > 0
    )

    if category_count >= 3:
        bonus = MULTI_CATEGORY_BONUS
    elif category_count == 2:
        bonus = TWO_CATEGORY_BONUS
    elif category_count == 1 and breakdown.total == 1:
        bonus = SINGLE_SOURCE_PENALTY
    elif category_count == 1:
        bonus = SINGLE_CATEGORY_BONUS
    else:
        bonus = 0.0

    has_official = breakdown.official > 0
    if has_official:
        bonus += OFFICIAL_SOURCE_BONUS

    return MultiVectorResult(
        source_breakdown=breakdown,
        diversity_bonus=round(bonus, 4),
        category_count=category_count,
        has_official_source=has_official,
    )
