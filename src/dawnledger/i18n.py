"""Simple two-language (ko/en) translation helper for CLI output."""

_STRINGS: dict[str, dict[str, str]] = {
    "no_records": {
        "ko": "아직 기록이 없어요.",
        "en": "No records yet.",
    },
    "no_patterns": {
        "ko": "발견된 패턴이 없어요. 데이터가 더 쌓이면 다시 확인해보세요.",
        "en": "No patterns detected yet. Check back once more data has accumulated.",
    },
    "heading_patterns": {
        "ko": "✦ 발견된 패턴",
        "en": "✦ Detected patterns",
    },
    "heading_stats": {
        "ko": "✦ 기록 통계",
        "en": "✦ Record statistics",
    },
    "days_tracked": {
        "ko": "기록한 날",
        "en": "Days tracked",
    },
    "first_record": {
        "ko": "첫 기록",
        "en": "First record",
    },
    "longest_day": {
        "ko": "가장 긴 낮",
        "en": "Longest day",
    },
    "shortest_day": {
        "ko": "가장 짧은 낮",
        "en": "Shortest day",
    },
    "average_daylight": {
        "ko": "평균 낮 길이",
        "en": "Average daylight",
    },
    "current_daylight": {
        "ko": "오늘 낮 길이",
        "en": "Current daylight",
    },
    "full_moons": {
        "ko": "보름달",
        "en": "Full moons",
    },
    "new_moons": {
        "ko": "삭",
        "en": "New moons",
    },
    "last_detection": {
        "ko": "마지막 분석",
        "en": "Last detection",
    },
    "atmosphere_stale": {
        "ko": "대기 정보를 새로 받지 못했어요. 마지막 값을 보여드려요. ({error})",
        "en": "Atmosphere refresh failed; showing last-known data. ({error})",
    },
    "dismissed": {
        "ko": "패턴을 숨겼어요: {id}",
        "en": "Dismissed pattern: {id}",
    },
    "not_found": {
        "ko": "해당 패턴이 없어요: {id}",
        "en": "No stored pattern with id: {id}",
    },
    "cleared": {
        "ko": "초기화했어요: {what}",
        "en": "Cleared: {what}",
    },
    "confidence_low": {
        "ko": "가능성",
        "en": "Possible",
    },
    "confidence_medium": {
        "ko": "유력",
        "en": "Likely",
    },
    "confidence_high": {
        "ko": "확실",
        "en": "Strong",
    },
}


def t(key: str, lang: str, **kwargs: object) -> str:
    """Return the translated string for key in lang, formatted with kwargs.

    Falls back to 'en', then to the key itself if not found.
    """
    entry = _STRINGS.get(key)
    if entry is None:
        return key
    text = entry.get(lang) or entry.get("en") or key
    return text.format(**kwargs) if kwargs else text
