"""
Classroom helper: activity ideas and morning encouragement from Gemini.

Both helpers always return text: any failure yields a fixed fallback line so
the dashboard never shows an error in place of a message.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

from ai_resilience import DEFAULT_MODEL, resilient_generate

load_dotenv()

logger = logging.getLogger(__name__)

SUGGESTION_PROMPT = (
    "초등학교 학급 운영에 대한 아이디어를 제안해줘. 주제: {topic}. "
    "답변은 한국어로, 초등학교 선생님이 아이들을 위해 읽어주거나 참고하기 좋은 "
    "따뜻하고 재미있는 말투로 작성해줘."
)
SUGGESTION_FALLBACK = "죄송해요, 아이디어를 가져오는 중에 문제가 발생했어요. 잠시 후 다시 시도해주세요!"

ENCOURAGEMENT_PROMPT = (
    "초등학교 선생님이 학생들에게 아침 조회 시간에 전할만한 "
    "짧고 따뜻한 응원의 메시지 한 문장을 만들어줘."
)
ENCOURAGEMENT_FALLBACK = "오늘 하루도 우리 함께 즐겁게 보내보자!"

DEFAULT_GREETING = "오늘도 우리 아이들과 행복한 시간 보내세요! 🎈"


def _model() -> str:
    return os.getenv("GEMINI_MODEL", DEFAULT_MODEL)


def get_class_suggestions(topic: str, cache_ttl: int = 0) -> str:
    """Ideas for running the class around ``topic``."""
    topic = (topic or "").strip()
    if not topic:
        raise ValueError("A topic is required")
    try:
        text = resilient_generate(
            SUGGESTION_PROMPT.format(topic=topic),
            model=_model(),
            temperature=0.8,
            top_p=0.95,
            cache_ttl=cache_ttl,
        )
    except Exception as e:
        logger.warning("Class suggestion failed (topic=%r): %s", topic, e)
        return SUGGESTION_FALLBACK
    return text.strip() or SUGGESTION_FALLBACK


def get_encouragement_message() -> str:
    try:
        text = resilient_generate(ENCOURAGEMENT_PROMPT, model=_model(), temperature=1.0)
    except Exception as e:
        logger.warning("Encouragement message failed: %s", e)
        return ENCOURAGEMENT_FALLBACK
    return text.strip() or ENCOURAGEMENT_FALLBACK
