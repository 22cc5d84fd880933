"""系统提示词组合。

把用户偏好档案翻译成发给模型的 system prompt。纯函数、无 I/O，
同一档案永远得到完全相同的字符串（便于测试与缓存）。

子句按固定顺序拼接：用途 → 知识水平 → 讲解风格 → 回答长度 → 学习偏好。
未设置或未知的取值不产生子句，也不会报错。
"""

from typing import Mapping, Optional, Tuple

from study_core.domain.models import PreferenceProfile
from study_core.prompts.explain import (
    ExplainRequest,
    build_explain_user_message,
    compose_explain_prompt,
)


BASE_PROMPT = (
    "You are a personalized AI study assistant designed for students. "
    "You are helpful, encouraging, and focused on learning outcomes."
)

GENERAL_AUDIENCE_CLAUSE = "Provide clear, balanced explanations suitable for a general audience."

PURPOSE_CLAUSES: Mapping[str, str] = {
    "studying": (
        "The user is focused on academic learning and studying. "
        "Emphasize educational concepts, study strategies, and exam preparation."
    ),
    "programming": (
        "The user is learning programming and technical skills. "
        "Include code examples, technical explanations, and practical implementations."
    ),
    "productivity": (
        "The user wants to improve productivity. "
        "Focus on actionable advice, time management, and efficient workflows."
    ),
    "general": (
        "The user is a general learner. "
        "Use universally relatable examples and explain context where needed."
    ),
}

KNOWLEDGE_LEVEL_CLAUSES: Mapping[str, str] = {
    "beginner": (
        "The user is a beginner. Use simple language, avoid jargon, and explain concepts "
        "from the ground up. Include analogies and real-world examples."
    ),
    "intermediate": (
        "The user has intermediate knowledge. You can use some technical terms "
        "but explain complex concepts when needed."
    ),
    "advanced": (
        "The user is advanced. You can use technical language and assume foundational "
        "knowledge. Focus on depth and nuance."
    ),
    "expert": (
        "The user is an expert. Assume strong foundations and focus on cutting-edge "
        "details, subtleties, and trade-offs."
    ),
}

EXPLANATION_STYLE_CLAUSES: Mapping[str, str] = {
    "simple": "Use very simple, non-technical language. Break down everything into easy-to-understand pieces.",
    "concise": "Be concise. Prefer short sentences and leave out anything that is not essential.",
    "moderate": "Use moderate technical depth. Balance accessibility with precision.",
    "detailed": "Explain thoroughly, covering the reasoning behind each point.",
    "technical": "Use precise, technical language. Be thorough and accurate.",
    "examples": "Illustrate every concept with concrete, worked examples.",
    "visual": "Describe ideas visually where possible, using diagrams in text, tables, or spatial analogies.",
}

RESPONSE_LENGTH_CLAUSES: Mapping[str, str] = {
    "short": "Keep responses short and concise. Get to the point quickly.",
    "medium": "Provide medium-length responses with adequate detail.",
    "detailed": "Provide detailed, comprehensive explanations.",
}

LEARNING_PREFERENCE_CLAUSES: Mapping[str, str] = {
    "step-by-step": "Structure explanations as step-by-step guides. Number your steps clearly.",
    "examples": "Lead with examples first, then explain the underlying concepts.",
    "theory": "Start with theory and foundational concepts before moving to applications.",
}

# 拼接顺序：(档案字段, 映射表)
CLAUSE_TABLES: Tuple[Tuple[str, Mapping[str, str]], ...] = (
    ("primary_purpose", PURPOSE_CLAUSES),
    ("knowledge_level", KNOWLEDGE_LEVEL_CLAUSES),
    ("explanation_style", EXPLANATION_STYLE_CLAUSES),
    ("response_length", RESPONSE_LENGTH_CLAUSES),
    ("learning_preference", LEARNING_PREFERENCE_CLAUSES),
)


def compose_system_prompt(profile: Optional[PreferenceProfile]) -> str:
    """根据偏好档案生成 system prompt。

    profile 为 None 时返回面向普通受众的基础提示；否则在基础提示后
    依次追加每个已设置字段对应的子句。
    """

    if profile is None:
        return f"{BASE_PROMPT} {GENERAL_AUDIENCE_CLAUSE}"

    parts = [BASE_PROMPT]
    for field_name, table in CLAUSE_TABLES:
        value = getattr(profile, field_name, None)
        clause = table.get(value) if value else None
        if clause:
            parts.append(clause)
    return " ".join(parts)


__all__ = [
    "BASE_PROMPT",
    "CLAUSE_TABLES",
    "ExplainRequest",
    "build_explain_user_message",
    "compose_explain_prompt",
    "compose_system_prompt",
]
