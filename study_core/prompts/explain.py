"""“讲简单点”功能的提示词。

与聊天 system prompt 同构：基础提示 + 风格子句 + （可选）用户背景子句。
"""

from dataclasses import dataclass
from typing import Literal, Mapping, Optional


ExplainAction = Literal["explain", "simpler", "examples"]

EXPLAIN_BASE_PROMPT = (
    "You are an explanation assistant. Your purpose is to make any topic understandable. "
    "Be clear, direct, and well-structured."
)

EXPLAIN_STYLE_CLAUSES: Mapping[str, str] = {
    "new": (
        "STYLE: Explain like I'm completely new. Start from absolute basics, use everyday "
        "language, define every term, build concepts step by step."
    ),
    "analogy": (
        "STYLE: Use real-world analogies. Center explanations around relatable comparisons "
        "from everyday life (cooking, driving, sports). Make analogies the main teaching tool."
    ),
    "minimal": (
        "STYLE: Avoid technical jargon. Use plain everyday words only. If a technical term is "
        "unavoidable, define it immediately. Focus on \"what it does\" not \"what it's called\"."
    ),
    "technical": (
        "STYLE: Increase technical depth. Provide comprehensive explanations with proper "
        "terminology. Include nuances, edge cases, and connections to related concepts."
    ),
}

EXPLAIN_LEVEL_CLAUSES: Mapping[str, str] = {
    "beginner": "USER LEVEL: Beginner - Use extremely simple language, many everyday examples, explain why things matter.",
    "intermediate": "USER LEVEL: Intermediate - Balance accessibility with depth, can reference common concepts.",
    "advanced": "USER LEVEL: Advanced - Can use technical language, focus on nuances and deeper insights.",
    "expert": "USER LEVEL: Expert - Assume strong foundations, focus on cutting-edge details and subtleties.",
}

EXPLAIN_DOMAIN_CLAUSES: Mapping[str, str] = {
    "studying": "CONTEXT: Student - Frame in learning terms, include memory aids.",
    "programming": "CONTEXT: Developer - Can use programming analogies, appreciate logical structure.",
    "general": "CONTEXT: General user - Use universally relatable examples.",
}


@dataclass(frozen=True)
class ExplainRequest:
    topic: str
    style: str
    adapt_to_background: bool = True
    user_knowledge_level: Optional[str] = None
    user_domain: Optional[str] = None
    action: ExplainAction = "explain"
    previous_explanation: Optional[str] = None


def compose_explain_prompt(request: ExplainRequest) -> str:
    parts = [EXPLAIN_BASE_PROMPT]
    style_clause = EXPLAIN_STYLE_CLAUSES.get(request.style)
    if style_clause:
        parts.append(style_clause)

    if request.adapt_to_background and request.user_knowledge_level:
        level_clause = EXPLAIN_LEVEL_CLAUSES.get(request.user_knowledge_level)
        if level_clause:
            parts.append(level_clause)

    if request.adapt_to_background and request.user_domain:
        parts.append(
            EXPLAIN_DOMAIN_CLAUSES.get(request.user_domain)
            or f"Use examples from {request.user_domain} when possible."
        )
    return " ".join(parts)


def build_explain_user_message(request: ExplainRequest) -> str:
    """根据 action 生成用户消息；simpler/examples 缺少上一次讲解时退回普通讲解。"""

    if request.action == "simpler" and request.previous_explanation:
        return (
            "The following explanation was too complex. Please make it even simpler and more "
            f"accessible:\n\n\"{request.previous_explanation}\""
        )
    if request.action == "examples" and request.previous_explanation:
        return (
            "Please add more practical, real-world examples to this explanation:\n\n"
            f"\"{request.previous_explanation}\""
        )
    return f"Please explain: {request.topic}"
