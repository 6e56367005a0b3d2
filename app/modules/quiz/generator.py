"""True/false question generators (AI and math).

Provides:
- async generate_ai_questions(topic: str, n: int) -> list[GeneratedQuestion]
- generate_math_questions(...): list[GeneratedQuestion]

Generated questions are drafts; the question bank API decides whether to
persist them.
"""

from __future__ import annotations

import random
from typing import Iterable, Optional

from pydantic import BaseModel, Field
from pydantic_ai import Agent

from app.core.config import settings
from app.core.db.schemas.quiz import Difficulty


class GeneratedQuestion(BaseModel):
    text: str
    correct_answer: bool
    explanation: Optional[str] = None
    difficulty: Difficulty = Difficulty.MEDIUM


class GeneratedQuestionSet(BaseModel):
    """Structured output for true/false generation."""

    questions: list[GeneratedQuestion] = Field(default_factory=list)


def _build_google_model():
    """Build Google Gemini model for pydantic-ai (lazy import)."""
    from pydantic_ai.models.google import GoogleModel
    from pydantic_ai.providers.google import GoogleProvider

    provider = GoogleProvider(api_key=settings.gemini_api_key)
    return GoogleModel("gemini-2.5-flash", provider=provider)


def _build_openrouter_model():
    """Build OpenRouter model via OpenAI-compatible provider (lazy import)."""
    from pydantic_ai.models.openai import OpenAIChatModel
    from pydantic_ai.providers.openai import OpenAIProvider

    if not settings.openrouter_api_key:
        raise RuntimeError(
            "OpenRouter API key not configured. Set OPENROUTER_API_KEY in your environment."
        )

    provider = OpenAIProvider(
        api_key=settings.openrouter_api_key,
        base_url="https://openrouter.ai/api/v1",
    )
    return OpenAIChatModel(settings.openrouter_model, provider=provider)


def _build_model_by_settings():
    provider = (settings.model_provider or "google").lower()
    if provider == "openrouter":
        return _build_openrouter_model()
    return _build_google_model()


SYSTEM_PROMPT = (
    "You are an expert quiz author for school classrooms. Generate TRUE/FALSE statements. "
    "Return a JSON object that validates as GeneratedQuestionSet: {questions}. "
    "Each question has: {text, correct_answer, explanation, difficulty}. Rules: "
    "- Create exactly N statements (provided in the instruction). "
    "- text is a single declarative statement that is either clearly true or clearly false. "
    "- correct_answer is true if the statement is true, false otherwise. "
    "- Mix true and false statements roughly evenly. "
    "- explanation is one short sentence a student can learn from. "
    "- difficulty is one of easy, medium, hard. "
    "- Avoid markdown; do not include code fences."
)


def _build_instruction(topic: str, n: int, difficulty: Optional[Difficulty]) -> str:
    level = difficulty.value if difficulty else "varied"
    return (
        "Create N true/false statements for the topic below. "
        "Return only the JSON object.\n\n"
        f"Topic: {topic}\n"
        f"N: {int(n)}\n"
        f"Difficulty: {level}"
    )


async def generate_ai_questions(
    topic: str, n: int = 10, *, difficulty: Optional[Difficulty] = None
) -> list[GeneratedQuestion]:
    """Generate true/false questions using the configured model provider."""
    model = _build_model_by_settings()
    agent: Agent[None, GeneratedQuestionSet] = Agent[None, GeneratedQuestionSet](
        model=model,
        output_type=GeneratedQuestionSet,
        system_prompt=SYSTEM_PROMPT,
        retries=2,
    )
    res = await agent.run(_build_instruction(topic, n, difficulty))
    out: list[GeneratedQuestion] = []
    seen: set[str] = set()
    for q in res.output.questions:
        text = q.text.strip()
        # Skip blanks and repeats
        if not text or text.lower() in seen:
            continue
        seen.add(text.lower())
        out.append(
            GeneratedQuestion(
                text=text,
                correct_answer=bool(q.correct_answer),
                explanation=(q.explanation or "").strip() or None,
                difficulty=difficulty or q.difficulty,
            )
        )
    return out[:n]


def _rand_int(a: int, b: int) -> int:
    return random.randint(a, b)


def _wrong_result(ans: int) -> int:
    delta = random.choice((-10, -2, -1, 1, 2, 10))
    return ans + delta


def _gen_add(min_v: int, max_v: int, make_false: bool) -> GeneratedQuestion:
    a = _rand_int(min_v, max_v)
    b = _rand_int(min_v, max_v)
    ans = a + b
    shown = _wrong_result(ans) if make_false else ans
    return GeneratedQuestion(
        text=f"{a} + {b} = {shown}",
        correct_answer=not make_false,
        explanation=f"{a} + {b} = {ans}",
        difficulty=Difficulty.EASY,
    )


def _gen_sub(min_v: int, max_v: int, make_false: bool) -> GeneratedQuestion:
    a = _rand_int(min_v, max_v)
    b = _rand_int(min_v, a)
    ans = a - b
    shown = _wrong_result(ans) if make_false else ans
    return GeneratedQuestion(
        text=f"{a} - {b} = {shown}",
        correct_answer=not make_false,
        explanation=f"{a} - {b} = {ans}",
        difficulty=Difficulty.EASY,
    )


def _gen_mul(min_v: int, max_v: int, make_false: bool) -> GeneratedQuestion:
    # Keep factors small so the statement stays mental-math friendly
    hi = max(min_v, min(max_v, 12))
    a = _rand_int(min_v, hi)
    b = _rand_int(min_v, hi)
    ans = a * b
    shown = _wrong_result(ans) if make_false else ans
    return GeneratedQuestion(
        text=f"{a} × {b} = {shown}",
        correct_answer=not make_false,
        explanation=f"{a} × {b} = {ans}",
        difficulty=Difficulty.MEDIUM,
    )


def _gen_div(min_v: int, max_v: int, make_false: bool) -> GeneratedQuestion:
    lo = max(min_v, 1)
    hi = max(max_v, lo)
    # Divisor small enough that a quotient >= lo keeps the dividend <= hi
    b = _rand_int(1, max(1, min(hi // lo, max(hi // 4, 2))))
    ans = _rand_int(lo, max(lo, hi // b))
    a = ans * b
    shown = _wrong_result(ans) if make_false else ans
    return GeneratedQuestion(
        text=f"{a} ÷ {b} = {shown}",
        correct_answer=not make_false,
        explanation=f"{a} ÷ {b} = {ans} because {ans} × {b} = {a}",
        difficulty=Difficulty.MEDIUM,
    )


_MATH_OPS = {"add": _gen_add, "sub": _gen_sub, "mul": _gen_mul, "div": _gen_div}


def generate_math_questions(
    *,
    num_questions: int = 10,
    min_value: int = 1,
    max_value: int = 99,
    ops: Iterable[str] = ("add", "sub"),
    false_ratio: float = 0.5,
) -> list[GeneratedQuestion]:
    """Generate arithmetic true/false statements."""
    ops_list = [o for o in ops if o in _MATH_OPS] or ["add", "sub"]
    lo, hi = sorted((int(min_value), int(max_value)))
    ratio = min(max(float(false_ratio), 0.0), 1.0)
    out: list[GeneratedQuestion] = []
    for _ in range(max(1, int(num_questions))):
        op = random.choice(ops_list)
        out.append(_MATH_OPS[op](lo, hi, random.random() < ratio))
    return out
