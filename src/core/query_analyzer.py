"""Query analyzer: intent classification and complexity estimation.

Both functions are pure and total. Classification walks an ordered list of
rules and returns the intent of the first rule that matches; lower rules are
never consulted once a higher one fires. The order is load-bearing.

Keyword lists are matched as whole words (or phrases) with common English
inflections, so "functions" matches "function" but "capital" does not match
"api".
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache

from src.models.query import Intent

logger = logging.getLogger(__name__)

# Product / shopping
PRODUCT_STRONG_SIGNALS = [
    "buy",
    "purchase",
    "shop",
    "shopping",
    "add to cart",
    "order online",
    "where to buy",
    "cheapest",
    "price of",
    "cost of",
    "worth buying",
    "deals on",
]
PRODUCT_CONTEXT_SIGNALS = [
    "amazon",
    "flipkart",
    "ebay",
    "best buy",
    "walmart",
    "ecommerce",
    "e-commerce",
]
PRODUCT_COMPARISON_SIGNALS = ["vs", "comparison", "compare", "alternative to", "better than"]
# A comparison mentioning any of these is a technology comparison, not shopping.
TECH_COMPARISON_EXCLUSIONS = [
    "react",
    "vue",
    "angular",
    "python",
    "java",
    "rust",
    "go",
    "language",
    "framework",
    "library",
    "database",
    "sql",
    "nosql",
    "api",
    "rest",
    "graphql",
    "pattern",
    "architecture",
    "algorithm",
    "approach",
    "method",
    "strategy",
    "technique",
    "paradigm",
    "protocol",
    "linux",
    "windows",
    "macos",
]

# Live / real-time
LIVE_MARKERS = [
    "weather",
    "stock price",
    "stock market",
    "news today",
    "latest news",
    "current events",
    "who won",
    "score",
    "happening now",
    "right now",
    "breaking",
    "trending",
    "live score",
    "exchange rate",
    "crypto price",
    "bitcoin price",
    "market cap",
]
LIVE_CONTEXTUAL = [
    "today",
    "current",
    "latest",
    "right now",
    "this week",
    "this month",
    "this year",
    "recently",
    "just happened",
    "status of",
    "update on",
]
LIVE_FACTUAL_MARKERS = ["news", "price", "score", "weather", "who", "what happened", "status"]

COMPARISON_PATTERN = re.compile(
    r"\bvs\b|\bversus\b|which (?:should|(?:one|is|are) (?:better|best))"
    r"|\bcompare\b.*\bfor\b|\bcomparison\b",
    re.IGNORECASE,
)
COMPARISON_CODE_MARKERS = ["fix", "debug", "error"]

# Coding
CODING_STRONG = [
    "function",
    "debug",
    "error",
    "exception",
    "stack trace",
    "compile",
    "runtime",
    "syntax",
    "api",
    "endpoint",
    "database",
    "query",
    "sql",
    "regex",
    "algorithm",
    "implement",
    "refactor",
    "optimize",
    "deploy",
    "dockerfile",
    "kubernetes",
    "aws",
    "azure",
    "typescript",
    "javascript",
    "python",
    "rust",
    "java",
    "golang",
    "react",
    "vue",
    "angular",
    "node",
    "express",
    "django",
    "flask",
    "spring",
    "component",
    "middleware",
    "webhook",
    "authentication",
    "authorization",
    "jwt",
    "oauth",
    "cors",
    "graphql",
    "rest api",
    "unit test",
    "integration test",
    "ci/cd",
    "pipeline",
    "docker",
    "nginx",
    "webpack",
    "vite",
]
CODING_CONTEXTUAL = [
    "code",
    "script",
    "program",
    "build",
    "fix",
    "repo",
    "git",
    "commit",
    "branch",
    "merge",
    "pull request",
    "package",
    "dependency",
    "import",
    "module",
    "class",
    "method",
    "interface",
    "type",
    "variable",
    "array",
    "object",
    "loop",
    "architecture",
    "design pattern",
    "microservice",
    "monolith",
    "serverless",
]
CODING_IMPERATIVE_OPENERS = ("how to", "how do")
CODING_IMPERATIVE_PHRASES = ["write a", "create a"]
CODE_FENCE = "```"

# Reasoning
REASONING_MARKERS = [
    "analyze",
    "analyse",
    "explain why",
    "what are the implications",
    "trade-offs",
    "tradeoffs",
    "pros and cons",
    "advantages and disadvantages",
    "should i",
    "would it be better",
    "what would happen if",
    "critique",
    "evaluate",
    "assess",
    "breakdown",
    "deep dive",
    "in depth",
    "comprehensive",
    "audit",
    "review this",
    "what are the risks",
    "strategy for",
]

# Research
RESEARCH_MARKERS = [
    "research",
    "study",
    "paper",
    "scientific",
    "history of",
    "evolution of",
    "how does",
    "what causes",
    "difference between",
    "relationship between",
    "impact of",
    "statistics on",
    "data on",
    "evidence for",
    "sources for",
]

LONG_PROMPT_WORDS = 50

# Complexity estimation
COMPLEXITY_BASELINE = 0.3
LENGTH_BANDS = [(100, 0.3), (50, 0.2), (20, 0.1)]  # (words greater than, bonus), first match wins
INTENT_WEIGHTS = {
    Intent.REASONING: 0.3,
    Intent.CODING: 0.25,
    Intent.RESEARCH: 0.2,
    Intent.LIVE: 0.1,
    Intent.GENERAL: 0.0,
}
DOCUMENT_BONUS = 0.15
EXTRA_QUESTION_BONUS = 0.1
MAX_EXTRA_QUESTIONS = 3

_INFLECTIONS = r"(?:s|es|d|ed|r|er|ers|ing|ging|ged)?"


@lru_cache(maxsize=1024)
def _keyword_pattern(keyword: str) -> re.Pattern:
    return re.compile(r"(?<!\w)" + re.escape(keyword) + _INFLECTIONS + r"(?!\w)")


def contains_keyword(text: str, keyword: str) -> bool:
    """Whole-word/phrase match of `keyword` in lowercase `text`, allowing inflections."""
    return _keyword_pattern(keyword).search(text) is not None


def count_keywords(text: str, keywords: list[str]) -> int:
    return sum(1 for k in keywords if contains_keyword(text, k))


def any_keyword(text: str, keywords: list[str]) -> bool:
    return any(contains_keyword(text, k) for k in keywords)


@dataclass(frozen=True)
class QuerySignals:
    """Normalised view of a prompt shared by all rules."""

    text: str
    word_count: int
    has_image: bool
    has_docs: bool

    @classmethod
    def from_prompt(cls, prompt: str, has_image: bool, has_docs: bool) -> "QuerySignals":
        text = (prompt or "").lower().strip()
        return cls(
            text=text,
            word_count=len(text.split()),
            has_image=has_image,
            has_docs=has_docs,
        )


@dataclass(frozen=True)
class IntentRule:
    """One (predicate, label) entry of the ordered classification chain."""

    name: str
    predicate: Callable[[QuerySignals], bool]
    intent: Intent


def is_product_query(prompt: str) -> bool:
    """Narrow product detector used for the product addendum and web grounding.

    Independent of the classifier: only strong purchase signals and marketplace
    names count, comparisons do not.
    """
    text = (prompt or "").lower()
    return any_keyword(text, PRODUCT_STRONG_SIGNALS) or any_keyword(
        text, PRODUCT_CONTEXT_SIGNALS
    )


def _is_product(s: QuerySignals) -> bool:
    if any_keyword(s.text, PRODUCT_STRONG_SIGNALS) or any_keyword(s.text, PRODUCT_CONTEXT_SIGNALS):
        return True
    is_comparison = any_keyword(s.text, PRODUCT_COMPARISON_SIGNALS) and not any_keyword(
        s.text, TECH_COMPARISON_EXCLUSIONS
    )
    return is_comparison and not s.has_docs


def _is_live_marker(s: QuerySignals) -> bool:
    return any_keyword(s.text, LIVE_MARKERS)


def _is_live_contextual(s: QuerySignals) -> bool:
    return any_keyword(s.text, LIVE_CONTEXTUAL) and any_keyword(s.text, LIVE_FACTUAL_MARKERS)


def _has_image(s: QuerySignals) -> bool:
    return s.has_image


def _is_pure_comparison(s: QuerySignals) -> bool:
    if not COMPARISON_PATTERN.search(s.text):
        return False
    return CODE_FENCE not in s.text and not any_keyword(s.text, COMPARISON_CODE_MARKERS)


def _is_coding_strong(s: QuerySignals) -> bool:
    return CODE_FENCE in s.text or any_keyword(s.text, CODING_STRONG)


def _is_coding_contextual(s: QuerySignals) -> bool:
    hits = count_keywords(s.text, CODING_CONTEXTUAL)
    if hits >= 2:
        return True
    imperative = s.text.startswith(CODING_IMPERATIVE_OPENERS) or any_keyword(
        s.text, CODING_IMPERATIVE_PHRASES
    )
    return hits >= 1 and imperative


def _is_reasoning(s: QuerySignals) -> bool:
    return any_keyword(s.text, REASONING_MARKERS)


def _is_research(s: QuerySignals) -> bool:
    return any_keyword(s.text, RESEARCH_MARKERS)


def _is_long_question(s: QuerySignals) -> bool:
    return s.word_count > LONG_PROMPT_WORDS and ("?" in s.text or s.has_docs)


INTENT_RULES: list[IntentRule] = [
    IntentRule("product", _is_product, Intent.LIVE),
    IntentRule("live_marker", _is_live_marker, Intent.LIVE),
    IntentRule("live_contextual", _is_live_contextual, Intent.LIVE),
    IntentRule("image", _has_image, Intent.LIVE),
    IntentRule("pure_comparison", _is_pure_comparison, Intent.GENERAL),
    IntentRule("coding_strong", _is_coding_strong, Intent.CODING),
    IntentRule("coding_contextual", _is_coding_contextual, Intent.CODING),
    IntentRule("reasoning", _is_reasoning, Intent.REASONING),
    IntentRule("research", _is_research, Intent.RESEARCH),
    IntentRule("long_question", _is_long_question, Intent.REASONING),
]


def match_rule(
    prompt: str, has_image: bool = False, has_docs: bool = False
) -> IntentRule | None:
    """Return the first matching rule, or None when the prompt falls through."""
    signals = QuerySignals.from_prompt(prompt, has_image, has_docs)
    for rule in INTENT_RULES:
        if rule.predicate(signals):
            return rule
    return None


def classify_intent(prompt: str, has_image: bool = False, has_docs: bool = False) -> Intent:
    """Classify a prompt into exactly one intent.

    Args:
        prompt: User prompt text
        has_image: Whether an image is attached
        has_docs: Whether documents are attached

    Returns:
        Intent of the first matching rule, GENERAL when none match
    """
    rule = match_rule(prompt, has_image, has_docs)
    if rule is None:
        logger.debug("Intent fallthrough -> general")
        return Intent.GENERAL

    logger.debug(f"Intent rule '{rule.name}' -> {rule.intent.value}")
    return rule.intent


def estimate_complexity(prompt: str, intent: Intent, has_docs: bool = False) -> float:
    """Estimate how much depth a response needs.

    Baseline 0.3, plus one length band (>100 words +0.3, >50 +0.2, >20 +0.1),
    plus the intent weight, plus 0.15 for documents, plus 0.1 per question mark
    beyond the first (at most 3 extra). Clamped to [0, 1].

    Args:
        prompt: User prompt text
        intent: Classified intent
        has_docs: Whether documents are attached

    Returns:
        Complexity score in [0, 1]
    """
    text = prompt or ""
    word_count = len(text.split())
    complexity = COMPLEXITY_BASELINE

    for threshold, bonus in LENGTH_BANDS:
        if word_count > threshold:
            complexity += bonus
            break

    complexity += INTENT_WEIGHTS.get(intent, 0.0)

    if has_docs:
        complexity += DOCUMENT_BONUS

    extra_questions = min(max(text.count("?") - 1, 0), MAX_EXTRA_QUESTIONS)
    complexity += EXTRA_QUESTION_BONUS * extra_questions

    return round(min(max(complexity, 0.0), 1.0), 4)
