"""Response post-processor for cleaning up LLM outputs.

Removes conversational filler, unsolicited follow-up questions, duplicate
paragraphs and stray foreign-script runs, and normalizes code fences and
whitespace. The pipeline is re-applied until its output stops changing, so
``post_process(post_process(x)) == post_process(x)``.
"""

import logging
import re

from src.models.query import Intent

logger = logging.getLogger(__name__)

MAX_PIPELINE_PASSES = 10

DEFAULT_FENCE_LANGUAGE = "text"
DEDUP_MIN_LENGTH = 15
DEDUP_KEY_LENGTH = 120

_APOS = "['’]"

LEADING_FILLERS = [
    re.compile(
        r"^(?:Sure|Absolutely|Certainly|Of course|Great question|That" + _APOS + r"s a great question"
        r"|Happy to help|I" + _APOS + r"d be happy to help|No problem|Glad you asked|Good question)"
        r"\b[!.,]*\s*",
        re.IGNORECASE,
    ),
    re.compile(
        r"^(?:(?:Okay|Alright)(?:[,!.]\s*|\s+)(?:so(?:,\s*|\s+))?|(?:Well|Right),\s*|So(?:,\s*|\s+))",
        re.IGNORECASE,
    ),
    re.compile(
        r"^Here(?:" + _APOS + r"s| is| are)\s+(?:a |the |my |an |some )?"
        r"(?:(?:few|couple|several|some|brief|quick|comprehensive|detailed)\s+)?"
        r"(?:options?|ways?|approaches?|suggestions?|ideas?|examples?|thoughts?|things?"
        r"|points?|steps?|methods?)\b.*?[:.!]\s*",
        re.IGNORECASE,
    ),
    re.compile(
        r"^Let me (?:explain|walk you through|break (?:this|it) down|help|show|provide|give)\b"
        r".*?[:.!]\s*",
        re.IGNORECASE,
    ),
    re.compile(
        r"^I" + _APOS + r"ll (?:explain|show|walk|break|help|provide|give|cover)\b.*?[:.!]\s*",
        re.IGNORECASE,
    ),
    re.compile(
        r"^That" + _APOS + r"s (?:a |an )?(?:great|good|excellent|interesting|important|valid|fair)\b"
        r".*?[.!]\s*",
        re.IGNORECASE,
    ),
    re.compile(r"^I (?:understand|see|get it)\b.*?[.!]\s*", re.IGNORECASE),
]

# Closers only match a whole final line.
CLOSING_FILLERS = [
    re.compile(
        r"(?:\A|\n+)[ \t]*(?:Hope this helps|Let me know if you (?:have|need) (?:any|more)"
        r"|Feel free to (?:ask|reach|let)|Happy to help|I hope (?:that|this) (?:helps|answers)"
        r"|Don" + _APOS + r"t hesitate to|If you (?:have|need) (?:any|more)|Is there anything else"
        r"|Would you like me to|Shall I|Want me to)\b[^\n]*\s*\Z",
        re.IGNORECASE,
    ),
    re.compile(
        r"(?:\A|\n+)[ \t]*(?:A (?:good |great |useful )?next step (?:is|would be|could be)\b"
        r"|You (?:could|might|may|can) (?:also |want to )?"
        r"(?:explore|try|look into|consider|experiment|check out|investigate)\b"
        r"|(?:As )?(?:a |an )?(?:further|additional|next) (?:step|exercise|exploration)\b"
        r"|(?:Consider|Try) (?:exploring|looking into|experimenting)\b)[^\n]*\s*\Z",
        re.IGNORECASE,
    ),
]

_QUESTION_OPENERS = (
    r"(?:What|How|Could|Would|Can|Are there|Is there|Do you|Should|Why|Where|When|Which"
    r"|Have you)\b"
)
_OTHER_OPENERS = (
    r"(?:Is|Does|Will|Did|Won" + _APOS + r"t|Doesn" + _APOS + r"t|Isn" + _APOS + r"t"
    r"|Aren" + _APOS + r"t|Wasn" + _APOS + r"t|Weren" + _APOS + r"t)\s"
)

# Each shape of trailing follow-up question gets its own pass, in this order.
TRAILING_QUESTIONS = [
    re.compile(r"\n+(?:[ \t]*" + _QUESTION_OPENERS + r"[^\n]*\?\s*){1,5}\Z", re.IGNORECASE),
    re.compile(
        r"\n+(?:[ \t]*[-*•][ \t]*" + _QUESTION_OPENERS + r"[^\n]*\?\s*){1,5}\Z",
        re.IGNORECASE,
    ),
    re.compile(
        r"\n+(?:[ \t]*\d+\.[ \t]*" + _QUESTION_OPENERS + r"[^\n]*\?\s*){1,5}\Z", re.IGNORECASE
    ),
    re.compile(
        r"\n+[ \t]*(?:[-*•][ \t]*)?" + _QUESTION_OPENERS + r"[^\n]*\?\s*\Z", re.IGNORECASE
    ),
    re.compile(
        r"\n+[ \t]*(?:[-*•][ \t]*|\d+\.[ \t]*)?" + _OTHER_OPENERS + r"[^\n]*\?\s*\Z",
        re.IGNORECASE,
    ),
    re.compile(r"(?:\n{2,}[^\n]*\?[ \t]*)+\s*\Z"),
]

FENCE_LINE = re.compile(r"^(\s*)```(.*)$")
EXCESS_NEWLINES = re.compile(r"\n{4,}")
TRAILING_RULE = re.compile(r"(?:\n+---[ \t]*)+\s*\Z")
PARAGRAPH_SPLIT = re.compile(r"\n{2,}")
WHITESPACE_RUN = re.compile(r"\s+")

FOREIGN_SCRIPT_RUNS = re.compile(
    "["
    "\u0400-\u04FF\u0500-\u052F\u2DE0-\u2DFF\uA640-\uA69F"  # Cyrillic
    "\u4E00-\u9FFF\u3400-\u4DBF\uF900-\uFAFF"  # CJK
    "\u0600-\u06FF\u0750-\u077F"  # Arabic
    "\u0900-\u097F"  # Devanagari
    "]+"
)
DOUBLE_SPACES = re.compile(r" {2,}")


def _sub_until_stable(patterns: list[re.Pattern], text: str) -> str:
    """Apply each pattern in order, repeating the sweep until nothing matches.

    Every substitution shortens the text, so the loop terminates.
    """
    while True:
        previous = text
        for pattern in patterns:
            text = pattern.sub("", text, count=1)
        if text == previous:
            return text


def _iter_fence_state(lines: list[str]):
    """Yield (line, is_fence_line, inside_fence) for each line.

    An opening fence is a ``` line outside a block (tagged or not); a closing
    fence is a bare ``` line inside one.
    """
    in_fence = False
    for line in lines:
        match = FENCE_LINE.match(line)
        if match is None:
            yield line, False, in_fence
            continue
        if in_fence and not match.group(2).strip():
            yield line, True, True
            in_fence = False
        elif not in_fence:
            yield line, True, False
            in_fence = True
        else:
            yield line, False, True


class ResponsePostProcessor:
    """Cleans and formats LLM responses for user presentation."""

    def __init__(self, max_passes: int = MAX_PIPELINE_PASSES):
        self.max_passes = max_passes
        self.steps = [
            self.strip_leading_filler,
            self.strip_closing_filler,
            self.strip_trailing_questions,
            self.tag_code_fences,
            self.collapse_blank_lines,
            self.capitalize_first,
            self.strip_trailing_rule,
            self.dedupe_paragraphs,
            self.strip_foreign_scripts,
        ]

    def process(self, raw_text: str, intent: Intent | None = None) -> str:
        """Run the cleanup pipeline until the text is stable.

        Args:
            raw_text: Full response accumulated over all continuation passes
            intent: Classified intent of the request (for diagnostics)

        Returns:
            Cleaned text
        """
        text = raw_text or ""
        for _ in range(self.max_passes):
            cleaned = self._apply_once(text)
            if cleaned == text:
                break
            text = cleaned
        else:
            logger.debug(f"Post-processing did not settle after {self.max_passes} passes")

        removed = len(raw_text or "") - len(text)
        if removed > 0:
            label = intent.value if intent else "unknown"
            logger.debug(f"Post-processing removed {removed} characters ({label})")
        return text

    def _apply_once(self, text: str) -> str:
        text = text.strip()
        for step in self.steps:
            text = step(text)
        return text.strip()

    def strip_leading_filler(self, text: str) -> str:
        """Remove greeting/acknowledgement openers, however many are stacked."""
        return _sub_until_stable(LEADING_FILLERS, text)

    def strip_closing_filler(self, text: str) -> str:
        """Remove trailing "hope this helps" closers and next-step suggestions."""
        return _sub_until_stable(CLOSING_FILLERS, text)

    def strip_trailing_questions(self, text: str) -> str:
        """Remove unsolicited follow-up questions at the end of the response."""
        return _sub_until_stable(TRAILING_QUESTIONS, text)

    def tag_code_fences(self, text: str) -> str:
        """Give untagged opening fences a generic language tag."""
        if "```" not in text:
            return text

        lines = []
        for line, is_fence, inside in _iter_fence_state(text.split("\n")):
            if is_fence and not inside and not line.strip()[3:].strip():
                indent = line[: len(line) - len(line.lstrip())]
                line = f"{indent}```{DEFAULT_FENCE_LANGUAGE}"
            lines.append(line)
        return "\n".join(lines)

    def collapse_blank_lines(self, text: str) -> str:
        return EXCESS_NEWLINES.sub("\n\n\n", text)

    def capitalize_first(self, text: str) -> str:
        if text and "a" <= text[0] <= "z":
            return text[0].upper() + text[1:]
        return text

    def strip_trailing_rule(self, text: str) -> str:
        return TRAILING_RULE.sub("", text)

    def dedupe_paragraphs(self, text: str) -> str:
        """Drop paragraphs whose normalized 120-character prefix was already seen.

        Only applies to texts with more than two paragraphs. Paragraphs shorter
        than 15 characters are always kept.
        """
        paragraphs = PARAGRAPH_SPLIT.split(text)
        if len(paragraphs) <= 2:
            return text

        seen: set[str] = set()
        kept = []
        for paragraph in paragraphs:
            normalized = WHITESPACE_RUN.sub(" ", paragraph.strip()).lower()
            if len(normalized) < DEDUP_MIN_LENGTH:
                kept.append(paragraph)
                continue
            key = normalized[:DEDUP_KEY_LENGTH]
            if key in seen:
                continue
            seen.add(key)
            kept.append(paragraph)

        if len(kept) == len(paragraphs):
            return text

        logger.debug(f"Removed {len(paragraphs) - len(kept)} duplicate paragraphs")
        return "\n\n".join(kept)

    def strip_foreign_scripts(self, text: str) -> str:
        """Remove Cyrillic, CJK, Arabic and Devanagari runs outside code blocks.

        Spacing and punctuation are tidied only on lines where a run was removed.
        """
        if not FOREIGN_SCRIPT_RUNS.search(text):
            return text

        lines = []
        for line, is_fence, inside in _iter_fence_state(text.split("\n")):
            if not is_fence and not inside:
                stripped = FOREIGN_SCRIPT_RUNS.sub("", line)
                if stripped != line:
                    stripped = DOUBLE_SPACES.sub(" ", stripped)
                    line = stripped.replace(" .", ".").replace(" ,", ",")
            lines.append(line)
        return "\n".join(lines)


_default_processor = ResponsePostProcessor()


def post_process(raw_text: str, intent: Intent | None = None) -> str:
    """Clean a raw response with the default processor."""
    return _default_processor.process(raw_text, intent)
