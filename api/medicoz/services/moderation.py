"""Content moderation for forum posts and comments.

A static blocklist filter: spam heuristics first, then a word-by-word
profanity check that never flags clinical vocabulary.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

PROFANITY: frozenset[str] = frozenset(
    {
        "fuck", "shit", "ass", "bitch", "damn", "hell", "crap",
        "bastard", "slut", "whore", "dick", "cock", "pussy",
    }
)

# Women's health vocabulary that must always be allowed through.
ALLOWED_HEALTH_TERMS: frozenset[str] = frozenset(
    {
        "vagina", "vulva", "breast", "breasts", "period", "periods",
        "menstruation", "menstrual", "ovulation", "cervix", "uterus",
        "pregnancy", "pregnant", "fertility", "infertility", "miscarriage",
        "abortion", "contraception", "pms", "menopause", "hormone",
        "hormones", "estrogen", "progesterone", "testosterone",
        "pap", "smear", "mammogram", "mastectomy", "hysterectomy",
        "endometriosis", "pcos", "fibroids", "cyst", "cysts",
        "discharge", "yeast", "infection", "uti", "std", "sti",
        "sex", "sexual", "sexuality", "libido", "orgasm",
        "tampon", "pad", "cycle", "ovary", "ovaries",
        "labia", "clitoris", "vaginal", "reproductive", "gynecologist",
        "obstetrician", "midwife", "doula", "lactation", "breastfeeding",
        "postpartum", "prenatal", "trimester", "embryo", "fetus",
        "caesarean", "epidural", "contraction", "labor", "delivery",
        "pelvic", "kegel", "incontinence", "prolapse", "nipple", "nipples",
        "puberty", "adolescent", "menarche", "menarch", "spotting",
        "cramp", "cramps", "ovulate", "ovulating", "implantation",
    }
)

# Letter -> look-alike characters
LEET_SUBSTITUTIONS: dict[str, tuple[str, ...]] = {
    "a": ("4", "@"),
    "e": ("3",),
    "i": ("1", "!"),
    "o": ("0",),
    "s": ("5", "$"),
    "t": ("7", "+"),
}

_NON_LETTERS = re.compile(r"[^a-z]")
_URL = re.compile(r"https?://[^\s]+", re.IGNORECASE)

_SPAM_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(.)\1{10,}", re.IGNORECASE),  # same character 11+ times
    re.compile(
        r"\b(buy|click here|subscribe|follow|check out)\b.*\b(http|www)\b",
        re.IGNORECASE,
    ),
    re.compile(r"[A-Z]{20,}"),  # shouting
)
MAX_URLS = 2

SPAM_REASON = "Content appears to be spam"
PROFANITY_REASON = "Content contains inappropriate language"


@dataclass
class ModerationResult:
    """Outcome of a content check."""

    is_allowed: bool
    reason: str | None = None
    flagged_words: list[str] = field(default_factory=list)


class ContentModerator:
    """Blocklist-based filter applied to post and comment submissions."""

    def __init__(
        self,
        profanity: frozenset[str] = PROFANITY,
        allowed_terms: frozenset[str] = ALLOWED_HEALTH_TERMS,
    ) -> None:
        self.profanity = profanity
        self.allowed_terms = allowed_terms

    def _variations(self, token: str) -> set[str]:
        """
        Single-level look-alike variants of a lower-cased raw token.

        Each letter's look-alikes are mapped back to the letter on their own
        ("sh1t" -> "shit", "@ss" -> "ass"); mixed substitutions are not undone.
        """
        variants = set()
        for letter, subs in LEET_SUBSTITUTIONS.items():
            restored = token
            for sub in subs:
                restored = restored.replace(sub, letter)
            if restored != token:
                variants.add(_NON_LETTERS.sub("", restored))
        return variants

    def moderate_content(self, text: str) -> tuple[bool, list[str]]:
        """
        Check text for profanity.

        Returns:
            (is_clean, flagged_words) where flagged_words holds the offending
            tokens as written (lower-cased, punctuation kept).
        """
        if not text or not text.strip():
            return True, []

        flagged: list[str] = []
        for word in text.lower().split():
            clean_word = _NON_LETTERS.sub("", word)
            if clean_word in self.allowed_terms:
                continue

            if clean_word in self.profanity:
                flagged.append(word)
                continue

            if any(v in self.profanity for v in self._variations(word)):
                flagged.append(word)

        return not flagged, flagged

    def clean_content(self, text: str) -> str:
        """Replace profane whole words with asterisks."""
        if not text:
            return text

        def _mask(match: re.Match[str]) -> str:
            word = match.group(0).lower()
            if word in self.allowed_terms or word not in self.profanity:
                return match.group(0)
            return "***"

        return re.sub(r"[A-Za-z]+", _mask, text)

    def is_spam(self, text: str) -> bool:
        if not text:
            return False
        if len(_URL.findall(text)) > MAX_URLS:
            return True
        return any(pattern.search(text) for pattern in _SPAM_PATTERNS)

    def check_content(self, text: str) -> ModerationResult:
        """Spam first, then profanity."""
        if self.is_spam(text):
            logger.info("Content rejected as spam")
            return ModerationResult(is_allowed=False, reason=SPAM_REASON)

        is_clean, flagged_words = self.moderate_content(text)
        if not is_clean:
            logger.info(f"Content rejected for language: {flagged_words}")
            return ModerationResult(
                is_allowed=False,
                reason=PROFANITY_REASON,
                flagged_words=flagged_words,
            )

        return ModerationResult(is_allowed=True)


# Shared instance
content_moderator = ContentModerator()
