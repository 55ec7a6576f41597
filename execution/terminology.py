"""Domain terminology extraction for specification prompts.

Pulls the user's own terms out of the project description and discovery
answers, so the generated specification names things the way the user
does. All extraction is regex-based and deterministic.
"""

import re

MAX_TERMS = 30

# Common English and filler words never worth echoing
STOP_WORDS = frozenset([
    "a", "an", "the", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "shall", "can", "need", "must", "ought",
    "i", "you", "he", "she", "it", "we", "they", "me", "him", "her", "us",
    "my", "your", "his", "its", "our", "their", "this", "that", "these",
    "those", "what", "which", "who", "whom", "when", "where", "why", "how",
    "all", "each", "every", "both", "few", "more", "most", "other", "some",
    "such", "no", "nor", "not", "only", "own", "same", "so", "than", "too",
    "very", "just", "but", "and", "or", "if", "then", "because", "as",
    "until", "while", "of", "at", "by", "for", "with", "about", "against",
    "between", "through", "during", "before", "after", "above", "below",
    "to", "from", "up", "down", "in", "out", "on", "off", "over", "under",
    "again", "further", "once", "here", "there", "any",
    "want", "wants", "like", "likes", "think", "thinks", "know", "knows",
    "make", "makes", "made", "use", "uses", "used", "also", "get", "gets",
    "got", "let", "something", "anything", "everything", "nothing",
    "app", "application", "system", "thing", "things", "way", "ways",
    "yes", "maybe", "probably", "sure", "okay", "well",
])

# Multi-word and compound phrases
PHRASE_PATTERNS = [
    re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)+)\b"),
    re.compile(r"\b(\w+\s+(?:API|SDK|CLI|UI|UX|DB|AI|ML|MCP))\b", re.IGNORECASE),
    re.compile(r"\b((?:user|admin|data|error|auth)\s+\w+)\b", re.IGNORECASE),
    re.compile(r"\b(\w+[-_]\w+(?:[-_]\w+)*)\b"),
]

CAMEL_CASE = re.compile(r"\b[A-Z][a-z]+(?:[A-Z][a-z]+)+\b")
ALL_CAPS = re.compile(r"\b[A-Z]{2,}(?:_[A-Z]+)*\b")
# Quotes must not touch a word character, so apostrophes in "don't" never open one
QUOTED = re.compile(r"(?<!\w)[\"']([^\"'\n]+)[\"'](?!\w)")


def extract_phrases(text: str) -> list[str]:
    """Return compound phrases whose words are all non-stop words."""
    phrases = []
    for pattern in PHRASE_PATTERNS:
        for match in pattern.finditer(text):
            phrase = match.group(1).strip()
            if all(word.lower() not in STOP_WORDS for word in phrase.split()):
                phrases.append(phrase)
    return phrases


def extract_repeated_words(text: str) -> list[str]:
    """Return lower-cased words of 4+ letters used at least twice, most frequent first."""
    counts = {}
    for word in re.sub(r"[^\w\s-]", " ", text).split():
        if len(word) <= 3 or word.isdigit() or word.lower() in STOP_WORDS:
            continue
        counts[word.lower()] = counts.get(word.lower(), 0) + 1
    repeated = [word for word, count in counts.items() if count >= 2]
    return sorted(repeated, key=lambda word: -counts[word])


def extract_proper_nouns(text: str) -> list[str]:
    """Return CamelCase identifiers and acronyms of three or more letters."""
    nouns = CAMEL_CASE.findall(text)
    nouns.extend(term for term in ALL_CAPS.findall(text) if len(term) > 2)
    return nouns


def extract_quoted_terms(text: str) -> list[str]:
    """Return terms the user put in quotes."""
    terms = []
    for match in QUOTED.finditer(text):
        term = match.group(1).strip()
        if 2 < len(term) < 50:
            terms.append(term)
    return terms


def extract_terminology(description: str, answers: list[dict] | None = None) -> list[str]:
    """Extract the domain terms a specification should echo.

    Args:
        description: The project description.
        answers: Discovery Q&A dicts; only their 'answer' text is used.

    Returns:
        Up to MAX_TERMS unique terms, longest (most specific) first.
    """
    text = " ".join([description or ""] + [qa.get("answer", "") for qa in answers or []])

    found = (
        extract_phrases(text)
        + extract_repeated_words(text)
        + extract_proper_nouns(text)
        + extract_quoted_terms(text)
    )
    terms = [term for term in dict.fromkeys(found) if len(term) > 2]
    return sorted(terms, key=len, reverse=True)[:MAX_TERMS]
