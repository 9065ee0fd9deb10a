# src/skill_arena/integrity/features.py

from __future__ import annotations

"""
Feature vectors for submission similarity.

Every vector has the same length regardless of language:

    [0, FEATURE_BUCKETS)            token-frequency histogram (hashed buckets)
    [FEATURE_BUCKETS, FEATURE_LENGTH) structural signals

Only word-like tokens are counted (identifiers, keywords, numbers, string
literals); punctuation is ignored so that unrelated code does not look alike just
because both use parentheses. Counts are sublinear (1 + ln(count)).

Structural signals are log-scaled and down-weighted so they separate
near-duplicates without dominating the lexical part.

The language selects comment syntax, keyword sets and case sensitivity.
"""

import hashlib
import math
import re
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass

FEATURE_BUCKETS = 2048
STRUCTURE_FEATURES = 6
FEATURE_LENGTH = FEATURE_BUCKETS + STRUCTURE_FEATURES
STRUCTURE_WEIGHT = 0.25


@dataclass(frozen=True, slots=True)
class LanguageRules:
    name: str
    line_comments: tuple[str, ...]
    block_comment: tuple[str, str] | None
    control_keywords: frozenset[str]
    function_keywords: frozenset[str]
    case_sensitive: bool = True


_C_LIKE_CONTROL = frozenset({"if", "else", "for", "while", "do", "switch", "case", "try", "catch", "finally"})

LANGUAGES: dict[str, LanguageRules] = {
    "python": LanguageRules(
        name="python",
        line_comments=("#",),
        block_comment=None,
        control_keywords=frozenset({"if", "elif", "else", "for", "while", "try", "except", "finally", "with", "match", "case"}),
        function_keywords=frozenset({"def", "lambda", "class"}),
    ),
    "javascript": LanguageRules(
        name="javascript",
        line_comments=("//",),
        block_comment=("/*", "*/"),
        control_keywords=_C_LIKE_CONTROL,
        function_keywords=frozenset({"function", "class"}),
    ),
    "java": LanguageRules(
        name="java",
        line_comments=("//",),
        block_comment=("/*", "*/"),
        control_keywords=_C_LIKE_CONTROL,
        function_keywords=frozenset({"class", "interface", "void"}),
    ),
    "c": LanguageRules(
        name="c",
        line_comments=("//",),
        block_comment=("/*", "*/"),
        control_keywords=_C_LIKE_CONTROL,
        function_keywords=frozenset({"void", "struct"}),
    ),
    "go": LanguageRules(
        name="go",
        line_comments=("//",),
        block_comment=("/*", "*/"),
        control_keywords=frozenset({"if", "else", "for", "switch", "case", "select", "defer", "go"}),
        function_keywords=frozenset({"func", "struct", "interface"}),
    ),
    "sql": LanguageRules(
        name="sql",
        line_comments=("--",),
        block_comment=("/*", "*/"),
        control_keywords=frozenset({"case", "when", "if", "while", "loop"}),
        function_keywords=frozenset({"function", "procedure", "trigger", "view"}),
        case_sensitive=False,
    ),
}

_ALIASES = {
    "py": "python",
    "python3": "python",
    "js": "javascript",
    "jsx": "javascript",
    "ts": "javascript",
    "tsx": "javascript",
    "typescript": "javascript",
    "node": "javascript",
    "kotlin": "java",
    "csharp": "java",
    "c#": "java",
    "cpp": "c",
    "c++": "c",
    "golang": "go",
    "postgresql": "sql",
    "mysql": "sql",
}

GENERIC = LanguageRules(
    name="generic",
    line_comments=("//", "#"),
    block_comment=("/*", "*/"),
    control_keywords=_C_LIKE_CONTROL | frozenset({"elif", "except", "with"}),
    function_keywords=frozenset({"def", "function", "func", "fn", "class"}),
)

_TOKEN_RE = re.compile(
    r'"(?:\\.|[^"\\\n])*"'
    r"|'(?:\\.|[^'\\\n])*'"
    r"|`[^`]*`"
    r"|[A-Za-z_][A-Za-z0-9_]*"
    r"|\d+(?:\.\d+)?"
)


def rules_for(language: str | None) -> LanguageRules:
    key = (language or "").strip().lower()
    key = _ALIASES.get(key, key)
    return LANGUAGES.get(key, GENERIC)


def _bucket(token: str) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big") % FEATURE_BUCKETS


def _strip_line_comment(line: str, markers: tuple[str, ...]) -> tuple[str, bool]:
    """Cut the line at the first comment marker outside a string literal."""
    quote: str | None = None
    i = 0
    while i < len(line):
        ch = line[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in ("'", '"', "`"):
            quote = ch
        else:
            for m in markers:
                if line.startswith(m, i):
                    return line[:i], True
        i += 1
    return line, False


_STRING_LITERAL = r'"(?:\\.|[^"\\\n])*"' r"|'(?:\\.|[^'\\\n])*'" r"|`[^`]*`"


def _strip_block_comments(
        content: str,
        block: tuple[str, str] | None,
        line_markers: tuple[str, ...] = (),
) -> tuple[str, int]:
    """
    Remove block comments, leaving string literals and line comments alone.

    Strings and line comments are matched in the same scan, so "/*" inside a
    literal or after "//" never opens a block.
    """
    if block is None:
        return content, 0
    alternatives = [f"(?P<string>{_STRING_LITERAL})"]
    if line_markers:
        alternatives.append("(?P<line>" + "|".join(re.escape(m) + r"[^\n]*" for m in line_markers) + ")")
    alternatives.append(f"(?P<block>{re.escape(block[0])}.*?{re.escape(block[1])})")
    pattern = re.compile("|".join(alternatives), re.DOTALL)
    removed = 0

    def sub(m: re.Match[str]) -> str:
        nonlocal removed
        text = m.group(0)
        if m.lastgroup != "block":
            return text
        removed += text.count("\n") + 1
        # Keep line numbering stable.
        return "\n" * text.count("\n")

    return pattern.sub(sub, content), removed


def _indent_depth(line: str) -> int:
    expanded = line.expandtabs(4)
    return (len(expanded) - len(expanded.lstrip(" "))) // 4


def tokenize(content: str, language: str | None = None) -> list[str]:
    """Word-like tokens of `content` with comments removed."""
    code_lines, _, _ = _code_lines(content, rules_for(language))
    return _tokens(code_lines, rules_for(language))


def _code_lines(content: str, rules: LanguageRules) -> tuple[list[str], int, int]:
    text, comment_lines = _strip_block_comments(content or "", rules.block_comment, rules.line_comments)
    out: list[str] = []
    max_brace_depth = 0
    depth = 0
    for raw in text.splitlines():
        code, had_comment = _strip_line_comment(raw, rules.line_comments)
        if had_comment and not code.strip():
            comment_lines += 1
        for ch in code:
            if ch == "{":
                depth += 1
                max_brace_depth = max(max_brace_depth, depth)
            elif ch == "}":
                depth = max(0, depth - 1)
        out.append(code)
    return out, comment_lines, max_brace_depth


def _tokens(code_lines: Sequence[str], rules: LanguageRules) -> list[str]:
    tokens: list[str] = []
    for line in code_lines:
        for tok in _TOKEN_RE.findall(line):
            if not rules.case_sensitive and tok[0] not in "\"'`":
                tok = tok.lower()
            tokens.append(tok)
    return tokens


def extract_features(content: str, language: str | None = None) -> list[float]:
    """Deterministic, fixed-length (FEATURE_LENGTH) feature vector."""
    rules = rules_for(language)
    code_lines, comment_lines, brace_depth = _code_lines(content, rules)
    tokens = _tokens(code_lines, rules)

    vec = [0.0] * FEATURE_LENGTH
    for tok, count in Counter(tokens).items():
        vec[_bucket(tok)] += 1.0 + math.log(count)

    non_blank = [ln for ln in code_lines if ln.strip()]
    control = sum(1 for t in tokens if t in rules.control_keywords)
    functions = sum(1 for t in tokens if t in rules.function_keywords)
    nesting = max([brace_depth, *(_indent_depth(ln) for ln in non_blank)])
    avg_len = sum(len(ln.strip()) for ln in non_blank) / len(non_blank) if non_blank else 0.0

    structure = (
        len(non_blank),
        control,
        functions,
        comment_lines,
        nesting,
        avg_len / 10.0,
    )
    for i, value in enumerate(structure):
        vec[FEATURE_BUCKETS + i] = STRUCTURE_WEIGHT * math.log1p(value)
    return vec


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity clamped to [0, 1].

    Degenerate inputs are not errors: mismatched lengths or an all-zero vector -> 0.
    """
    if len(a) != len(b) or not a:
        return 0.0

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0 or norm_b == 0:
        return 0.0

    sim = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    return max(0.0, min(1.0, round(sim, 12)))


def _normalize_line(line: str) -> str:
    return " ".join(line.split())


def _is_meaningful(line: str) -> bool:
    return any(ch.isalnum() for ch in line)


def find_matched_lines(content_a: str, content_b: str) -> list[int]:
    """
    0-based indices of lines in `content_a` that also occur in `content_b`.

    Lines are compared after collapsing whitespace; comparison is case-sensitive.
    Blank and punctuation-only lines (e.g. a lone "}") never count as matches.
    """
    lines_b = {_normalize_line(ln) for ln in (content_b or "").splitlines()}
    matched: list[int] = []
    for idx, line in enumerate((content_a or "").splitlines()):
        norm = _normalize_line(line)
        if norm and _is_meaningful(norm) and norm in lines_b:
            matched.append(idx)
    return matched
