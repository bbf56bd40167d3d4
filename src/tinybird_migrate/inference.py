"""Best-effort output column inference for pipe queries.

This is a heuristic over SQL text, not a SQL parser. It is kept behind the
``OutputColumnInferrer`` interface so a SQL-aware analyzer can replace it.
"""

from __future__ import annotations
import re
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from .parsers.base import split_top_level_comma

ALIAS_PATTERN = re.compile(r"\s+AS\s+[`\"]?([a-zA-Z_][a-zA-Z0-9_]*)[`\"]?\s*$", re.IGNORECASE)
TRAILING_IDENTIFIER_PATTERN = re.compile(r"(?:^|\.)[`\"]?([a-zA-Z_][a-zA-Z0-9_]*)[`\"]?\s*$")
WORD_PATTERN = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")
DISTINCT_PATTERN = re.compile(r"^DISTINCT\s+", re.IGNORECASE)


class OutputColumnInferrer(ABC):
    """Infers the output column names of a query."""

    @abstractmethod
    def infer(self, sql: str) -> List[str]:
        pass


def _top_level_keywords(sql: str) -> List[Tuple[str, int, int]]:
    """Keywords outside quotes, comments and parentheses as (word, start, end)."""
    words = []
    depth = 0
    i = 0
    length = len(sql)

    while i < length:
        char = sql[i]
        if char in ("'", '"', "`"):
            end = sql.find(char, i + 1)
            i = length if end < 0 else end + 1
            continue
        if sql.startswith("--", i):
            end = sql.find("\n", i)
            i = length if end < 0 else end + 1
            continue
        if char == "{" and sql.startswith("{{", i):
            end = sql.find("}}", i)
            i = length if end < 0 else end + 2
            continue
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif depth == 0 and (char.isalpha() or char == "_"):
            match = WORD_PATTERN.match(sql, i)
            words.append((match.group(0).upper(), match.start(), match.end()))
            i = match.end()
            continue
        i += 1

    return words


def extract_select_list(sql: str) -> Optional[str]:
    """Text between the first top-level SELECT and its FROM."""
    select_end: Optional[int] = None
    for word, start, end in _top_level_keywords(sql):
        if select_end is None:
            if word == "SELECT":
                select_end = end
        elif word == "FROM":
            return sql[select_end:start].strip()
    return None


class HeuristicOutputInferrer(OutputColumnInferrer):
    """Reads aliases and bare column names from the first SELECT list.

    ``SELECT *`` contributes nothing, unnamed expressions get ``column_<n>``
    placeholders, and duplicate names keep their first position.
    """

    def infer(self, sql: str) -> List[str]:
        select_list = extract_select_list(sql)
        if not select_list:
            return []

        select_list = DISTINCT_PATTERN.sub("", select_list)
        columns: List[str] = []
        for position, expression in enumerate(split_top_level_comma(select_list), start=1):
            name = self._column_name(expression.strip(), position)
            if name is not None and name not in columns:
                columns.append(name)
        return columns

    @staticmethod
    def _column_name(expression: str, position: int) -> Optional[str]:
        if expression == "*" or expression.endswith(".*"):
            return None

        alias = ALIAS_PATTERN.search(expression)
        if alias:
            return alias.group(1)

        if not expression.endswith(")"):
            identifier = TRAILING_IDENTIFIER_PATTERN.search(expression)
            if identifier:
                return identifier.group(1)

        return f"column_{position}"
