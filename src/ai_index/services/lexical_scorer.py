"""
Lexical relevance scoring.

Scores chunk text against a query in [0, 1] as a weighted blend of three
signals, strongest first:

    phrase  (weight 3)  query tokens occur contiguously, in order
    terms   (weight 2)  fraction of distinct query tokens present as whole tokens
    fuzzy   (weight 1)  fraction of distinct query tokens present as substrings
"""

import re
from typing import List

_TOKEN_RE = re.compile(r"\w+")

PHRASE_WEIGHT = 3.0
TERM_WEIGHT = 2.0
FUZZY_WEIGHT = 1.0
_TOTAL_WEIGHT = PHRASE_WEIGHT + TERM_WEIGHT + FUZZY_WEIGHT


def tokenize(text: str) -> List[str]:
    """Lowercase word tokens; letters and digits from any script, plus underscore."""
    return _TOKEN_RE.findall(text.lower())


class LexicalScorer:
    """
    Scores texts against one query.

    Build once per query and call score() for every candidate.
    """

    def __init__(self, query: str):
        self.query = query
        self.tokens = tokenize(query)
        self.distinct_tokens = list(dict.fromkeys(self.tokens))
        self._phrase = " " + " ".join(self.tokens) + " "

    def score(self, text: str) -> float:
        """
        Args:
            text: Candidate chunk content

        Returns:
            Score in [0, 1]; 0 when the query has no tokens
        """
        if not self.distinct_tokens or not text:
            return 0.0

        lowered = text.lower()
        text_tokens = tokenize(lowered)
        token_set = set(text_tokens)

        phrase = 1.0 if self._phrase in " " + " ".join(text_tokens) + " " else 0.0
        terms = sum(1 for t in self.distinct_tokens if t in token_set) / len(self.distinct_tokens)
        fuzzy = sum(1 for t in self.distinct_tokens if t in lowered) / len(self.distinct_tokens)

        return (PHRASE_WEIGHT * phrase + TERM_WEIGHT * terms + FUZZY_WEIGHT * fuzzy) / _TOTAL_WEIGHT
