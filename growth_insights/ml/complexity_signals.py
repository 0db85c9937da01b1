"""
Implementation complexity signals for recommendations

The scorer only consumes ComplexitySignals. Where recommendations carry
structured effort data, implement ComplexityAnalyzer over that instead of
parsing text.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
import re


@dataclass(frozen=True)
class ComplexitySignals:
    requires_integration: bool = False
    requires_new_tools: bool = False
    requires_training: bool = False
    requires_high_budget: bool = False
    is_long_term: bool = False
    is_immediate: bool = False


class ComplexityAnalyzer(ABC):
    """Derives complexity signals for a recommendation"""

    @abstractmethod
    def analyze(self, recommendation: str) -> ComplexitySignals:
        pass


class KeywordComplexityAnalyzer(ComplexityAnalyzer):
    """Keyword heuristics over free-text recommendations"""

    PATTERNS = {
        "requires_integration": re.compile(r"integrate|api|technical|system|platform|code"),
        "requires_new_tools": re.compile(r"new tool|software|platform|service|subscription"),
        "requires_training": re.compile(r"train|learn|skill|educate|workshop"),
        "requires_high_budget": re.compile(r"increase.*budget|invest.*\$|spend.*more|hire|purchase"),
        "is_long_term": re.compile(r"month|quarter|year|long.term|gradual"),
        "is_immediate": re.compile(r"immediate|now|today|urgent|quickly|asap"),
    }

    def analyze(self, recommendation: str) -> ComplexitySignals:
        text = (recommendation or "").lower()
        return ComplexitySignals(**{
            name: bool(pattern.search(text)) for name, pattern in self.PATTERNS.items()
        })
