"""
Build output classification.

This module maps single lines of raw build output to structured progress
updates. Matching is heuristic, so the mapping lives behind the
``ProgressClassifier`` interface and can be swapped without touching the
process plumbing.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List, Optional, Pattern, Tuple

from ..models.config import ProgressRule

logger = logging.getLogger(__name__)


DEFAULT_PROGRESS_RULES: Tuple[ProgressRule, ...] = (
    ProgressRule(
        phase="complete",
        percent=100,
        message="Build completed!",
        pattern="Build completed successfully",
        priority=100,
    ),
    ProgressRule(
        phase="packaging",
        percent=90,
        message="Finalizing build...",
        pattern="Built build/app/outputs",
        priority=90,
    ),
    ProgressRule(
        phase="compile",
        percent=50,
        message="Compiling platform code...",
        pattern="Running Gradle task",
        priority=80,
    ),
    ProgressRule(
        phase="build_start",
        percent=30,
        message="Starting build process...",
        pattern="Starting Flutter build",
        priority=70,
    ),
    ProgressRule(
        phase="dependencies",
        percent=20,
        message="Getting dependencies...",
        pattern="Getting Flutter dependencies",
        priority=60,
    ),
)


@dataclass(frozen=True)
class ProgressUpdate:
    """Structured progress derived from one output line."""

    phase: str
    percent: int
    message: str


class ProgressClassifier(ABC):
    """
    Strategy mapping one line of process output to a progress update.

    Implementations must be pure: the same line always yields the same
    result and no state is kept between calls.
    """

    @abstractmethod
    def classify(self, line: str) -> Optional[ProgressUpdate]:
        """Return the progress a line signals, or None if it signals nothing."""

    def classify_lines(self, lines: Iterable[str]) -> List[ProgressUpdate]:
        """Classify several lines, dropping the ones that signal nothing."""
        updates = []
        for line in lines:
            update = self.classify(line)
            if update is not None:
                updates.append(update)
        return updates


class RuleBasedProgressClassifier(ProgressClassifier):
    """
    Classifier driven by an ordered list of ``ProgressRule``.

    Rules are evaluated by descending priority (stable for equal priorities)
    and the first matching rule wins.
    """

    def __init__(self, rules: Optional[Iterable[ProgressRule]] = None):
        rule_list = list(rules) if rules else list(DEFAULT_PROGRESS_RULES)
        rule_list.sort(key=lambda rule: rule.priority, reverse=True)
        self._rules: List[Tuple[ProgressRule, Optional[Pattern[str]]]] = [
            (rule, re.compile(rule.pattern) if rule.match_type == "regex" else None)
            for rule in rule_list
        ]

    @property
    def rules(self) -> List[ProgressRule]:
        return [rule for rule, _ in self._rules]

    def classify(self, line: str) -> Optional[ProgressUpdate]:
        """Classify a line of build output.

        Args:
            line: One line of stdout or stderr, with or without its newline.

        Returns:
            The update of the first matching rule, or None if no rule matches.

        Examples:
            >>> RuleBasedProgressClassifier().classify("Running Gradle task 'assembleRelease'...")
            ProgressUpdate(phase='compile', percent=50, message='Compiling platform code...')
            >>> RuleBasedProgressClassifier().classify("Downloading packages") is None
            True
        """
        if not line:
            return None

        for rule, compiled in self._rules:
            if compiled is not None:
                match = compiled.search(line) is not None
            else:
                match = rule.pattern in line

            if match:
                return ProgressUpdate(phase=rule.phase, percent=rule.percent, message=rule.message)

        return None


def create_classifier(rules: Optional[Iterable[ProgressRule]] = None) -> ProgressClassifier:
    """Build the default classifier, using ``rules`` when any are configured."""
    rule_list = list(rules or [])
    if rule_list:
        logger.debug(f"Using {len(rule_list)} configured progress rules")
    return RuleBasedProgressClassifier(rule_list or None)
