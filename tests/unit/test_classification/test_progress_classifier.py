"""
Unit tests for build output classification.
"""

import pytest

from buildsupervisor.classification import (
    DEFAULT_PROGRESS_RULES,
    ProgressUpdate,
    RuleBasedProgressClassifier,
    create_classifier,
)
from buildsupervisor.models.config import ProgressRule


@pytest.mark.unit
class TestDefaultRules:
    """Test cases for the built-in marker table."""

    def setup_method(self):
        self.classifier = RuleBasedProgressClassifier()

    @pytest.mark.parametrize(
        "line,phase,percent",
        [
            ("Getting Flutter dependencies...", "dependencies", 20),
            ("Starting Flutter build for android", "build_start", 30),
            ("Running Gradle task 'assembleRelease'...", "compile", 50),
            ("✓ Built build/app/outputs/flutter-apk/app-release.apk (18.2MB)", "packaging", 90),
            ("Build completed successfully", "complete", 100),
        ],
    )
    def test_markers(self, line, phase, percent):
        update = self.classifier.classify(line)

        assert update is not None
        assert update.phase == phase
        assert update.percent == percent

    def test_unrelated_line_is_ignored(self):
        assert self.classifier.classify("Downloading https://storage.googleapis.com/...") is None

    def test_empty_line_is_ignored(self):
        assert self.classifier.classify("") is None

    def test_highest_priority_wins(self):
        """A line carrying several markers maps to the most advanced phase."""
        update = self.classifier.classify("Getting Flutter dependencies; Build completed successfully")

        assert update == ProgressUpdate(phase="complete", percent=100, message="Build completed!")

    def test_classify_is_pure(self):
        line = "Running Gradle task 'bundleRelease'"
        assert self.classifier.classify(line) == self.classifier.classify(line)

    def test_classify_lines_drops_non_matches(self):
        updates = self.classifier.classify_lines(
            ["noise", "Getting Flutter dependencies", "more noise", "Starting Flutter build"]
        )

        assert [u.percent for u in updates] == [20, 30]

    def test_defaults_are_sorted_by_priority(self):
        priorities = [rule.priority for rule in self.classifier.rules]
        assert priorities == sorted(priorities, reverse=True)
        assert len(self.classifier.rules) == len(DEFAULT_PROGRESS_RULES)


@pytest.mark.unit
class TestConfiguredRules:
    """Test cases for classifiers built from configured rules."""

    def test_regex_rule(self):
        classifier = RuleBasedProgressClassifier(
            [ProgressRule(phase="compile", percent=60, message="Compiling...", pattern=r"^Compiling \w+", match_type="regex")]
        )

        assert classifier.classify("Compiling main.dart").percent == 60
        assert classifier.classify("Now Compiling main.dart") is None

    def test_equal_priority_keeps_order(self):
        classifier = RuleBasedProgressClassifier(
            [
                ProgressRule(phase="first", percent=10, message="first", pattern="step"),
                ProgressRule(phase="second", percent=20, message="second", pattern="step"),
            ]
        )

        assert classifier.classify("step").phase == "first"

    def test_create_classifier_falls_back_to_defaults(self):
        classifier = create_classifier([])

        assert classifier.classify("Getting Flutter dependencies").percent == 20

    def test_create_classifier_uses_configured_rules(self):
        classifier = create_classifier(
            [ProgressRule(phase="deps", percent=15, message="Fetching...", pattern="Fetching")]
        )

        assert classifier.classify("Fetching packages").percent == 15
        assert classifier.classify("Getting Flutter dependencies") is None
