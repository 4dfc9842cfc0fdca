"""Parsers for the diff markup of row activities."""

from .diff_parser import DiffParser, FieldClassifier
from .polarity_rules import PolarityClassifier

__all__ = ["DiffParser", "FieldClassifier", "PolarityClassifier"]
