"""Rules deciding whether a rendered value token was removed or added.

The diff markup signals polarity in several ways that changed over time: a
plus/minus icon next to the token, a strikethrough, or a red/green colour. A
profile is an ordered chain of rules; the first rule with an opinion wins and
tokens no rule recognises count as added.
"""

from typing import Dict, Optional, Protocol, Sequence, Tuple

from bs4 import Tag

from revtrail.core.shared_models import TokenPolarity

TOKEN_SELECTOR = ".choiceToken, .foreignRecord, .collaborator"
# Diff marker classes; a choice's own colour class (redBright, greenLight2) is not one
REMOVED_MARKER_CLASSES = frozenset(
    {"colors-background-negative", "colors-foreground-accent-negative"}
)
ADDED_MARKER_CLASSES = frozenset({"colors-background-success", "colors-foreground-success"})
COLOR_STYLE_PROPERTIES = frozenset({"color", "background", "background-color"})


def _classes(tag: Tag) -> str:
    return " ".join(tag.get("class") or [])


def _scope(token: Tag) -> Sequence[Tag]:
    """The token plus its wrapper, where the icon usually sits.

    The wrapper only counts when it holds no other token.
    """
    parent = token.parent
    if isinstance(parent, Tag) and len(parent.select(TOKEN_SELECTOR)) <= 1:
        return (token, parent)
    return (token,)


class PolarityRule(Protocol):
    """One way of reading a token's polarity."""

    name: str

    def classify(self, token: Tag) -> Optional[TokenPolarity]:
        """Return a polarity, or None when this rule has no opinion."""
        ...


class IconRule:
    """Plus/minus SVG icon inside the token or its wrapper."""

    name = "icon"

    def classify(self, token: Tag) -> Optional[TokenPolarity]:
        for scope in _scope(token):
            for use in scope.select("svg use"):
                href = use.get("href") or use.get("xlink:href") or ""
                if "#Minus" in href:
                    return TokenPolarity.REMOVED
                if "#Plus" in href:
                    return TokenPolarity.ADDED
        return None


class StrikethroughRule:
    """Line-through style or a strikethrough class means removed."""

    name = "strikethrough"

    def classify(self, token: Tag) -> Optional[TokenPolarity]:
        style = (token.get("style") or "").lower()
        if "line-through" in style or "strikethrough" in _classes(token).lower():
            return TokenPolarity.REMOVED
        return None


class ColorRule:
    """Red means removed, green means added.

    Only diff marker classes and the colour declarations of the inline style
    count; class names that merely contain a colour word are ignored.
    """

    name = "color"

    def classify(self, token: Tag) -> Optional[TokenPolarity]:
        classes = set(token.get("class") or [])
        if classes & REMOVED_MARKER_CLASSES:
            return TokenPolarity.REMOVED
        if classes & ADDED_MARKER_CLASSES:
            return TokenPolarity.ADDED

        for declaration in (token.get("style") or "").lower().split(";"):
            prop, _, value = declaration.partition(":")
            if prop.strip() not in COLOR_STYLE_PROPERTIES:
                continue
            if "red" in value:
                return TokenPolarity.REMOVED
            if "green" in value:
                return TokenPolarity.ADDED
        return None


POLARITY_PROFILES: Dict[str, Tuple[PolarityRule, ...]] = {
    "default": (IconRule(), StrikethroughRule(), ColorRule()),
    "icon": (IconRule(),),
    "legacy": (StrikethroughRule(), ColorRule()),
}


class PolarityClassifier:
    """Applies a chain of rules in order."""

    def __init__(self, rules: Sequence[PolarityRule]):
        """Use ``rules`` in the given order."""
        self.rules = tuple(rules)

    @classmethod
    def from_profile(cls, profile: str) -> "PolarityClassifier":
        """Build the classifier for a named profile.

        Raises:
            ValueError: Unknown profile name
        """
        try:
            return cls(POLARITY_PROFILES[profile])
        except KeyError:
            raise ValueError(
                f"Unknown polarity profile '{profile}', expected one of "
                f"{sorted(POLARITY_PROFILES)}"
            ) from None

    def classify(self, token: Tag) -> TokenPolarity:
        """Polarity of ``token``; added when no rule decides."""
        for rule in self.rules:
            polarity = rule.classify(token)
            if polarity is not None:
                return polarity
        return TokenPolarity.ADDED
