"""Composer version constraint parsing.

Constraints are translated into ``packaging`` specifier sets so precedence
comparisons never fall back to string ordering. An OR constraint becomes
one SpecifierSet per alternative.

Supports:
- Exact: "1.0.0", "=1.0.0", "==1.0.0"
- Comparison: ">2.0", ">=2.0", "<3", "<=2.1", "!=1.5.0"
- Caret: "^1.2" (>=1.2.0,<2.0.0)
- Tilde: "~1.8" (>=1.8.0,<1.9.0)
- Wildcard: "*", "1.*", "1.2.x"
- Hyphen range: "1.0 - 2.0"
- OR: "^1.0 || ^2.0"; terms separated by spaces or commas are ANDed
"""

import re
from dataclasses import dataclass

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version


class InvalidConstraint(ValueError):
    """Raised when a constraint string can't be parsed."""


_TERM = re.compile(r"^(?P<op>\^|~|>=|<=|!=|==|>|<|=)?\s*(?P<version>.+)$")

_PARTIAL = re.compile(
    r"^[vV]?(?P<major>\d+|[*xX])"
    r"(?:\.(?P<minor>\d+|[*xX]))?"
    r"(?:\.(?P<patch>\d+|[*xX]))?"
    r"(?P<extra>(?:\.\d+)*(?:[-+.]?[0-9A-Za-z][0-9A-Za-z.+-]*)?)$"
)

_OPERATORS = {"^", "~", ">=", "<=", "!=", "==", ">", "<", "="}


@dataclass(frozen=True)
class Partial:
    """A possibly incomplete version such as "1", "1.2" or "1.2.*"."""

    major: int | None
    minor: int | None = None
    patch: int | None = None
    extra: str = ""

    @property
    def is_full(self) -> bool:
        return self.patch is not None

    def floor(self) -> str:
        return _canonical(f"{self.major}.{self.minor or 0}.{self.patch or 0}{self.extra}")

    def next_major(self) -> str:
        return f"{self.major + 1}.0.0"

    def next_minor(self) -> str:
        return f"{self.major}.{self.minor + 1}.0"

    def next_patch(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch + 1}"

    def partial_upper(self) -> str:
        """Exclusive upper bound of everything a partial version covers."""
        if self.minor is None:
            return self.next_major()
        return self.next_minor()


@dataclass(frozen=True)
class Constraint:
    """A parsed constraint: a union of AND-ed specifier sets.

    Pre-releases only match when one of the comparators names a pre-release,
    e.g. ">=3.0.0-RC1".
    """

    text: str
    branches: tuple[SpecifierSet, ...]
    prereleases: bool = False

    def allows(self, version: Version) -> bool:
        if version.is_prerelease and not self.prereleases:
            return False
        return any(branch.contains(version, prereleases=self.prereleases) for branch in self.branches)


def _canonical(text: str) -> str:
    try:
        return str(Version(text))
    except InvalidVersion:
        raise InvalidConstraint(f"Invalid version in constraint: {text}")


def parse_partial(text: str) -> Partial:
    """Parse a version that may omit components or use wildcards."""
    match = _PARTIAL.match(text)
    if not match:
        raise InvalidConstraint(f"Invalid version in constraint: {text}")

    numbers: list[int | None] = []
    wildcard = False
    for group in ("major", "minor", "patch"):
        value = match.group(group)
        if value is None or value in "*xX":
            wildcard = wildcard or value is not None
            numbers.append(None)
            # Everything after a wildcard is a wildcard too.
            numbers.extend([None] * (3 - len(numbers)))
            break
        numbers.append(int(value))

    major, minor, patch = numbers[:3]
    extra = "" if wildcard or patch is None else match.group("extra") or ""
    return Partial(major=major, minor=minor, patch=patch, extra=extra)


def _translate(op: str, partial: Partial) -> list[str]:
    """Turn one comparator into packaging specifier strings."""
    if partial.major is None:
        if op in ("", "=", "==", ">=", "<=", "^", "~"):
            return []
        raise InvalidConstraint(f"Wildcard can't be used with {op}")

    floor = partial.floor()

    if op in ("", "=", "=="):
        if partial.is_full:
            return [f"=={floor}"]
        return [f">={floor}", f"<{partial.partial_upper()}"]

    if op == "^":
        if partial.major > 0 or partial.minor is None:
            upper = partial.next_major()
        elif partial.minor > 0 or partial.patch is None:
            upper = partial.next_minor()
        else:
            upper = partial.next_patch()
        return [f">={floor}", f"<{upper}"]

    if op == "~":
        return [f">={floor}", f"<{partial.partial_upper()}"]

    if op == ">":
        if partial.is_full:
            return [f">{floor}"]
        return [f">={partial.partial_upper()}"]

    if op == ">=":
        return [f">={floor}"]

    if op == "<":
        return [f"<{floor}"]

    if op == "<=":
        if partial.is_full:
            return [f"<={floor}"]
        return [f"<{partial.partial_upper()}"]

    if op == "!=":
        if partial.is_full:
            return [f"!={floor}"]
        if partial.minor is None:
            return [f"!={partial.major}.*"]
        return [f"!={partial.major}.{partial.minor}.*"]

    raise InvalidConstraint(f"Unknown operator: {op}")


def _term(token: str) -> list[str]:
    # Stability flags such as "@dev" don't narrow the range.
    token = token.split("@", 1)[0].strip()
    if not token:
        return []

    match = _TERM.match(token)
    if not match:
        raise InvalidConstraint(f"Invalid constraint term: {token}")
    return _translate(match.group("op") or "", parse_partial(match.group("version")))


def _hyphen(lower: str, upper: str) -> list[str]:
    return _translate(">=", parse_partial(lower)) + _translate("<=", parse_partial(upper))


def _branch(text: str) -> SpecifierSet:
    tokens = text.replace(",", " ").split()
    if not tokens:
        raise InvalidConstraint("Empty constraint")

    specifiers: list[str] = []
    i = 0
    while i < len(tokens):
        token = tokens[i]
        # "> 1.0" is written with a space in some manifests.
        if token in _OPERATORS and i + 1 < len(tokens):
            i += 1
            token += tokens[i]

        if i + 2 < len(tokens) and tokens[i + 1] == "-":
            specifiers.extend(_hyphen(token, tokens[i + 2]))
            i += 3
            continue

        specifiers.extend(_term(token))
        i += 1

    try:
        return SpecifierSet(",".join(specifiers))
    except InvalidSpecifier as e:
        raise InvalidConstraint(f"Invalid constraint {text!r}: {e}")


def _names_prerelease(branch: SpecifierSet) -> bool:
    for specifier in branch:
        try:
            if Version(specifier.version.rstrip(".*")).is_prerelease:
                return True
        except InvalidVersion:
            continue
    return False


def parse_constraint(text: str) -> Constraint:
    """Parse a Composer constraint string.

    Args:
        text: Constraint as written in composer.json, e.g. "^1.0 || ^2.0"

    Returns:
        Parsed Constraint

    Raises:
        InvalidConstraint: If any part of the constraint can't be parsed
    """
    alternatives = re.split(r"\|\|?", text.strip())
    branches = tuple(_branch(alternative) for alternative in alternatives)
    prereleases = any(_names_prerelease(branch) for branch in branches)
    return Constraint(text=text, branches=branches, prereleases=prereleases)
