"""Semantic versions for upstream tags and the published bundle.

Upstream tags are not always valid SemVer ("v5.4.23.2", "BepInEx_v6.0.0-pre.1",
"1.4"). `normalize` maps any tag to a Version through a fixed chain:
drop the non-numeric prefix, try a strict parse, else coerce the first
`major[.minor[.patch]]` run.

The published bundle version combines the dependency version and the local
payload version: `5.4.23-payload.1.2.0`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import total_ordering

from pb.core.result import Err, Ok, Result

__all__ = [
    "PAYLOAD_MARKER",
    "Unversionable",
    "Version",
    "compare",
    "compound_version",
    "is_newer",
    "normalize",
    "parse_strict",
    "split_compound",
]

PAYLOAD_MARKER = "payload"

_IDENT = r"(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
_STRICT_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    rf"(?:-({_IDENT}(?:\.{_IDENT})*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)
_COERCE_RE = re.compile(r"(\d+)(?:\.(\d+))?(?:\.(\d+))?")


@dataclass(frozen=True, slots=True)
class Unversionable:
    """A tag string with no extractable numeric version."""

    raw: str

    @property
    def message(self) -> str:
        return f"cannot derive a version from tag {self.raw!r}"


@total_ordering
@dataclass(frozen=True, slots=True)
class Version:
    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()
    # Build metadata never takes part in precedence or equality.
    build: tuple[str, ...] = field(default=(), compare=False)

    @property
    def core(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    def without_build(self) -> Version:
        return Version(self.major, self.minor, self.patch, self.prerelease)

    def bump_patch(self) -> Version:
        """Next patch release; a prerelease bumps to its own release."""
        if self.prerelease:
            return Version(self.major, self.minor, self.patch)
        return Version(self.major, self.minor, self.patch + 1)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return compare(self, other) < 0

    def __str__(self) -> str:
        s = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            s += "-" + ".".join(self.prerelease)
        if self.build:
            s += "+" + ".".join(self.build)
        return s


def parse_strict(text: str) -> Version | None:
    """Parse a SemVer 2.0.0 string exactly; None if it does not conform."""
    m = _STRICT_RE.match(text)
    if m is None:
        return None
    pre, build = m.group(4), m.group(5)
    return Version(
        int(m.group(1)),
        int(m.group(2)),
        int(m.group(3)),
        tuple(pre.split(".")) if pre else (),
        tuple(build.split(".")) if build else (),
    )


def normalize(raw: str) -> Result[Version, Unversionable]:
    """Map a release tag to a Version.

    Examples:
        "v1.2.0"          -> 1.2.0
        "v6.0.0-pre.1"    -> 6.0.0-pre.1
        "v5.4.23.2"       -> 5.4.23
        "release-7"       -> 7.0.0
        "latest"          -> Unversionable
    """
    text = raw.strip()
    start = next((i for i, ch in enumerate(text) if ch.isdigit()), None)
    if start is None:
        return Err(Unversionable(raw))
    text = text[start:]

    strict = parse_strict(text)
    if strict is not None:
        return Ok(strict)

    m = _COERCE_RE.search(text)
    if m is None:
        return Err(Unversionable(raw))
    return Ok(Version(int(m.group(1)), int(m.group(2) or 0), int(m.group(3) or 0)))


def _compare_identifiers(a: str, b: str) -> int:
    a_num, b_num = a.isdigit(), b.isdigit()
    if a_num and b_num:
        return (int(a) > int(b)) - (int(a) < int(b))
    if a_num != b_num:
        # Numeric identifiers have lower precedence than alphanumeric ones
        return -1 if a_num else 1
    return (a > b) - (a < b)


def compare(a: Version, b: Version) -> int:
    """SemVer precedence: negative if a < b, zero if equal, positive if a > b."""
    if a.core != b.core:
        return -1 if a.core < b.core else 1
    if not a.prerelease or not b.prerelease:
        # A release outranks any prerelease of the same core
        return (not a.prerelease) - (not b.prerelease)

    for x, y in zip(a.prerelease, b.prerelease):
        c = _compare_identifiers(x, y)
        if c:
            return c
    return (len(a.prerelease) > len(b.prerelease)) - (len(a.prerelease) < len(b.prerelease))


def is_newer(
    candidate: Version,
    recorded: Version | str | None,
    *,
    include_prerelease: bool = True,
) -> bool:
    """True if `candidate` strictly outranks `recorded`.

    `recorded` may be the first-run sentinel "0" (or None), which every
    version outranks. With `include_prerelease=False` a prerelease candidate
    only counts against a recorded prerelease of the same major.minor.patch.
    """
    if recorded is None or recorded == "0":
        return True
    if isinstance(recorded, str):
        parsed = normalize(recorded)
        if isinstance(parsed, Err):
            return True
        recorded = parsed.value

    if not include_prerelease and candidate.is_prerelease:
        if not (recorded.is_prerelease and recorded.core == candidate.core):
            return False

    # Bundle versions rank by dependency first, then payload
    pair, recorded_pair = split_compound(candidate), split_compound(recorded)
    if pair is not None and recorded_pair is not None:
        return (compare(pair[0], recorded_pair[0]) or compare(pair[1], recorded_pair[1])) > 0
    return compare(candidate, recorded) > 0


def split_compound(version: Version) -> tuple[Version, Version] | None:
    """Dependency and payload versions of a bundle version, None for any other version."""
    if PAYLOAD_MARKER not in version.prerelease:
        return None
    at = version.prerelease.index(PAYLOAD_MARKER)
    rest = version.prerelease[at + 1 :]
    if len(rest) < 3 or not all(part.isdigit() for part in rest[:3]):
        return None
    dependency = Version(version.major, version.minor, version.patch, version.prerelease[:at])
    payload = Version(int(rest[0]), int(rest[1]), int(rest[2]), rest[3:])
    return dependency, payload


def compound_version(dependency: Version, payload: Version) -> Result[Version, Unversionable]:
    """Build the bundle version `<dependency>-payload.<payload>`.

    Identifiers stay dot-separated so numeric parts compare numerically:
    6.0.0-pre.10 with payload 1.0.0 gives `6.0.0-pre.10.payload.1.0.0`.
    """
    prerelease = (
        *dependency.prerelease,
        PAYLOAD_MARKER,
        str(payload.major),
        str(payload.minor),
        str(payload.patch),
        *payload.prerelease,
    )
    built = Version(dependency.major, dependency.minor, dependency.patch, prerelease)
    parsed = parse_strict(str(built))
    if parsed is None:
        return Err(Unversionable(str(built)))
    return Ok(parsed)
