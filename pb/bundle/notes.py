"""Release body for an automated bundle update."""

from __future__ import annotations

from collections.abc import Sequence

from pb.bundle.metadata import same_repository
from pb.forge.models import Release, parse_repo

__all__ = ["NOTES_HEADER", "render_release_notes"]

NOTES_HEADER = "# Payload auto-update"
NO_NOTES = "No release notes provided."


def _quote(body: str | None) -> str:
    if not body:
        return NO_NOTES
    return "\n".join(f"> {line.rstrip()}" for line in body.split("\n"))


def render_release_notes(updated: Sequence[str], releases: Sequence[Release]) -> str:
    """Markdown body: a header, then one collapsible section per updated source.

    Sources with no matching current release are left out.
    """
    sections: list[str] = []
    for source in updated:
        repo = parse_repo(source)
        release = next((r for r in releases if same_repository(r.html_url, source)), None)
        if repo is None or release is None:
            continue
        sections.append(
            "<details>\n"
            f"<summary>Update {repo.slug} to {release.tag_name}</summary>\n\n"
            f"## [Release notes]({release.html_url})\n\n"
            f"{_quote(release.body)}\n\n"
            "</details>"
        )

    if not sections:
        return NOTES_HEADER + "\n"
    return f"{NOTES_HEADER}\n\n" + "\n\n".join(sections)
