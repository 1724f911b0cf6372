"""Prompt files: markdown body with optional YAML frontmatter."""

from pathlib import Path

import frontmatter

# Frontmatter keys honoured by the CLI
KNOWN_KEYS = ("rounds", "agents", "resolve")


def parse_file(file_path: Path) -> tuple[str, dict]:
    """Parse a markdown prompt file with optional YAML frontmatter.

    Returns:
        (prompt, metadata) where prompt is the body text and metadata holds
        any of: rounds (int), agents (comma-separated str or list), resolve
        (bool). Unknown keys are dropped. If no frontmatter, metadata is {}.
    """
    post = frontmatter.load(str(file_path))
    prompt = post.content.strip()
    metadata = {k: v for k, v in post.metadata.items() if k in KNOWN_KEYS}
    return prompt, metadata


def agent_ids_from_meta(value: str | list | None) -> str | None:
    """Normalise the frontmatter `agents` value to the CLI's comma form."""
    if value is None:
        return None
    if isinstance(value, list):
        return ",".join(str(v).strip() for v in value)
    return str(value)
