"""Front matter parsing for Folio.

Content files open with a structured metadata block followed by a markdown
body. Two block styles are recognised:

- ``+++`` fences holding TOML (the native style of Zola themes)
- ``---`` fences holding YAML

Parsing is pure: it never touches the filesystem. Errors are raised as
MalformedMetadata (or its InvalidDate subclass) and carry the file path when
one is given.

Key classes:
- FrontMatter: Recognised metadata of a page or section.

Key functions:
- extract_frontmatter: Split raw text into a metadata mapping and a body.
- parse_frontmatter: Parse and validate a page's front matter.
- parse_section_frontmatter: Same, for _index.md files (title optional).
- render_frontmatter: Serialize recognised fields back into a block.
- parse_date: Coerce a metadata value into a datetime.
"""

from __future__ import annotations

import re
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Any

import tomli_w
import yaml

from .errors import InvalidDate, MalformedMetadata

TOML_FRONTMATTER_RE = re.compile(
    r"\A\ufeff?\+\+\+[ \t]*\r?\n(.*?)^\+\+\+[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE
)
YAML_FRONTMATTER_RE = re.compile(
    r"\A\ufeff?---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE
)

RECOGNISED_KEYS = frozenset(
    {
        "title",
        "description",
        "date",
        "updated",
        "draft",
        "slug",
        "path",
        "template",
        "weight",
        "aliases",
        "taxonomies",
        "extra",
    }
)


@dataclass
class FrontMatter:
    """Recognised metadata of a content file.

    Attributes:
        title: Title, required for pages.
        description: Optional description.
        date: Publication date.
        updated: Date of last update.
        draft: Whether the page is a draft.
        slug: Explicit slug override for the last URL segment.
        path: Explicit path override for the whole URL.
        template: Template override.
        weight: Optional manual ordering weight.
        aliases: Old URLs that should redirect to this page.
        taxonomies: Taxonomy name to list of term strings.
        extra: Open extension namespace, kept verbatim.
        unknown: Unrecognised top-level keys, kept verbatim.
    """

    title: str | None = None
    description: str | None = None
    date: datetime | None = None
    updated: datetime | None = None
    draft: bool = False
    slug: str | None = None
    path: str | None = None
    template: str | None = None
    weight: int | None = None
    aliases: list[str] = field(default_factory=list)
    taxonomies: dict[str, list[str]] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)
    unknown: dict[str, Any] = field(default_factory=dict)


def extract_frontmatter(text: str, path: Path | str | None = None) -> tuple[dict[str, Any], str]:
    """Extract the metadata block from content.

    Args:
        text: Raw file content.
        path: Source path, for error attribution.

    Returns:
        Tuple of (metadata mapping, remaining body).

    Raises:
        MalformedMetadata: If there is no block or it is not a mapping.
    """
    match = TOML_FRONTMATTER_RE.match(text)
    if match:
        try:
            data = tomllib.loads(match.group(1))
        except tomllib.TOMLDecodeError as exc:
            raise MalformedMetadata(f"Invalid TOML front matter: {exc}", path, exc) from exc
        return data, text[match.end() :]

    match = YAML_FRONTMATTER_RE.match(text)
    if match:
        try:
            data = yaml.safe_load(match.group(1)) or {}
        except yaml.YAMLError as exc:
            raise MalformedMetadata(f"Invalid YAML front matter: {exc}", path, exc) from exc
        if not isinstance(data, dict):
            raise MalformedMetadata("Front matter must be a mapping", path)
        return data, text[match.end() :]

    raise MalformedMetadata("Missing front matter (expected a +++ or --- block)", path)


def parse_frontmatter(text: str, path: Path | str | None = None) -> tuple[FrontMatter, str]:
    """Parse a page's front matter and split off its body.

    Args:
        text: Raw file content.
        path: Source path, for error attribution.

    Returns:
        Tuple of (FrontMatter, body).

    Raises:
        MalformedMetadata: If the block is invalid or has no title.
        InvalidDate: If a date cannot be parsed.
    """
    front_matter, body = _parse(text, path)
    if not front_matter.title:
        raise MalformedMetadata("Front matter is missing a title", path)
    return front_matter, body


def parse_section_frontmatter(
    text: str, path: Path | str | None = None
) -> tuple[FrontMatter, str]:
    """Parse a section index's front matter. Sections may omit the title."""
    if not text.strip():
        return FrontMatter(), ""
    return _parse(text, path)


def _parse(text: str, path: Path | str | None) -> tuple[FrontMatter, str]:
    data, body = extract_frontmatter(text, path)

    title = data.get("title")
    if title is not None and not isinstance(title, str):
        raise MalformedMetadata("title must be a string", path)
    description = data.get("description")
    if description is not None and not isinstance(description, str):
        raise MalformedMetadata("description must be a string", path)

    extra = data.get("extra", {})
    if not isinstance(extra, Mapping):
        raise MalformedMetadata("extra must be a table", path)

    weight = data.get("weight")
    if weight is not None and (isinstance(weight, bool) or not isinstance(weight, int)):
        raise MalformedMetadata("weight must be an integer", path)

    draft = data.get("draft", False)
    if not isinstance(draft, bool):
        raise MalformedMetadata("draft must be true or false", path)

    front_matter = FrontMatter(
        title=title.strip() if title else title,
        description=description,
        date=_parse_date_field(data, "date", path),
        updated=_parse_date_field(data, "updated", path),
        draft=draft,
        slug=_optional_str(data, "slug", path),
        path=_optional_str(data, "path", path),
        template=_optional_str(data, "template", path),
        weight=weight,
        aliases=_string_list(data.get("aliases", []), "aliases", path),
        taxonomies=_parse_taxonomies(data.get("taxonomies", {}), path),
        extra=dict(extra),
        unknown={k: v for k, v in data.items() if k not in RECOGNISED_KEYS},
    )
    return front_matter, body


def parse_date(value: Any) -> datetime:
    """Coerce a metadata value into a naive datetime.

    Accepts datetime and date objects (as produced by TOML and YAML loaders)
    and ISO 8601 strings. Aware datetimes are converted to naive UTC.

    Raises:
        ValueError: If the value is not a recognisable date.
    """
    if isinstance(value, datetime):
        result = value
    elif isinstance(value, date):
        result = datetime.combine(value, time())
    elif isinstance(value, str):
        stripped = value.strip()
        if stripped.endswith("Z"):
            stripped = stripped[:-1] + "+00:00"
        result = datetime.fromisoformat(stripped)
    else:
        raise ValueError(f"Unsupported date value: {value!r}")
    if result.tzinfo is not None:
        result = result.astimezone(timezone.utc).replace(tzinfo=None)
    return result


def _parse_date_field(data: Mapping[str, Any], key: str, path: Path | str | None) -> datetime | None:
    value = data.get(key)
    if value is None:
        return None
    try:
        return parse_date(value)
    except ValueError as exc:
        raise InvalidDate(f"{key} {value!r} is not a valid date", path, exc) from exc


def _optional_str(data: Mapping[str, Any], key: str, path: Path | str | None) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedMetadata(f"{key} must be a string", path)
    return value


def _string_list(value: Any, key: str, path: Path | str | None) -> list[str]:
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(v, (str, int, float)) for v in value):
        raise MalformedMetadata(f"{key} must be a list of strings", path)
    return [str(v) for v in value]


def _parse_taxonomies(value: Any, path: Path | str | None) -> dict[str, list[str]]:
    if not isinstance(value, Mapping):
        raise MalformedMetadata("taxonomies must be a table", path)
    taxonomies: dict[str, list[str]] = {}
    for name, terms in value.items():
        cleaned = [t.strip() for t in _string_list(terms, f"taxonomies.{name}", path)]
        taxonomies[str(name)] = [t for t in cleaned if t]
    return taxonomies


def render_frontmatter(front_matter: FrontMatter, fmt: str = "toml") -> str:
    """Serialize recognised fields of a FrontMatter into a metadata block.

    Args:
        front_matter: Metadata to serialize.
        fmt: "toml" for a +++ block or "yaml" for a --- block.

    Returns:
        The block, including its fences and a trailing newline.
    """
    data: dict[str, Any] = {}
    for key in ("title", "description", "date", "updated", "slug", "path", "template", "weight"):
        value = getattr(front_matter, key)
        if value is not None:
            data[key] = value
    if front_matter.draft:
        data["draft"] = True
    if front_matter.aliases:
        data["aliases"] = list(front_matter.aliases)
    if front_matter.taxonomies:
        data["taxonomies"] = {k: list(v) for k, v in front_matter.taxonomies.items()}
    if front_matter.extra:
        data["extra"] = dict(front_matter.extra)

    if fmt == "yaml":
        dumped = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
        return f"---\n{dumped}---\n"
    if fmt == "toml":
        return f"+++\n{tomli_w.dumps(data)}+++\n"
    raise ValueError(f"Unknown front matter format: {fmt}")
