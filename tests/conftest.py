from __future__ import annotations

import pytest


def page_source(title: str, date: str | None = None, body: str = "Body text.", extra: str = "", **fields) -> str:
    """TOML front matter followed by a body."""
    lines = ["+++", f'title = "{title}"']
    if date:
        lines.append(f"date = {date}")
    for key, value in fields.items():
        lines.append(f"{key} = {value}")
    if extra:
        lines.append(extra.strip())
    lines.append("+++")
    return "\n".join(lines) + "\n" + body + "\n"


@pytest.fixture
def make_page():
    return page_source
