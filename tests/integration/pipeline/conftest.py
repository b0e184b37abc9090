"""Fixtures for pipeline integration tests: a small content tree"""

from pathlib import Path

import pytest
from PIL import Image

from mdsite.config import Settings


POST_ONE = """\
---
title: First
tags: [posts, rust]
date: 2024-01-02
---
[[toc]]

# Hello, World!

{% callout "warn", "md" %}**danger**{% endcallout %}

{% asset "cover.png", "Cover image" %}

## Details
"""

POST_TWO = """\
---
title: Second
tags: [posts, go, rust, nav]
---
# Second

{% image "site/assets/cover.png", "Same cover", "50vw" %}
"""


@pytest.fixture(name="site")
def site_fixture(tmp_path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    posts = tmp_path / "site" / "posts"
    posts.mkdir(parents=True)
    (posts / "one.md").write_text(POST_ONE)
    (posts / "two.md").write_text(POST_TWO)
    assets = tmp_path / "site" / "assets"
    assets.mkdir()
    Image.new("RGB", (1400, 700), (10, 90, 160)).save(assets / "cover.png", "PNG")
    return tmp_path


@pytest.fixture(name="settings")
def settings_fixture(site) -> Settings:
    return Settings(image_formats=["webp", "jpeg"])
