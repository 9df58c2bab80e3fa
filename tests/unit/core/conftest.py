"""Shared fixtures for core unit tests"""

import pytest

from mdillustrate.core.models import GeneratedArtifact


SAMPLE_MD = """\
# Overview

Intro paragraph.

## 1. Setup

- install
- configure

```python
print("hello")
```

## Usage

Run it.

---

Footer paragraph.
"""

SAMPLE_FM_MD = """\
---
title: Test Note
tags: [a, b]
---
# Title

Body content.
"""


def make_artifact(block_id: str, name: str = None, **kw) -> GeneratedArtifact:
    """A saved artifact with a predictable file name."""
    return GeneratedArtifact(
        id=block_id,
        storage_path=f"attachments/ai-summary/20260101_{name or block_id}.png",
        **kw,
    )


@pytest.fixture(name="sample_text")
def sample_text_fixture():
    return SAMPLE_MD


@pytest.fixture(name="fm_text")
def fm_text_fixture():
    return SAMPLE_FM_MD


@pytest.fixture(name="artifact")
def artifact_fixture():
    """Factory for GeneratedArtifact instances."""
    return make_artifact
