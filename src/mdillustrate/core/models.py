"""Data models for parsed notes, planned artifacts, injected blocks, and polled jobs"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from urllib.parse import unquote

from pydantic import BaseModel, ConfigDict, Field


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

ARTIFACT_REF_RE = re.compile(r'!\[\[([^\]]+)\]\]|!\[[^\]]*\]\(([^)\s]+)[^)]*\)')


@dataclass(frozen=True)
class Section:
    """A heading and the body lines up to the next heading; level 0 is the preamble."""
    heading:    str         # raw heading line including '#' markers; '' for preamble
    level:      int
    body_text:  str
    line_start: int
    line_end:   int


@dataclass(frozen=True)
class ParsedDocument:
    """Parse result; line numbers in sections are relative to `body`."""
    sections:    tuple[Section, ...]
    raw_text:    str                # full input, front matter included
    body:        str                # front matter stripped
    frontmatter: Optional[str] = None

    @property
    def lines(self) -> list[str]:
        return self.body.split('\n')


class GeneratedArtifact(BaseModel):
    """An image that was generated and saved, ready to be referenced from the note."""
    id: str
    storage_path: str
    title: str = ""
    description: str = ""
    source_prompt: Optional[str] = None


@dataclass(frozen=True)
class InsertionTarget:
    line_number: int
    artifact:    GeneratedArtifact


@dataclass(frozen=True)
class ContentBlock:
    """A marker-delimited image block as found in (or written to) a note."""
    id:             str
    generated_at:   str                 # ISO-8601 text exactly as written
    body_lines:     tuple[str, ...]
    encoded_prompt: Optional[str] = None
    line_start:     int = -1            # start marker line in the scanned text
    line_end:       int = -1            # end marker line in the scanned text
    indent:         str = ''            # whitespace before the markers

    @property
    def source_prompt(self) -> Optional[str]:
        return unquote(self.encoded_prompt) if self.encoded_prompt is not None else None

    @property
    def timestamp(self) -> datetime:
        """Parsed generated_at; unparseable values sort as the epoch."""
        text = self.generated_at.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            ts = datetime.fromisoformat(text)
        except ValueError:
            return EPOCH
        return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)

    @property
    def artifact_ref(self) -> Optional[str]:
        """First embedded image target in the payload ('![[x]]' or '![alt](x)')."""
        for line in self.body_lines:
            m = ARTIFACT_REF_RE.search(line)
            if m:
                return m.group(1) or m.group(2)
        return None


@dataclass(frozen=True)
class RemovalResult:
    new_text:       str
    removed_blocks: tuple[ContentBlock, ...] = ()

    @property
    def removed_count(self) -> int:
        return len(self.removed_blocks)

    @property
    def artifact_refs(self) -> list[str]:
        return [b.artifact_ref for b in self.removed_blocks if b.artifact_ref]


class JobStatus(str, Enum):
    """Lifecycle of an external generation job; completed and failed are final."""
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.completed, JobStatus.failed)


class PollableJob(BaseModel):
    job_id: str
    status: JobStatus
    result_ref: Optional[str] = None
    error_message: Optional[str] = None
    progress_percent: Optional[float] = None


@dataclass(frozen=True)
class PollProgress:
    attempt:      int
    max_attempts: int
    percent:      float
    status:       JobStatus
    message:      str


class PlanItem(BaseModel):
    """One planned image: where it goes and what to draw."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str = ""
    after_heading: str = Field(default="", alias="afterHeading")
    prompt: str
    description: str = ""


class Plan(BaseModel):
    items: list[PlanItem] = []
