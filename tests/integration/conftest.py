"""Shared fixtures for integration tests: an in-process stand-in for the image APIs"""

import pytest

from mdillustrate.core.models import JobStatus, Plan, PlanItem, PollableJob


NOTE = "# Intro\n\nWelcome text.\n\n## Details\n\nMore text.\n"


class FakeImageClient:
    """Implements the ImageApiClient protocol without any network."""

    def __init__(self, items, fail_prompts=(), on_download=None, data=None):
        self.plan = Plan(items=items)
        self.fail_prompts = set(fail_prompts)
        self.on_download = on_download
        self.data = data
        self.prompts: list[str] = []
        self.excerpts: list[str] = []
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        self.closed = True

    async def generate_plan(self, excerpt, settings):
        self.excerpts.append(excerpt)
        return self.plan

    async def create_job(self, prompt, settings):
        self.prompts.append(prompt)
        return f"job-{len(self.prompts)}"

    async def get_job(self, job_id):
        prompt = self.prompts[int(job_id.split("-")[1]) - 1]
        if prompt in self.fail_prompts:
            return PollableJob(job_id=job_id, status=JobStatus.failed, error_message="rejected")
        return PollableJob(job_id=job_id, status=JobStatus.completed, result_ref=f"https://cdn.test/{job_id}.png")

    async def download(self, url):
        if self.on_download is not None:
            self.on_download(url)
        return self.data or b"PNG:" + url.encode()


def plan_items():
    return [
        PlanItem(id="img1", title="Intro Image", afterHeading="Intro", prompt="draw the intro", description="The intro"),
        PlanItem(id="img2", title="Details Image", afterHeading="Details", prompt="draw the details"),
    ]


@pytest.fixture(name="note")
def note_fixture(tmp_path):
    path = tmp_path / "note.md"
    path.write_text(NOTE, encoding="utf-8")
    return path


@pytest.fixture(name="make_client")
def make_client_fixture():
    def _make(items=None, **kw):
        return FakeImageClient(plan_items() if items is None else items, **kw)
    return _make


@pytest.fixture(name="note_text")
def note_text_fixture():
    return NOTE
