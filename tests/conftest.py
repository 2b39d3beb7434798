"""Shared fixtures for fairgrade tests."""

import asyncio

import pytest

from fairgrade.tools.grading.models import StudentFile


class FakeAIClient:
    """
    Stand-in for the AI client.

    ``responder(prompt, document)`` returns the reply text or an exception
    instance to raise. ``delays`` maps a document name to seconds to sleep
    before answering, to shuffle completion order.
    """

    def __init__(self, responder, delays=None):
        self.responder = responder
        self.delays = delays or {}
        self.calls = []

    async def generate(self, prompt, document=None):
        self.calls.append((prompt, document))
        delay = self.delays.get(getattr(document, 'name', None), 0)
        if delay:
            await asyncio.sleep(delay)
        reply = self.responder(prompt, document)
        if isinstance(reply, BaseException):
            raise reply
        return reply


def make_reply(score, strengths=("Clear thesis",), suggestions=("Add more evidence",)):
    lines = [f"SCORE: {score}", "", "STRENGTHS:"]
    lines += [f"• {s}" for s in strengths]
    lines += ["", "WEAKNESSES:", "• Some gaps", "", "ANALYSIS:", "Solid overall.", "", "SUGGESTIONS:"]
    lines += [f"• {s}" for s in suggestions]
    return "\n".join(lines)


@pytest.fixture
def answer_file():
    return StudentFile(name="alice.png", data=b"\x89PNG fake", mime_type="image/png")


@pytest.fixture
def sample_config(tmp_path):
    return {
        'ai': {'backend': 'gemini', 'api_key': 'test-key'},
        'grading': {'retries': 0, 'call_timeout': None, 'max_concurrent_files': 2},
        'storage': {
            'sessions_dir': str(tmp_path / 'sessions'),
            'rubrics_dir': str(tmp_path / 'rubrics'),
        },
    }
