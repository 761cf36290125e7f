"""
Shared pytest fixtures for the session engine tests.

Async tests use unittest.IsolatedAsyncioTestCase and import the fakes from
`session_fakes` directly; the fixtures below serve the synchronous tests.
"""

import pytest

from models.session_models import Message, PersonaConfig, Session
from session_fakes import ContextFactory, FakeSessionDAL, MicFactory, png_base64


@pytest.fixture
def persona_config():
    return PersonaConfig(character="Napoleon Bonaparte", era="1805", voice_gender="MALE")


@pytest.fixture
def sample_session(persona_config):
    """Session with one user turn and one illustrated persona reply."""
    return Session(
        config=persona_config,
        messages=[
            Message(role="user", text="Hello?"),
            Message(
                role="persona",
                text="Who goes there?",
                scene_prompt="A tent at night",
                location_context="Austerlitz | 1805 | Night",
                image_ref="/images/abc.png",
                audio_payload="AAAA",
            ),
        ],
    )


@pytest.fixture
def fake_dal():
    return FakeSessionDAL()


@pytest.fixture
def context_factory():
    return ContextFactory()


@pytest.fixture
def mic_factory():
    return MicFactory()


@pytest.fixture
def png_b64():
    return png_base64()
