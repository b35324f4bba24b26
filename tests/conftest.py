import sys
from pathlib import Path

import pytest

SRC = Path(__file__).resolve().parents[1] / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from interview_coach.interview.testing import create_fake_session


ASSESSMENT_JSON = (
    '{"score": "3.5", "summary": "Clear answers with room for more structure.", '
    '"breakdown": [{"label": "Communication Clarity", "rating": 4}, '
    '{"label": "Technical Accuracy", "rating": 3}]}'
)


@pytest.fixture
def assessment_json():
    return ASSESSMENT_JSON


@pytest.fixture
def fake_session():
    """Factory for a session wired to scripted fakes."""
    return create_fake_session
