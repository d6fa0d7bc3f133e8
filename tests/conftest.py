from __future__ import annotations

import sys
from decimal import Decimal
from pathlib import Path

import pytest

# Ensure the src/ directory is importable when tests run from a checkout.
sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from coursemart.cms import InMemoryCmsGateway  # noqa: E402
from coursemart.domain import CourseSummary  # noqa: E402
from coursemart.sync import SyncSession  # noqa: E402

OWNER = "7"


@pytest.fixture
def session() -> SyncSession:
    return SyncSession(mutation_timeout=1.0)


@pytest.fixture
def gateway() -> InMemoryCmsGateway:
    cms = InMemoryCmsGateway()
    for course in (
        CourseSummary(id=1, external_id="course-1", title="Intro", price=Decimal("49.99")),
        CourseSummary(id=2, external_id="course-2", title="Async IO", price_label="$19.50"),
        CourseSummary(id=3, external_id="course-3", title="Typing", price=Decimal("0")),
    ):
        cms.register_course(course)
    cms.register_user(OWNER, "ada")
    cms.register_user("8", "grace")
    cms.register_user("9", "linus")
    return cms
