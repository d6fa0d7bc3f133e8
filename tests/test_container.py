from __future__ import annotations

import asyncio

import pytest

from coursemart.cli.deps import get_container, reset_container
from coursemart.cms import InMemoryCmsGateway, StrapiGateway
from coursemart.config import AppSettings
from coursemart.container import build_container
from coursemart.domain import CourseSummary
from coursemart.sync import DEFAULT_MUTATION_TIMEOUT


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("COURSEMART_ENV", "test")
    monkeypatch.setenv("COURSEMART_CMS_URL", "https://cms.test")
    monkeypatch.setenv("COURSEMART_USER_ID", "7")
    monkeypatch.setenv("COURSEMART_MUTATION_TIMEOUT", "2.5")
    monkeypatch.setenv("COURSEMART_FRIEND_LIMIT", "3")
    monkeypatch.setenv("COURSEMART_LOG_LEVEL", "debug")

    settings = AppSettings.from_env()

    assert settings.environment == "test"
    assert settings.uses_cms
    assert settings.user_id == "7"
    assert settings.mutation_timeout == 2.5
    assert settings.friend_limit == 3
    assert settings.log_level == "DEBUG"


def test_invalid_numbers_fall_back_to_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("COURSEMART_CMS_URL", raising=False)
    monkeypatch.setenv("COURSEMART_MUTATION_TIMEOUT", "soon")
    monkeypatch.setenv("COURSEMART_FRIEND_LIMIT", "")

    settings = AppSettings.from_env()

    assert not settings.uses_cms
    assert settings.mutation_timeout == DEFAULT_MUTATION_TIMEOUT
    assert settings.friend_limit == 1000


def test_build_container_selects_gateway() -> None:
    offline = build_container(AppSettings(environment="test"))
    online = build_container(AppSettings(environment="test", cms_url="https://cms.test/"))

    assert isinstance(offline.gateway, InMemoryCmsGateway)
    assert isinstance(online.gateway, StrapiGateway)


def test_stores_share_the_container_session(gateway: InMemoryCmsGateway) -> None:
    container = build_container(
        AppSettings(environment="test", mutation_timeout=4.0, friend_limit=2),
        gateway=gateway,
    )
    header = container.cart("7")
    page = container.cart("7")

    asyncio.run(page.add_course(CourseSummary(id=1, title="Intro")))

    assert header.course_ids() == (1,)
    assert container.session.mutation_timeout == 4.0
    assert container.friends("7").friend_limit == 2


def test_get_container_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("COURSEMART_CMS_URL", raising=False)
    monkeypatch.setenv("COURSEMART_USER_ID", "9")
    reset_container()
    try:
        first = get_container()
        assert get_container() is first
        assert first.settings.user_id == "9"
    finally:
        reset_container()


def test_stores_of_different_owners_do_not_mirror(gateway: InMemoryCmsGateway) -> None:
    container = build_container(AppSettings(environment="test"), gateway=gateway)
    ada = container.cart("7")
    grace = container.cart("8")
    ada_friends = container.friends("7")
    grace_friends = container.friends("8")

    asyncio.run(ada.add_course(CourseSummary(id=1, title="Intro")))
    asyncio.run(ada_friends.send_request("9"))

    assert ada.course_ids() == (1,)
    assert grace.course_ids() == ()
    assert ada_friends.has_outgoing("9")
    assert not grace_friends.has_outgoing("9")
