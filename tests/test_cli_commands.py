from __future__ import annotations

from importlib import import_module

import pytest
from typer.testing import CliRunner

from coursemart.cli.app import app
from coursemart.cms import InMemoryCmsGateway
from coursemart.config import AppSettings
from coursemart.container import ServiceContainer, build_container
from coursemart.domain import CollectionKind, FriendRequest

app_module = import_module("coursemart.cli.app")


def _use_container(
    monkeypatch: pytest.MonkeyPatch,
    gateway: InMemoryCmsGateway,
    *,
    user_id: str | None = "7",
) -> ServiceContainer:
    container = build_container(
        AppSettings(environment="test", user_id=user_id, mutation_timeout=1.0),
        gateway=gateway,
    )
    monkeypatch.setattr(app_module, "get_container", lambda: container)
    return container


def test_cli_show_settings(monkeypatch: pytest.MonkeyPatch, gateway: InMemoryCmsGateway) -> None:
    _use_container(monkeypatch, gateway)
    runner = CliRunner()

    result = runner.invoke(app, ["show-settings"])

    assert result.exit_code == 0
    assert "Environment:\ttest" in result.stdout
    assert "CMS URL:\t(in-memory)" in result.stdout


def test_cli_cart_add_and_list(
    monkeypatch: pytest.MonkeyPatch, gateway: InMemoryCmsGateway
) -> None:
    _use_container(monkeypatch, gateway)
    runner = CliRunner()

    add_result = runner.invoke(app, ["cart", "add", "1", "--title", "Intro"])
    assert add_result.exit_code == 0
    assert "[success] Intro added to cart" in add_result.stdout

    list_result = runner.invoke(app, ["cart", "list"])
    assert list_result.exit_code == 0
    assert "1\tIntro\t1 x 49.99" in list_result.stdout
    assert "Total: 49.99" in list_result.stdout


def test_cli_duplicate_add_exits_with_error(
    monkeypatch: pytest.MonkeyPatch, gateway: InMemoryCmsGateway
) -> None:
    _use_container(monkeypatch, gateway)
    runner = CliRunner()
    runner.invoke(app, ["cart", "add", "2"])

    result = runner.invoke(app, ["cart", "add", "2"])

    assert result.exit_code == 1
    assert "[info] 2 is already in the cart collection" in result.stdout


def test_cli_remove_missing_is_noop(
    monkeypatch: pytest.MonkeyPatch, gateway: InMemoryCmsGateway
) -> None:
    _use_container(monkeypatch, gateway)
    runner = CliRunner()

    result = runner.invoke(app, ["cart", "remove", "3"])

    assert result.exit_code == 0
    assert "Result: noop" in result.stdout
    assert gateway.call_count("remove") == 0


def test_cli_failed_clear_reports_error(
    monkeypatch: pytest.MonkeyPatch, gateway: InMemoryCmsGateway
) -> None:
    _use_container(monkeypatch, gateway)
    runner = CliRunner()
    runner.invoke(app, ["cart", "add", "1"])
    gateway.fail_next(CollectionKind.CART, "clear")

    result = runner.invoke(app, ["cart", "clear"])

    assert result.exit_code == 1
    assert "[error] Injected clear failure" in result.stdout


def test_cli_wishlist_toggle(monkeypatch: pytest.MonkeyPatch, gateway: InMemoryCmsGateway) -> None:
    _use_container(monkeypatch, gateway)
    runner = CliRunner()

    added = runner.invoke(app, ["wishlist", "toggle", "3"])
    listed = runner.invoke(app, ["wishlist", "list"])
    removed = runner.invoke(app, ["wishlist", "toggle", "3"])

    assert "[success] Added to wishlist" in added.stdout
    assert listed.stdout.startswith("3\t")
    assert "[success] Removed from wishlist" in removed.stdout


def test_cli_friend_requests(monkeypatch: pytest.MonkeyPatch, gateway: InMemoryCmsGateway) -> None:
    _use_container(monkeypatch, gateway)
    gateway.seed(
        CollectionKind.FRIEND_REQUEST,
        "7",
        FriendRequest(id=31, from_user="9", to_user="7", from_username="linus"),
    )
    runner = CliRunner()

    sent = runner.invoke(app, ["friends", "send", "8", "--message", "hi"])
    assert sent.exit_code == 0
    assert "[success] Friend request sent" in sent.stdout

    accepted = runner.invoke(app, ["friends", "accept", "9"])
    assert accepted.exit_code == 0
    assert "[success] Friend request accepted" in accepted.stdout

    listed = runner.invoke(app, ["friends", "list"])
    assert "Friends (1/1000):" in listed.stdout
    assert "  9\tlinus" in listed.stdout
    assert "  -> 8\tgrace" in listed.stdout
    assert "Received requests (0):" in listed.stdout


def test_cli_self_request_is_refused(
    monkeypatch: pytest.MonkeyPatch, gateway: InMemoryCmsGateway
) -> None:
    _use_container(monkeypatch, gateway)
    runner = CliRunner()

    result = runner.invoke(app, ["friends", "send", "7"])

    assert result.exit_code == 1
    assert "[info] You cannot send a friend request to yourself" in result.stdout


def test_cli_requires_a_user(monkeypatch: pytest.MonkeyPatch, gateway: InMemoryCmsGateway) -> None:
    _use_container(monkeypatch, gateway, user_id=None)
    runner = CliRunner()

    result = runner.invoke(app, ["cart", "list"])

    assert result.exit_code == 1
    assert "No user given" in result.stdout

    explicit = runner.invoke(app, ["cart", "list", "--user", "8"])
    assert explicit.exit_code == 0
    assert "Cart is empty" in explicit.stdout
