"""Simulated automation backend."""

import asyncio

import pytest

from deskvoice.device import AutomationCapability, SimulatedBackend
from deskvoice.errors import BackendError
from deskvoice.models import ActionKind, ActionSpec, ElementSelector

CLICK = ActionSpec(kind=ActionKind.CLICK)


async def _one(backend, **selector):
    elements = await backend.find(ElementSelector(**selector))
    assert len(elements) == 1
    return elements[0]


def test_satisfies_capability_protocol(desktop):
    assert isinstance(desktop, AutomationCapability)


@pytest.mark.asyncio
async def test_find_walks_tree_in_order(desktop):
    buttons = await desktop.find(ElementSelector(role="button"))
    assert [b.name for b in buttons] == ["Настройки", "Звук", "Сохранить"]
    assert buttons[0].path == "Главное окно/Настройки"


@pytest.mark.asyncio
async def test_click_and_checkbox(desktop):
    settings = await _one(desktop, name="настройки")
    await desktop.invoke(CLICK, settings, {})
    assert settings.native.click_count == 1

    checkbox = await _one(desktop, role="checkbox")
    await desktop.invoke(CLICK, checkbox, {})
    assert (await desktop.read(checkbox)).checked is True
    assert desktop.invocations("Настройки") == [("click", "Настройки")]


@pytest.mark.asyncio
async def test_set_text_and_focus(desktop):
    search = await _one(desktop, automation_id="SearchBox")
    await desktop.invoke(ActionSpec(kind=ActionKind.SET_TEXT), search, {"text": "погода"})
    await desktop.invoke(ActionSpec(kind=ActionKind.FOCUS), search, {})

    state = await desktop.read(search)
    assert state.value == "погода"
    assert state.focused is True


@pytest.mark.asyncio
async def test_set_text_requires_text(desktop):
    search = await _one(desktop, automation_id="SearchBox")
    with pytest.raises(BackendError):
        await desktop.invoke(ActionSpec(kind=ActionKind.SET_TEXT), search, {})


@pytest.mark.asyncio
async def test_read_is_idempotent(desktop):
    element = await _one(desktop, name="Поиск")
    assert await desktop.read(element) == await desktop.read(element)


@pytest.mark.asyncio
async def test_close_removes_subtree(desktop):
    window = await _one(desktop, role="window")
    before = desktop.size()
    await desktop.invoke(ActionSpec(kind=ActionKind.CLOSE), window, {})
    assert desktop.size() == before - 6
    assert await desktop.find(ElementSelector(name="Настройки")) == []

    with pytest.raises(BackendError):
        await desktop.read(window)


@pytest.mark.asyncio
async def test_disabled_element_raises(desktop):
    element = await _one(desktop, name="Звук")
    element.native.enabled = False
    with pytest.raises(BackendError):
        await desktop.invoke(CLICK, element, {})


@pytest.mark.asyncio
async def test_custom_actions(desktop):
    element = await _one(desktop, name="Настройки")
    await desktop.invoke(ActionSpec(kind=ActionKind.CUSTOM, name="double_click"), element, {})
    assert element.native.click_count == 2

    seen = []
    desktop.register_custom("highlight", lambda node, params: seen.append((node.name, params.get("colour"))))
    await desktop.invoke(ActionSpec(kind=ActionKind.CUSTOM, name="highlight"), element, {"colour": "red"})
    assert seen == [("Настройки", "red")]

    with pytest.raises(BackendError):
        await desktop.invoke(ActionSpec(kind=ActionKind.CUSTOM, name="explode"), element, {})


@pytest.mark.asyncio
async def test_injected_error_is_limited(desktop):
    desktop.inject_failure("Настройки", kind="error", times=1)
    element = await _one(desktop, name="Настройки")
    with pytest.raises(BackendError):
        await desktop.invoke(CLICK, element, {})
    await desktop.invoke(CLICK, element, {})
    assert element.native.click_count == 1


@pytest.mark.asyncio
async def test_injected_timeout_blocks(desktop):
    desktop.inject_failure("SettingsButton", kind="timeout")
    element = await _one(desktop, name="Настройки")
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(desktop.invoke(CLICK, element, {}), timeout=0.05)


def test_from_dict():
    backend = SimulatedBackend.from_dict(
        {"name": "App", "role": "window", "children": [{"name": "OK", "role": "button"}]}
    )
    assert backend.size() == 2


def custom(name):
    return ActionSpec(kind=ActionKind.CUSTOM, name=name)


@pytest.mark.asyncio
async def test_clear_and_press_key(desktop):
    search = await _one(desktop, name="Поиск")
    search.native.value = "погода"
    await desktop.invoke(custom("clear"), search, {})
    await desktop.invoke(custom("press_key"), search, {"key": "enter"})
    assert search.native.value == ""
    assert search.native.keys == ["enter"]

    with pytest.raises(BackendError):
        await desktop.invoke(custom("press_key"), search, {})


@pytest.mark.asyncio
async def test_set_checked_is_idempotent(desktop):
    checkbox = await _one(desktop, role="checkbox")
    for _ in range(2):
        await desktop.invoke(custom("set_checked"), checkbox, {"state": "да"})
        assert checkbox.native.checked is True
    await desktop.invoke(custom("set_checked"), checkbox, {"state": "off"})
    assert checkbox.native.checked is False

    with pytest.raises(BackendError):
        await desktop.invoke(custom("set_checked"), checkbox, {"state": "maybe"})


@pytest.mark.asyncio
async def test_select_deselects_siblings():
    backend = SimulatedBackend.from_dict(
        {
            "name": "Параметры",
            "role": "window",
            "children": [
                {"name": "Общие", "role": "tabitem", "selected": True},
                {"name": "Сеть", "role": "tabitem"},
                {"name": "Тёмная", "role": "radio", "checked": False},
            ],
        }
    )
    network = await _one(backend, name="Сеть")
    await backend.invoke(custom("select"), network, {})
    tabs = await backend.find(ElementSelector(role="tabitem"))
    assert [t.native.selected for t in tabs] == [False, True]

    dark = await _one(backend, role="radio")
    await backend.invoke(custom("select"), dark, {})
    assert dark.native.checked is True


@pytest.mark.asyncio
async def test_resize_and_move_window(desktop):
    window = await _one(desktop, role="window")
    await desktop.invoke(custom("resize"), window, {"width": "1024", "height": "768"})
    await desktop.invoke(custom("move"), window, {"x": "10", "y": "20"})
    assert window.native.bounds == (10, 20, 1024, 768)

    with pytest.raises(BackendError):
        await desktop.invoke(custom("resize"), window, {"width": "wide", "height": "768"})
    with pytest.raises(BackendError):
        await desktop.invoke(custom("move"), window, {"x": "10"})


@pytest.mark.asyncio
async def test_scroll_directions(desktop):
    window = await _one(desktop, role="window")
    await desktop.invoke(custom("scroll"), window, {"direction": "down", "amount": ""})
    assert window.native.scroll_y == 3
    await desktop.invoke(custom("scroll"), window, {"direction": "up", "amount": "5"})
    await desktop.invoke(custom("scroll"), window, {"direction": "right", "amount": "2"})
    assert (window.native.scroll_x, window.native.scroll_y) == (2, -2)

    with pytest.raises(BackendError):
        await desktop.invoke(custom("scroll"), window, {"direction": "sideways"})
