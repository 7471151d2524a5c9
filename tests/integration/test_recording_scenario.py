"""
End-to-end recording of a todo page through BrowserRecorder.
"""

import json

import pytest

from stepforge.config import RecorderSettings, Settings
from stepforge.recorder import ActionType, BrowserRecorder
from stepforge.selectors import LocatorKind

URL = "https://todo.test/"


async def send(recorder, **message):
    """Deliver one listener message and wait for its reduction."""
    message.setdefault("url", URL)
    await recorder._dispatch(json.dumps(message))


@pytest.fixture
def saved():
    return []


@pytest.fixture
def recorder(saved):
    settings = Settings(recorder=RecorderSettings(settle_delay_ms=0))
    return BrowserRecorder(settings, on_feature_complete=saved.append)


@pytest.mark.asyncio
async def test_type_enter_and_check(recorder, fake_page, todo_payload, saved):
    await recorder.start(fake_page, "Todo", start_url=URL)

    await send(recorder, type="input", target=4, path=[4], value="learn to code", timestamp=1000)
    await send(recorder, type="keydown", target=4, key="Enter", timestamp=1100,
               snapshot=todo_payload(typed="learn to code"))
    # The listener clears the field after Enter
    await send(recorder, type="blur", target=4, timestamp=1150, snapshot=todo_payload())

    fake_page.snapshot_payload = todo_payload(checked=True)
    await send(recorder, type="click", target=7, x=10, y=50, timestamp=2000,
               snapshot=todo_payload())
    await send(recorder, type="change", target=7, timestamp=2001,
               snapshot=todo_payload(checked=True))

    session = await recorder.stop()

    assert [a.action_type for a in session.actions] == [
        ActionType.NAVIGATE,
        ActionType.SEND_KEYS_ENTER,
        ActionType.CHECKBOX,
    ]
    navigate, enter, check = session.actions
    assert navigate.value == URL

    assert enter.locator.kind == LocatorKind.CSS_SELECTOR
    assert enter.locator.value == '[data-testid="text-input"]'
    assert enter.value == "learn to code"
    assert enter.key == "Enter"

    assert check.locator.kind == LocatorKind.XPATH
    assert check.locator.value == '//label[normalize-space()="write a letter"]/preceding-sibling::input'
    assert check.value == "check"
    assert check.checked is True

    assert saved == [session]
    assert session.name == "Todo"


@pytest.mark.asyncio
async def test_second_feature_via_commands(recorder, fake_page, todo_payload, saved):
    await recorder.start(fake_page, "Todo", start_url=URL)
    fake_page.snapshot_payload = todo_payload(checked=True)
    await send(recorder, type="click", target=7, x=10, y=50, timestamp=2000,
               snapshot=todo_payload())

    assert await recorder.process_command("new feature Uncheck items") == "new feature"
    fake_page.snapshot_payload = todo_payload(checked=False)
    await send(recorder, type="click", target=7, x=10, y=50, timestamp=3000,
               snapshot=todo_payload(checked=True))
    await recorder.process_command("stop")

    assert [s.name for s in saved] == ["Todo", "UncheckItems"]
    (uncheck,) = saved[1].actions
    assert uncheck.value == "uncheck"


@pytest.mark.asyncio
async def test_typed_text_flushed_on_stop(recorder, fake_page, todo_payload):
    await recorder.start(fake_page, "Todo", start_url=URL)
    await send(recorder, type="input", target=4, path=[4], value="draft", timestamp=1000)
    fake_page.snapshot_payload = todo_payload(typed="draft")

    session = await recorder.stop()

    last = session.actions[-1]
    assert last.action_type == ActionType.SEND_KEYS
    assert last.value == "draft"
