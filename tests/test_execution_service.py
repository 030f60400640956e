import asyncio

import pytest

from flow_execution.repositories.flow import StaticFlowRepository
from flow_execution.services.exceptions import SessionNotFoundError
from flow_execution.services.execution import ExecutionService
from conftest import FakeStepProcessor


def _service(processor=None, max_sessions=2):
    return ExecutionService(
        flow_repository=StaticFlowRepository(),
        processor=processor or FakeStepProcessor(),
        max_sessions=max_sessions,
    )


def test_oldest_session_is_evicted_when_full():
    service = _service()
    first = service.start("btn_quick_note")
    second = service.start("btn_quick_note")
    third = service.start("btn_quick_note")

    with pytest.raises(SessionNotFoundError):
        service.get(first.session_id)
    assert first.closed
    assert service.get(second.session_id) is second
    assert service.get(third.session_id) is third


def test_finished_sessions_are_evicted_before_live_ones():
    service = _service(FakeStepProcessor([{"success": True}]))
    live = service.start("btn_quick_note")
    done = service.start("btn_quick_note")
    done.set_field_value("note", "Call back")
    asyncio.run(service.submit(done.session_id))

    service.start("btn_quick_note")

    assert service.get(live.session_id) is live
    with pytest.raises(SessionNotFoundError):
        service.get(done.session_id)


def test_close_removes_session():
    service = _service()
    driver = service.start("btn_quick_note")
    assert service.close(driver.session_id) is True
    assert driver.closed
    assert service.close(driver.session_id) is False
