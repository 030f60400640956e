import asyncio

import pytest

from flow_execution.execution.engine import FlowExecutionDriver
from flow_execution.execution.exceptions import (
    InvalidTransitionError,
    RowLimitError,
    SessionClosedError,
    UnknownFieldError,
)
from flow_execution.execution.schemas.state_machine import StateMachineTransition
from flow_execution.processor.interface import ProcessorError
from flow_execution.state.models import FlowPhase
from conftest import BlockingStepProcessor, FakeStepProcessor


def _next(group_id, context=None, **extra):
    body = {"success": True, "nextGroupNode": {"id": f"node_{group_id}", "groupId": group_id}}
    if context is not None:
        body["contextData"] = context
    body.update(extra)
    return body


# ==============================================================================
# Single group, terminal result, reset
# ==============================================================================

def test_single_group_completes_and_resets(single_group_flow):
    processor = FakeStepProcessor([
        {"success": True, "results": [{"node": "save", "status": "completed"}], "message": "Saved"}
    ])
    driver = FlowExecutionDriver(single_group_flow, processor, user_id="u1")
    driver.set_field_value("name", "Ada")

    meta = asyncio.run(driver.submit())

    assert meta.transition_type == StateMachineTransition.COMPLETE
    assert driver.phase == FlowPhase.COMPLETED
    assert driver.execution_result.success is True
    assert driver.execution_result.results[0].node == "save"

    request = processor.requests[0]
    assert request == {
        "buttonId": "btn_single",
        "executeParameters": {"name": "Ada", "city": "Toronto", "agree": "False"},
        "userId": "u1",
        "currentGroupNodeId": "node_A",
        "existingContextData": None,
    }

    meta = driver.reset()
    assert meta.transition_type == StateMachineTransition.RESET
    assert driver.phase == FlowPhase.COLLECTING_INPUT
    assert driver.current_step == 0
    assert driver.form_data == {"name": "", "city": "Toronto", "agree": "False"}
    assert driver.execution_result is None
    assert driver.context_data is None


def test_validation_failure_makes_no_request(single_group_flow, processor):
    driver = FlowExecutionDriver(single_group_flow, processor)

    meta = asyncio.run(driver.submit())

    assert meta.transition_type == StateMachineTransition.HOLD
    assert meta.errors == {"name": "Name is required"}
    assert driver.phase == FlowPhase.COLLECTING_INPUT
    assert processor.requests == []

    driver.set_field_value("name", "Ada")
    assert driver.errors == {}


def test_error_is_shown_on_the_field(single_group_flow, processor):
    driver = FlowExecutionDriver(single_group_flow, processor)
    asyncio.run(driver.submit())

    fields = {f.key: f for f in driver.view().groups[0].fields}
    assert fields["name"].error == "Name is required"
    assert fields["city"].error is None


def test_checkbox_values_are_normalised(single_group_flow, processor):
    driver = FlowExecutionDriver(single_group_flow, processor)
    assert driver.set_field_value("agree", True) == "True"
    assert driver.set_field_value("agree", "off") == "False"


def test_unknown_field_is_rejected(single_group_flow, processor):
    driver = FlowExecutionDriver(single_group_flow, processor)
    with pytest.raises(UnknownFieldError):
        driver.set_field_value("nope", "x")


# ==============================================================================
# Step path
# ==============================================================================

def test_merged_groups_share_one_step(merged_flow):
    processor = FakeStepProcessor([_next("C")])
    driver = FlowExecutionDriver(merged_flow, processor)

    assert driver.step_path == [["A", "B"]]
    assert [g.id for g in driver.view().groups] == ["A", "B"]

    meta = asyncio.run(driver.submit())

    assert meta.transition_type == StateMachineTransition.ADVANCE
    assert driver.step_path == [["A", "B"], ["C"]]
    assert driver.current_step == 1
    assert driver.is_last_step
    assert processor.requests[0]["currentGroupNodeId"] == "node_A"


def test_linear_flow_merges_context(linear_flow):
    processor = FakeStepProcessor([_next("B", {"x": 1}), _next("C", {"y": 2})])
    driver = FlowExecutionDriver(linear_flow, processor)
    driver.set_field_value("a1", "go")

    asyncio.run(driver.submit())
    assert driver.form_data["b2"] == "1-suffix"

    asyncio.run(driver.submit())

    assert driver.context_data == {"x": 1, "y": 2}
    assert processor.requests[1]["existingContextData"] == {"x": 1}
    assert processor.requests[1]["currentGroupNodeId"] == "node_B"
    assert driver.step_path == [["A"], ["B"], ["C"]]


def test_later_context_keys_win(linear_flow):
    processor = FakeStepProcessor([_next("B", {"x": 1, "keep": True}), _next("C", {"x": 2})])
    driver = FlowExecutionDriver(linear_flow, processor)
    driver.set_field_value("a1", "go")
    asyncio.run(driver.submit())
    asyncio.run(driver.submit())
    assert driver.context_data == {"x": 2, "keep": True}


def test_field_mappings_and_header_use_context(linear_flow):
    processor = FakeStepProcessor([_next("B", {"customer": {"name": "Ada"}})])
    driver = FlowExecutionDriver(linear_flow, processor)
    driver.set_field_value("a1", "go")

    asyncio.run(driver.submit())

    assert driver.form_data["b1"] == "Ada"
    group = driver.view().groups[0]
    assert group.header == "Hello Ada"


def test_header_keeps_unresolved_placeholders(linear_flow):
    processor = FakeStepProcessor([_next("B", {"x": 1})])
    driver = FlowExecutionDriver(linear_flow, processor)
    driver.set_field_value("a1", "go")
    asyncio.run(driver.submit())
    assert driver.view().groups[0].header == "Hello {{customer.name}}"


def test_back_then_resubmit_keeps_entered_values(linear_flow):
    processor = FakeStepProcessor([_next("B"), _next("B")])
    driver = FlowExecutionDriver(linear_flow, processor)
    driver.set_field_value("a1", "go")
    asyncio.run(driver.submit())
    driver.set_field_value("b1", "typed")

    meta = driver.back()
    assert meta.transition_type == StateMachineTransition.BACK
    assert driver.current_step == 0
    assert driver.step_path == [["A"], ["B"]]
    assert driver.form_data["b1"] == "typed"
    assert processor.requests and len(processor.requests) == 1

    meta = asyncio.run(driver.submit())

    assert meta.revisited is True
    assert driver.current_step == 1
    assert driver.step_path == [["A"], ["B"]]
    assert driver.form_data["b1"] == "typed"


def test_resubmit_with_new_context_remaps_revisited_step(linear_flow):
    processor = FakeStepProcessor([
        _next("B", {"customer": {"name": "Ada"}}),
        _next("B", {"customer": {"name": "Bob"}}),
    ])
    driver = FlowExecutionDriver(linear_flow, processor)
    driver.set_field_value("a1", "go")
    asyncio.run(driver.submit())
    assert driver.form_data["b1"] == "Ada"
    driver.set_field_value("b2", "kept")

    driver.back()
    meta = asyncio.run(driver.submit())

    assert meta.revisited is True
    assert driver.form_data["b1"] == "Bob"
    assert driver.form_data["b2"] == "kept"
    assert driver.view().groups[0].header == "Hello Bob"


def test_back_then_different_branch_truncates_path(linear_flow):
    processor = FakeStepProcessor([_next("B"), _next("C"), _next("C")])
    driver = FlowExecutionDriver(linear_flow, processor)
    driver.set_field_value("a1", "go")
    asyncio.run(driver.submit())
    asyncio.run(driver.submit())
    assert driver.step_path == [["A"], ["B"], ["C"]]

    driver.back()
    driver.back()
    meta = asyncio.run(driver.submit())

    assert meta.revisited is False
    assert driver.step_path == [["A"], ["C"]]
    assert driver.current_step == 1


def test_back_on_first_step_is_refused(single_group_flow, processor):
    driver = FlowExecutionDriver(single_group_flow, processor)
    with pytest.raises(InvalidTransitionError):
        driver.back()


def test_unknown_next_group_is_treated_as_final(single_group_flow):
    processor = FakeStepProcessor([_next("ZZZ", {"x": 1}, message="done")])
    driver = FlowExecutionDriver(single_group_flow, processor)
    driver.set_field_value("name", "Ada")

    meta = asyncio.run(driver.submit())

    assert meta.transition_type == StateMachineTransition.COMPLETE
    assert driver.phase == FlowPhase.COMPLETED
    assert driver.execution_result.success is True
    assert driver.step_path == [["A"]]
    assert driver.context_data == {"x": 1}


# ==============================================================================
# Confirmation & exit
# ==============================================================================

def _confirm(message, pending):
    return {
        "requiresConfirmation": True,
        "confirmationData": {"promptMessage": message, "showLocationMap": True, "latitude": 1.5, "longitude": 2.5},
        "pendingContextData": pending,
    }


def test_confirmation_round_trip(single_group_flow):
    processor = FakeStepProcessor([
        _confirm("Send it?", {"token": "p1"}),
        _confirm("Really?", {"token": "p2"}),
        {"success": True, "message": "Sent"},
    ])
    driver = FlowExecutionDriver(single_group_flow, processor)
    driver.set_field_value("name", "Ada")

    meta = asyncio.run(driver.submit())
    assert meta.transition_type == StateMachineTransition.CONFIRM
    assert driver.phase == FlowPhase.AWAITING_CONFIRMATION
    view = driver.view(maps_api_key="KEY")
    assert view.groups == []
    assert view.confirmation_prompt.prompt_message == "Send it?"
    assert view.static_map_url.endswith("&key=KEY")

    with pytest.raises(InvalidTransitionError):
        asyncio.run(driver.submit())

    asyncio.run(driver.answer_confirmation(True))
    request = processor.requests[1]
    assert request["userConfirmationResponse"] is True
    assert request["pendingContextData"] == {"token": "p1"}
    assert request["executeParameters"]["name"] == "Ada"
    assert driver.phase == FlowPhase.AWAITING_CONFIRMATION
    assert driver.confirmation_prompt.prompt_message == "Really?"

    meta = asyncio.run(driver.answer_confirmation(False))
    assert processor.requests[2]["userConfirmationResponse"] is False
    assert processor.requests[2]["pendingContextData"] == {"token": "p2"}
    assert meta.transition_type == StateMachineTransition.COMPLETE
    assert driver.confirmation_prompt is None
    assert driver.execution_result.message == "Sent"


def test_answer_without_prompt_is_refused(single_group_flow, processor):
    driver = FlowExecutionDriver(single_group_flow, processor)
    with pytest.raises(InvalidTransitionError):
        asyncio.run(driver.answer_confirmation(True))


def test_exit_then_restart(single_group_flow):
    processor = FakeStepProcessor([
        {"exitData": {"exitMessage": "Nothing to do", "showRestartButton": True}, "contextData": {"x": 1}}
    ])
    driver = FlowExecutionDriver(single_group_flow, processor)
    driver.set_field_value("name", "Ada")

    meta = asyncio.run(driver.submit())

    assert meta.transition_type == StateMachineTransition.EXIT
    assert driver.phase == FlowPhase.EXITED
    assert driver.view().exit_data.show_restart_button is True

    driver.restart()
    assert driver.phase == FlowPhase.COLLECTING_INPUT
    assert driver.exit_data is None
    assert driver.context_data is None
    assert driver.form_data["name"] == ""


# ==============================================================================
# Failures & concurrency
# ==============================================================================

def test_processor_error_becomes_failed_result(single_group_flow):
    processor = FakeStepProcessor([ProcessorError("Step processor returned HTTP 502")])
    driver = FlowExecutionDriver(single_group_flow, processor)
    driver.set_field_value("name", "Ada")

    meta = asyncio.run(driver.submit())

    assert meta.transition_type == StateMachineTransition.COMPLETE
    assert driver.phase == FlowPhase.COMPLETED
    assert driver.execution_result.success is False
    assert driver.execution_result.error == "Step processor returned HTTP 502"


def test_error_without_message_gets_generic_text(single_group_flow):
    processor = FakeStepProcessor([RuntimeError()])
    driver = FlowExecutionDriver(single_group_flow, processor)
    driver.set_field_value("name", "Ada")
    asyncio.run(driver.submit())
    assert driver.execution_result.error == "Unknown error occurred"


def test_second_submit_while_in_flight_is_refused(single_group_flow):
    async def scenario():
        processor = BlockingStepProcessor({"success": True})
        driver = FlowExecutionDriver(single_group_flow, processor)
        driver.set_field_value("name", "Ada")

        task = asyncio.create_task(driver.submit())
        await processor.started.wait()
        assert driver.phase == FlowPhase.SUBMITTING
        with pytest.raises(InvalidTransitionError):
            await driver.submit()

        processor.release()
        meta = await task
        return driver, processor, meta

    driver, processor, meta = asyncio.run(scenario())
    assert meta.transition_type == StateMachineTransition.COMPLETE
    assert len(processor.requests) == 1


def test_response_after_reset_is_discarded(linear_flow):
    async def scenario():
        processor = BlockingStepProcessor(_next("B", {"x": 1}))
        driver = FlowExecutionDriver(linear_flow, processor)
        driver.set_field_value("a1", "go")

        task = asyncio.create_task(driver.submit())
        await processor.started.wait()
        driver.reset()
        processor.release()
        return driver, await task

    driver, meta = asyncio.run(scenario())
    assert meta.transition_type == StateMachineTransition.DISCARD
    assert driver.phase == FlowPhase.COLLECTING_INPUT
    assert driver.step_path == [["A"]]
    assert driver.context_data is None


def test_response_after_close_is_discarded(single_group_flow):
    async def scenario():
        processor = BlockingStepProcessor({"success": True})
        driver = FlowExecutionDriver(single_group_flow, processor)
        driver.set_field_value("name", "Ada")

        task = asyncio.create_task(driver.submit())
        await processor.started.wait()
        driver.close()
        processor.release()
        return driver, await task

    driver, meta = asyncio.run(scenario())
    assert meta.transition_type == StateMachineTransition.DISCARD
    assert driver.execution_result is None
    with pytest.raises(SessionClosedError):
        asyncio.run(driver.submit())


# ==============================================================================
# Array groups
# ==============================================================================

def test_array_rows_through_driver(array_flow, processor):
    driver = FlowExecutionDriver(array_flow, processor)

    view = driver.view().groups[0]
    assert view.is_array_group
    assert view.row_count == 1
    assert view.can_add_row and not view.can_remove_row

    assert driver.add_row("G") == 2
    assert driver.add_row("G") == 3
    assert driver.view().groups[0].can_add_row is False
    with pytest.raises(RowLimitError):
        driver.add_row("G")

    assert driver.remove_row("G", 2) == 2


def test_array_submission_payload(array_flow):
    processor = FakeStepProcessor([{"success": True}])
    driver = FlowExecutionDriver(array_flow, processor)
    driver.set_row_value("items", 0, "sku", "A-1")
    driver.set_row_value("items", 0, "fragile", True)

    asyncio.run(driver.submit())

    assert processor.requests[0]["executeParameters"] == {
        "items": [{"sku": "A-1", "qty": "1", "fragile": "True", "contact": ""}]
    }


def test_row_errors_are_cleared_when_rows_shift(array_flow, processor):
    driver = FlowExecutionDriver(array_flow, processor)
    driver.add_row("G")
    driver.set_row_value("items", 0, "sku", "A-1")

    meta = asyncio.run(driver.submit())
    assert meta.errors == {"items[1].sku": "Sku is required"}
    assert driver.view().groups[0].rows[1][0].error == "Sku is required"

    driver.remove_row("G", 1)
    assert driver.errors == {}


def test_snapshot_is_detached(single_group_flow, processor):
    driver = FlowExecutionDriver(single_group_flow, processor, session_id="s1")
    snapshot = driver.snapshot()
    snapshot.form_data["name"] = "changed"
    assert snapshot.session_id == "s1"
    assert snapshot.phase == FlowPhase.COLLECTING_INPUT
    assert driver.form_data["name"] == ""
