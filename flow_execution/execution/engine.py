"""
Engine - Flow Execution Driver

The FlowExecutionDriver is the deterministic state machine behind an
execute button. It owns all state of one execution session, sequences the
Steps of a data-driven flow, and delegates the real work of each node to the
external Step Processor.
-----------------------------------------------

Phases:
    COLLECTING_INPUT(i) -> SUBMITTING             (submit, once the Step validates)
    SUBMITTING -> COLLECTING_INPUT(i+1)           (processor names the next group)
    SUBMITTING -> AWAITING_CONFIRMATION           (processor asks a Yes/No question)
    SUBMITTING -> EXITED | COMPLETED              (exit node / final result)
    AWAITING_CONFIRMATION -> SUBMITTING           (answer_confirmation)
    COLLECTING_INPUT(i) -> COLLECTING_INPUT(i-1)  (back, no network call)
    * -> COLLECTING_INPUT(0)                      (reset / restart)

The only suspension point is the processor call. SUBMITTING is a real phase,
so a second submit while a request is in flight is refused. Every teardown
(reset, close) bumps a generation counter; a response that comes back for an
older generation is dropped instead of being applied to the new state.
"""

import copy
import logging
import uuid
from typing import Any, Dict, List, Optional, assert_never

from ..config import settings
from ..domain.models import FieldDefinition, FlowDefinition, Group
from ..processor.interface import StepProcessor
from ..schemas.processor import (
    ConfirmationAnswerRequest,
    ConfirmationPrompt,
    ConfirmationRequired,
    ExecuteRequest,
    ExecutionResult,
    ExitData,
    FlowExited,
    NextGroup,
    ProcessorResponse,
    TerminalResult,
    parse_processor_response,
)
from ..state.models import ExecutionSession, FlowPhase, StepPath
from .exceptions import (
    InvalidTransitionError,
    SessionClosedError,
    UnknownFieldError,
    UnknownGroupError,
)
from .form_state import FormStateStore
from .rendering import GroupView, StepView, field_props, normalize_input, scalar_fields
from .schemas.state_machine import StateMachineTransition, TransitionMeta
from .step_path import StepPathBuilder, step_ids
from .validator import Validator, array_error_key
from .variables import resolve

logger = logging.getLogger(__name__)


class FlowExecutionDriver:
    def __init__(
        self,
        flow: FlowDefinition,
        processor: StepProcessor,
        user_id: str = settings.DEFAULT_USER_ID,
        session_id: Optional[str] = None,
    ):
        self.flow = flow
        self.processor = processor
        self.user_id = user_id
        self.session_id = session_id or str(uuid.uuid4())

        self.paths = StepPathBuilder(flow)
        self.store = FormStateStore(flow)
        self.validator = Validator(flow)

        self._generation = 0
        self._closed = False
        self._initialize()

    def _initialize(self):
        self.phase = FlowPhase.COLLECTING_INPUT
        self.current_step = 0
        self.step_path: StepPath = [step_ids(step) for step in self.paths.initial_path()]
        self.context_data: Optional[Dict[str, Any]] = None
        self.errors: Dict[str, str] = {}
        self.confirmation_prompt: Optional[ConfirmationPrompt] = None
        self.exit_data: Optional[ExitData] = None
        self.execution_result: Optional[ExecutionResult] = None
        self.store.seed(self.context_data)

    # ==========================================================================
    # Read-only accessors
    # ==========================================================================

    @property
    def current_groups(self) -> List[Group]:
        if not self.step_path:
            return []
        return self.paths.groups_of(self.step_path[self.current_step])

    @property
    def total_steps(self) -> int:
        return len(self.step_path)

    @property
    def is_first_step(self) -> bool:
        return self.current_step == 0

    @property
    def is_last_step(self) -> bool:
        return self.current_step == self.total_steps - 1

    @property
    def form_data(self) -> Dict[str, Any]:
        return self.store.form_data

    @property
    def array_data(self) -> Dict[str, List[Dict[str, Any]]]:
        return self.store.array_data

    @property
    def closed(self) -> bool:
        return self._closed

    # ==========================================================================
    # Network transitions
    # ==========================================================================

    async def submit(self) -> TransitionMeta:
        """
        Validates the current Step and, if it passes, sends it to the processor.

        Validation errors keep the session where it is without any network call.
        """
        self._ensure_open()
        self._require_phase(FlowPhase.COLLECTING_INPUT, "submit")

        groups = self.current_groups
        if not groups:
            raise InvalidTransitionError("This flow has no steps to submit.")

        self.errors = self.validator.validate_step(groups, self.store.form_data, self.store.array_data)
        if self.errors:
            logger.info(f"Session {self.session_id}: step {self.current_step} has {len(self.errors)} validation error(s)")
            return TransitionMeta(
                transition_type=StateMachineTransition.HOLD,
                from_step=self.current_step,
                to_step=self.current_step,
                reasoning="Validation failed",
                errors=dict(self.errors),
            )

        mapping = self.flow.mapping_for(groups[0].id)
        request = ExecuteRequest(
            button_id=self.flow.button_id,
            execute_parameters=self.store.execute_parameters(),
            user_id=self.user_id,
            current_group_node_id=mapping.node_id if mapping else None,
            existing_context_data=copy.deepcopy(self.context_data),
        )
        return await self._dispatch(request.model_dump(by_alias=True))

    async def answer_confirmation(self, answer: bool) -> TransitionMeta:
        """
        Answers the pending confirmation prompt.

        The pending context data received with the prompt is echoed back
        unchanged; the response is interpreted exactly like a submission's.
        """
        self._ensure_open()
        self._require_phase(FlowPhase.AWAITING_CONFIRMATION, "answer a confirmation")

        prompt = self.confirmation_prompt
        request = ConfirmationAnswerRequest(
            button_id=self.flow.button_id,
            execute_parameters=self.store.execute_parameters(),
            user_id=self.user_id,
            user_confirmation_response=answer,
            pending_context_data=prompt.pending_context_data if prompt else None,
        )
        self.confirmation_prompt = None
        return await self._dispatch(request.model_dump(by_alias=True))

    async def _dispatch(self, payload: Dict[str, Any]) -> TransitionMeta:
        generation = self._generation
        from_step = self.current_step
        self.phase = FlowPhase.SUBMITTING
        self.execution_result = None

        logger.info(f"Session {self.session_id}: calling step processor from step {from_step}")

        try:
            raw = await self.processor.process(payload)
            response = parse_processor_response(raw)
        except Exception as e:
            if self._is_stale(generation):
                return self._discard(from_step, f"Error after teardown: {e}")
            logger.error(f"Step processor call failed: {e}")
            return self._complete(
                ExecutionResult(success=False, error=str(e) or "Unknown error occurred"),
                from_step,
            )

        if self._is_stale(generation):
            return self._discard(from_step, f"Late '{response.kind}' response")

        return self._apply_response(response, from_step)

    # ==========================================================================
    # Response interpretation
    # ==========================================================================

    def _apply_response(self, response: ProcessorResponse, from_step: int) -> TransitionMeta:
        """
        Merges returned context data, then transitions on the response variant.
        """
        self._merge_context(response.context_data)

        match response:
            case ConfirmationRequired(prompt=prompt):
                self.confirmation_prompt = prompt
                self.phase = FlowPhase.AWAITING_CONFIRMATION
                meta = TransitionMeta(
                    transition_type=StateMachineTransition.CONFIRM,
                    from_step=from_step,
                    to_step=self.current_step,
                    reasoning=prompt.prompt_message,
                )
            case FlowExited(exit_data=exit_data):
                self.exit_data = exit_data
                self.phase = FlowPhase.EXITED
                meta = TransitionMeta(
                    transition_type=StateMachineTransition.EXIT,
                    from_step=from_step,
                    to_step=self.current_step,
                    reasoning=exit_data.exit_message,
                )
            case NextGroup(group_id=group_id):
                step = self.paths.step_for(group_id)
                if not step:
                    logger.warning(f"Processor named unknown group '{group_id}', treating as final result")
                    return self._complete(response.fallback, from_step)
                return self._advance(step, from_step, context_changed=response.context_data is not None)
            case TerminalResult(result=result):
                return self._complete(result, from_step)
            case _:
                assert_never(response)

        self._apply_field_mappings()
        return meta

    def _advance(self, step: List[Group], from_step: int, context_changed: bool = False) -> TransitionMeta:
        ids = step_ids(step)
        next_index = self.current_step + 1

        # Going Back and submitting again lands on the Step already recorded
        # there; keep it and the values entered in it. Only fresh context data
        # is mapped onto it.
        revisited = next_index < len(self.step_path) and self.step_path[next_index] == ids

        if not revisited:
            del self.step_path[next_index:]
            self.step_path.append(ids)

        self.current_step = next_index
        self.phase = FlowPhase.COLLECTING_INPUT
        self.errors = {}

        if not revisited:
            self.store.seed_step(step, self.context_data)
            self._apply_field_mappings()
        elif context_changed:
            self._apply_field_mappings()

        logger.info(f"Session {self.session_id}: advanced to step {next_index} {ids}")
        return TransitionMeta(
            transition_type=StateMachineTransition.ADVANCE,
            from_step=from_step,
            to_step=next_index,
            reasoning=f"Processor paused at group '{ids[0]}'",
            revisited=revisited,
            group_id=ids[0],
        )

    def _complete(self, result: ExecutionResult, from_step: int) -> TransitionMeta:
        self.execution_result = result
        self.phase = FlowPhase.COMPLETED
        self._apply_field_mappings()
        return TransitionMeta(
            transition_type=StateMachineTransition.COMPLETE,
            from_step=from_step,
            to_step=self.current_step,
            reasoning=result.error or result.message or ("Succeeded" if result.success else "Failed"),
        )

    def _discard(self, from_step: int, reason: str) -> TransitionMeta:
        logger.warning(f"Session {self.session_id}: discarding stale processor response ({reason})")
        return TransitionMeta(
            transition_type=StateMachineTransition.DISCARD,
            from_step=from_step,
            to_step=self.current_step,
            reasoning=reason,
        )

    def _merge_context(self, incoming: Optional[Dict[str, Any]]):
        # Superset union: later keys win, nothing is ever removed.
        if incoming is None:
            return
        merged = dict(self.context_data or {})
        merged.update(incoming)
        self.context_data = merged

    def _apply_field_mappings(self):
        if self.context_data is None:
            return
        for group in self.current_groups:
            self.store.apply_field_mappings(self.flow.mapping_for(group.id), self.context_data)

    # ==========================================================================
    # Local transitions
    # ==========================================================================

    def back(self) -> TransitionMeta:
        """Shows the previous Step. Keeps the path and every entered value."""
        self._ensure_open()
        self._require_phase(FlowPhase.COLLECTING_INPUT, "go back")
        if self.is_first_step:
            raise InvalidTransitionError("Already on the first step.")

        from_step = self.current_step
        self.current_step -= 1
        self.errors = {}
        return TransitionMeta(
            transition_type=StateMachineTransition.BACK,
            from_step=from_step,
            to_step=self.current_step,
        )

    def reset(self) -> TransitionMeta:
        """Returns to the first Step with fresh defaults and empty context data."""
        self._ensure_open()
        from_step = self.current_step
        self._generation += 1
        self._initialize()
        logger.info(f"Session {self.session_id}: reset")
        return TransitionMeta(
            transition_type=StateMachineTransition.RESET,
            from_step=from_step,
            to_step=0,
        )

    def restart(self) -> TransitionMeta:
        """Restart button of an exited flow. Same as reset()."""
        return self.reset()

    def close(self):
        """Tears the session down. In-flight responses will be discarded."""
        if self._closed:
            return
        self._generation += 1
        self._closed = True
        logger.info(f"Session {self.session_id}: closed")

    # ==========================================================================
    # Editing
    # ==========================================================================

    def set_field_value(self, field_key: str, value: Any) -> Any:
        self._ensure_open()
        self._require_phase(FlowPhase.COLLECTING_INPUT, "edit fields")

        field = self._scalar_field(field_key)
        stored = normalize_input(field.field_type, value)
        self.store.set_value(field_key, stored)
        self.errors.pop(field_key, None)
        return stored

    def set_row_value(self, array_field_name: str, row_index: int, field_key: str, value: Any) -> Any:
        self._ensure_open()
        self._require_phase(FlowPhase.COLLECTING_INPUT, "edit fields")

        group = self.flow.array_group_for(array_field_name)
        if group is None:
            raise UnknownGroupError(f"No array group named '{array_field_name}'.")
        field = next((f for f in self.flow.fields_for(group.id) if f.field_key == field_key), None)
        if field is None:
            raise UnknownFieldError(f"'{array_field_name}' has no field '{field_key}'.")

        stored = normalize_input(field.field_type, value)
        self.store.set_row_value(array_field_name, row_index, field_key, stored)
        self.errors.pop(array_error_key(array_field_name, row_index, field_key), None)
        return stored

    def add_row(self, group_id: str) -> int:
        self._ensure_open()
        self._require_phase(FlowPhase.COLLECTING_INPUT, "add rows")
        return self.store.add_row(self._group(group_id), self.context_data)

    def remove_row(self, group_id: str, row_index: int) -> int:
        self._ensure_open()
        self._require_phase(FlowPhase.COLLECTING_INPUT, "remove rows")
        group = self._group(group_id)
        count = self.store.remove_row(group, row_index)
        # Row indices shifted; errors keyed by the old indices are stale.
        prefix = f"{group.array_field_name}["
        self.errors = {k: v for k, v in self.errors.items() if not k.startswith(prefix)}
        return count

    # ==========================================================================
    # Views
    # ==========================================================================

    def view(self, maps_api_key: Optional[str] = None) -> StepView:
        """Everything the client needs to draw the session as it is now."""
        show_form = self.phase in (FlowPhase.COLLECTING_INPUT, FlowPhase.SUBMITTING)
        prompt = self.confirmation_prompt
        return StepView(
            phase=self.phase,
            step_index=self.current_step,
            total_steps=self.total_steps,
            is_first_step=self.is_first_step,
            is_last_step=self.is_last_step,
            can_submit=self.phase == FlowPhase.COLLECTING_INPUT and bool(self.step_path),
            can_go_back=self.phase == FlowPhase.COLLECTING_INPUT and not self.is_first_step,
            groups=[self._group_view(g) for g in self.current_groups] if show_form else [],
            confirmation_prompt=prompt,
            static_map_url=prompt.static_map_url(maps_api_key) if prompt else None,
            exit_data=self.exit_data,
            execution_result=self.execution_result,
        )

    def snapshot(self) -> ExecutionSession:
        return ExecutionSession(
            session_id=self.session_id,
            button_id=self.flow.button_id,
            phase=self.phase,
            current_step=self.current_step,
            step_path=[list(ids) for ids in self.step_path],
            form_data=copy.deepcopy(self.store.form_data),
            array_data=copy.deepcopy(self.store.array_data),
            context_data=copy.deepcopy(self.context_data),
            errors=dict(self.errors),
            confirmation_prompt=self.confirmation_prompt,
            exit_data=self.exit_data,
            execution_result=self.execution_result,
        )

    def _group_view(self, group: Group) -> GroupView:
        mapping = self.flow.mapping_for(group.id)
        header = None
        if mapping and mapping.header_content:
            header = resolve(mapping.header_content, self.context_data or {})

        fields = self.flow.fields_for(group.id)
        view = GroupView(
            id=group.id,
            name=group.name,
            description=group.description,
            header=header,
            is_array_group=group.is_array_group,
        )

        if not group.is_array_group:
            view.fields = scalar_fields(fields, self.store.form_data, self.errors)
            return view

        rows = self.store.rows(group)
        view.array_field_name = group.array_field_name
        view.rows = [self._row_props(group, fields, index, row) for index, row in enumerate(rows)]
        view.row_count = len(rows)
        view.max_rows = group.array_max_rows
        view.can_add_row = self.store.can_add_row(group)
        view.can_remove_row = self.store.can_remove_row(group)
        return view

    def _row_props(self, group: Group, fields: List[FieldDefinition], index: int, row: Dict[str, Any]):
        return [
            field_props(
                f,
                row.get(f.field_key),
                self.errors.get(array_error_key(group.array_field_name, index, f.field_key)),
            )
            for f in fields
        ]

    # ==========================================================================
    # Guards & lookups
    # ==========================================================================

    def _ensure_open(self):
        if self._closed:
            raise SessionClosedError(f"Session {self.session_id} is closed.")

    def _require_phase(self, expected: FlowPhase, action: str):
        if self.phase != expected:
            raise InvalidTransitionError(
                f"Cannot {action} while {self.phase.value} (expected {expected.value})."
            )

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation

    def _group(self, group_id: str) -> Group:
        group = self.flow.get_group(group_id)
        if group is None:
            raise UnknownGroupError(f"Group '{group_id}' not found.")
        return group

    def _scalar_field(self, field_key: str) -> FieldDefinition:
        for field in self.flow.fields:
            if field.field_key != field_key:
                continue
            group = self.flow.get_group(field.group_id)
            if group and not group.is_array_group:
                return field
        raise UnknownFieldError(f"Field '{field_key}' not found.")
