from fastapi import APIRouter, BackgroundTasks, Depends, Path, Query, Request

from routine.api.deps import (
    get_conflict_detector,
    get_dispatcher,
    get_elective_assigner,
    get_references,
    get_routine_view,
    get_slot_assigner,
    get_spanned_assigner,
)
from routine.models.scheduled_slot import LabGroup, Section
from routine.schemas.conflict import AvailabilityOut, ConflictReport
from routine.schemas.routine import (
    AssignmentOut,
    ClearResultOut,
    ConflictCheckIn,
    ElectiveScheduleIn,
    ElectiveScheduleOut,
    ResourceScheduleOut,
    RoutineOut,
    ScheduledSlotOut,
    SlotAssignmentIn,
    SpannedAssignmentIn,
    SpannedAssignmentOut,
    SpanOut,
)
from routine.services.assigner import SlotAssigner
from routine.services.conflict_detector import ConflictDetector
from routine.services.elective_assigner import ElectiveAssigner
from routine.services.outcomes import BatchResult, ClearResult
from routine.services.references import ReferenceDirectory
from routine.services.routine_view import RoutineView
from routine.services.schedule_events import ScheduleChange, ScheduleEventDispatcher
from routine.services.spanned_assigner import SpannedAssigner

router = APIRouter()


def _notify(
    background_tasks: BackgroundTasks,
    dispatcher: ScheduleEventDispatcher,
    change: ScheduleChange | None,
    request: Request,
) -> None:
    if change is None or not change.teacher_ids:
        return
    background_tasks.add_task(dispatcher.dispatch, change, getattr(request.state, "request_id", None))


def _clear_out(result: ClearResult) -> ClearResultOut:
    return ClearResultOut(
        found=result.found,
        deleted=result.deleted,
        teacher_ids=result.teacher_ids,
        span_ids=result.span_ids,
        elective_group_ids=result.elective_group_ids,
    )


def _spans_out(result: BatchResult, lab_groups: bool = False) -> list[SpanOut]:
    spans: list[SpanOut] = []
    for span_id, records in result.spans.items():
        spans.append(
            SpanOut(
                span_id=span_id,
                lab_group=records[0].lab_group if lab_groups and records else None,
                records=[ScheduledSlotOut.model_validate(record) for record in records],
            )
        )
    return spans


@router.post("/assign-spanned", response_model=SpannedAssignmentOut, status_code=201)
def assign_spanned_slot(
    payload: SpannedAssignmentIn,
    request: Request,
    background_tasks: BackgroundTasks,
    assigner: SpannedAssigner = Depends(get_spanned_assigner),
    dispatcher: ScheduleEventDispatcher = Depends(get_dispatcher),
) -> SpannedAssignmentOut:
    result = assigner.assign(payload)
    _notify(background_tasks, dispatcher, result.change, request)
    return SpannedAssignmentOut(spans=_spans_out(result, lab_groups=True), warnings=result.warnings)


@router.delete("/spans/{span_id}", response_model=ClearResultOut)
def clear_span(
    span_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    assigner: SpannedAssigner = Depends(get_spanned_assigner),
    dispatcher: ScheduleEventDispatcher = Depends(get_dispatcher),
) -> ClearResultOut:
    result = assigner.clear_span(span_id)
    _notify(background_tasks, dispatcher, result.change, request)
    return _clear_out(result)


@router.post("/electives/schedule", response_model=ElectiveScheduleOut, status_code=201)
def schedule_elective(
    payload: ElectiveScheduleIn,
    request: Request,
    background_tasks: BackgroundTasks,
    assigner: ElectiveAssigner = Depends(get_elective_assigner),
    dispatcher: ScheduleEventDispatcher = Depends(get_dispatcher),
) -> ElectiveScheduleOut:
    result = assigner.schedule(payload)
    _notify(background_tasks, dispatcher, result.change, request)
    return ElectiveScheduleOut(
        elective_group_id=result.elective_group_id,
        elective_info=result.elective_info,
        span_ids=list(result.spans),
        records=[ScheduledSlotOut.model_validate(record) for record in result.records],
        warnings=result.warnings,
    )


@router.delete("/electives/{elective_group_id}", response_model=ClearResultOut)
def clear_elective(
    elective_group_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    assigner: ElectiveAssigner = Depends(get_elective_assigner),
    dispatcher: ScheduleEventDispatcher = Depends(get_dispatcher),
) -> ClearResultOut:
    result = assigner.clear_elective(elective_group_id)
    _notify(background_tasks, dispatcher, result.change, request)
    return _clear_out(result)


@router.post("/conflicts/check", response_model=ConflictReport)
def check_conflicts(
    payload: ConflictCheckIn,
    assigner: SlotAssigner = Depends(get_slot_assigner),
) -> ConflictReport:
    return assigner.check(payload.program_code, payload.semester, payload.section, payload)


@router.get("/teachers/{teacher_id}/availability", response_model=AvailabilityOut)
def check_teacher_availability(
    teacher_id: str,
    day_index: int = Query(ge=0, le=6),
    slot_index: int = Query(ge=0),
    semester: int | None = Query(default=None, ge=1, le=8),
    references: ReferenceDirectory = Depends(get_references),
    detector: ConflictDetector = Depends(get_conflict_detector),
) -> AvailabilityOut:
    references.require_teacher(teacher_id)
    academic_year = references.current_academic_year()
    return detector.teacher_availability(
        academic_year_id=academic_year.id,
        teacher_id=teacher_id,
        day_index=day_index,
        slot_index=slot_index,
        semester=semester,
    )


@router.get("/rooms/{room_id}/availability", response_model=AvailabilityOut)
def check_room_availability(
    room_id: str,
    day_index: int = Query(ge=0, le=6),
    slot_index: int = Query(ge=0),
    semester: int | None = Query(default=None, ge=1, le=8),
    references: ReferenceDirectory = Depends(get_references),
    detector: ConflictDetector = Depends(get_conflict_detector),
) -> AvailabilityOut:
    references.require_room(room_id)
    academic_year = references.current_academic_year()
    return detector.room_availability(
        academic_year_id=academic_year.id,
        room_id=room_id,
        day_index=day_index,
        slot_index=slot_index,
        semester=semester,
    )


@router.get("/teachers/{teacher_id}/schedule", response_model=ResourceScheduleOut)
def get_teacher_schedule(teacher_id: str, view: RoutineView = Depends(get_routine_view)) -> ResourceScheduleOut:
    return view.teacher_schedule(teacher_id)


@router.get("/rooms/{room_id}/schedule", response_model=ResourceScheduleOut)
def get_room_schedule(room_id: str, view: RoutineView = Depends(get_routine_view)) -> ResourceScheduleOut:
    return view.room_schedule(room_id)


@router.get("/{program_code}/{semester}/{section}", response_model=RoutineOut)
def get_routine(
    program_code: str,
    section: Section,
    semester: int = Path(ge=1, le=8),
    view: RoutineView = Depends(get_routine_view),
) -> RoutineOut:
    return view.section_routine(program_code, semester, section)


@router.post("/{program_code}/{semester}/{section}/assign", response_model=AssignmentOut)
def assign_slot(
    program_code: str,
    section: Section,
    payload: SlotAssignmentIn,
    request: Request,
    background_tasks: BackgroundTasks,
    semester: int = Path(ge=1, le=8),
    assigner: SlotAssigner = Depends(get_slot_assigner),
    dispatcher: ScheduleEventDispatcher = Depends(get_dispatcher),
) -> AssignmentOut:
    result = assigner.assign(program_code, semester, section, payload)
    _notify(background_tasks, dispatcher, result.change, request)
    return AssignmentOut(
        created=result.created,
        record=ScheduledSlotOut.model_validate(result.record),
        warnings=result.warnings,
    )


@router.delete("/{program_code}/{semester}/{section}/slots/{day_index}/{slot_index}", response_model=ClearResultOut)
def clear_slot(
    program_code: str,
    section: Section,
    request: Request,
    background_tasks: BackgroundTasks,
    semester: int = Path(ge=1, le=8),
    day_index: int = Path(ge=0, le=6),
    slot_index: int = Path(ge=0),
    lab_group: LabGroup | None = Query(default=None),
    assigner: SlotAssigner = Depends(get_slot_assigner),
    dispatcher: ScheduleEventDispatcher = Depends(get_dispatcher),
) -> ClearResultOut:
    result = assigner.clear_slot(program_code, semester, section, day_index, slot_index, lab_group)
    _notify(background_tasks, dispatcher, result.change, request)
    return _clear_out(result)


@router.delete("/{program_code}/{semester}/{section}", response_model=ClearResultOut)
def clear_section_routine(
    program_code: str,
    section: Section,
    request: Request,
    background_tasks: BackgroundTasks,
    semester: int = Path(ge=1, le=8),
    assigner: SlotAssigner = Depends(get_slot_assigner),
    dispatcher: ScheduleEventDispatcher = Depends(get_dispatcher),
) -> ClearResultOut:
    result = assigner.clear_section(program_code, semester, section)
    _notify(background_tasks, dispatcher, result.change, request)
    return _clear_out(result)
