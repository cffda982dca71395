"""Rendering of an automation task into an ordered sequence of page steps."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any
from urllib.parse import urlparse

from rightsguard.constants import (
    STATE_AWAITING_FINAL_CONFIRMATION,
    STATE_AWAITING_VERIFICATION,
    STATE_FILLING_FORM,
    STATE_UPLOADING,
)
from rightsguard.errors import IncompleteTaskData
from rightsguard.models import AutomationTask
from rightsguard.page_model import BILIBILI_APPEAL_PAGE, AppealPageModel


STEP_NAVIGATE = "navigate"
STEP_FILL = "fill"
STEP_CHOOSE = "choose"
STEP_CLICK = "click"
STEP_CHECK = "check"
STEP_UPLOAD = "upload"
STEP_AWAIT_VERIFICATION = "await_verification"
STEP_AWAIT_CONFIRMATION = "await_confirmation"
STEP_SUBMIT = "submit"

STAGED_ID_CARDS = "id_cards"
STAGED_AUTH_DOCS = "auth_docs"
STAGED_PROOF_DOCS = "proof_docs"

NEXT_PAGE_WAIT_MS = 2000
DROPDOWN_WAIT_MS = 500


@dataclass(frozen=True)
class AutomationStep:
    kind: str
    target: str = ""
    value: str = ""
    files: tuple[str, ...] = ()
    label: str = ""
    phase: str = STATE_FILLING_FORM
    wait_after_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["files"] = list(self.files)
        return payload


@dataclass(frozen=True)
class AutomationSequence:
    task_id: str
    steps: tuple[AutomationStep, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.steps)

    def to_dict(self) -> dict[str, Any]:
        return {"task_id": self.task_id, "steps": [step.to_dict() for step in self.steps]}


def render(
    task: AutomationTask,
    staged: dict[str, list[str]],
    page: AppealPageModel = BILIBILI_APPEAL_PAGE,
    *,
    auto_submit: bool = False,
) -> AutomationSequence:
    """Build the step list for ``task``.

    ``staged`` maps ``id_cards`` / ``auth_docs`` / ``proof_docs`` to absolute
    file paths already resolved from the staging tree. The result depends only
    on the arguments.
    """
    _validate(task, staged)
    profile = task.profile
    asset = task.ip_asset
    steps: list[AutomationStep] = [
        AutomationStep(STEP_NAVIGATE, page.apply_url, label="Open appeal page"),
        AutomationStep(STEP_FILL, page.name_input, profile.name, label="Fill real name"),
        AutomationStep(STEP_FILL, page.phone_input, profile.phone, label="Fill phone number"),
        AutomationStep(STEP_FILL, page.email_input, profile.email, label="Fill email"),
        AutomationStep(STEP_FILL, page.id_number_input, profile.id_card_number, label="Fill ID number"),
        AutomationStep(
            STEP_AWAIT_VERIFICATION,
            label="Waiting for operator verification",
            phase=STATE_AWAITING_VERIFICATION,
        ),
        AutomationStep(
            STEP_UPLOAD,
            page.id_card_upload.name,
            files=tuple(staged.get(STAGED_ID_CARDS, ())),
            label="Upload ID documents",
            phase=STATE_UPLOADING,
        ),
        AutomationStep(STEP_CLICK, page.next_button, label="Next page", wait_after_ms=NEXT_PAGE_WAIT_MS),
    ]

    if asset is not None:
        steps.append(AutomationStep(STEP_FILL, page.owner_input, asset.owner, label="Fill rights owner"))
        if asset.auth_start_date:
            steps.append(
                AutomationStep(STEP_FILL, page.auth_start_input, asset.auth_start_date, label="Fill auth start date")
            )
        if asset.auth_end_date:
            steps.append(AutomationStep(STEP_FILL, page.auth_end_input, asset.auth_end_date, label="Fill auth end date"))
        auth_docs = tuple(staged.get(STAGED_AUTH_DOCS, ()))
        if auth_docs:
            steps.append(
                AutomationStep(
                    STEP_UPLOAD,
                    page.auth_doc_upload.name,
                    files=auth_docs,
                    label="Upload authorization documents",
                    phase=STATE_UPLOADING,
                )
            )
        steps.append(
            AutomationStep(
                STEP_CHOOSE,
                page.work_type_select,
                page.work_type_option_for(asset.work_type),
                label="Choose work type",
                wait_after_ms=DROPDOWN_WAIT_MS,
            )
        )
        steps.append(AutomationStep(STEP_FILL, page.work_name_input, asset.work_name, label="Fill work name"))
        if asset.work_start_date:
            steps.append(
                AutomationStep(STEP_FILL, page.work_start_input, asset.work_start_date, label="Fill work start date")
            )
        if asset.work_end_date:
            steps.append(AutomationStep(STEP_FILL, page.work_end_input, asset.work_end_date, label="Fill work end date"))
        proof_docs = tuple(staged.get(STAGED_PROOF_DOCS, ()))
        if proof_docs:
            steps.append(
                AutomationStep(
                    STEP_UPLOAD,
                    page.proof_doc_upload.name,
                    files=proof_docs,
                    label="Upload proof of work",
                    phase=STATE_UPLOADING,
                )
            )
        steps.append(AutomationStep(STEP_CLICK, page.next_button, label="Next page", wait_after_ms=NEXT_PAGE_WAIT_MS))

    steps.append(AutomationStep(STEP_FILL, page.infringing_url_input, task.infringing_url, label="Fill infringing URL"))
    steps.append(
        AutomationStep(STEP_FILL, page.description_input, page.appeal_description, label="Fill appeal description")
    )
    if task.original_url:
        steps.append(AutomationStep(STEP_FILL, page.original_url_input, task.original_url, label="Fill original URL"))
    steps.append(AutomationStep(STEP_CHECK, page.pledge_checkbox, label="Accept pledge"))

    if auto_submit:
        steps.append(AutomationStep(STEP_SUBMIT, page.submit_button, label="Submit appeal"))
    else:
        steps.append(
            AutomationStep(
                STEP_AWAIT_CONFIRMATION,
                label="Waiting for operator to review and submit",
                phase=STATE_AWAITING_FINAL_CONFIRMATION,
            )
        )
    return AutomationSequence(task_id=task.id, steps=tuple(steps))


def _validate(task: AutomationTask, staged: dict[str, list[str]]) -> None:
    missing: list[str] = []
    profile = task.profile
    for field_name in ("name", "phone", "email", "id_card_number"):
        if not str(getattr(profile, field_name, "") or "").strip():
            missing.append(f"profile.{field_name}")
    if not staged.get(STAGED_ID_CARDS):
        missing.append("profile.id_card_files")
    if not _is_valid_url(task.infringing_url):
        missing.append("infringing_url")
    if task.original_url and not _is_valid_url(task.original_url):
        missing.append("original_url")

    asset = task.ip_asset
    if asset is not None:
        for field_name in ("owner", "work_type", "work_name"):
            if not str(getattr(asset, field_name, "") or "").strip():
                missing.append(f"ip_asset.{field_name}")
        if asset.is_agent and not staged.get(STAGED_AUTH_DOCS):
            missing.append("ip_asset.auth_files")

    if missing:
        raise IncompleteTaskData(missing)


def _is_valid_url(text: str) -> bool:
    try:
        parsed = urlparse(str(text or "").strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
