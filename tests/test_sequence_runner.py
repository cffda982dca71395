import unittest
from pathlib import Path

from rightsguard.cancellation import CancellationToken
from rightsguard.config import AutomationConfig
from rightsguard.errors import StepFailed, TaskCancelled, UploadExhausted, VerificationTimeout
from rightsguard.script_generator import AutomationSequence, AutomationStep
from rightsguard.sequence_runner import SequenceRunner
from rightsguard.upload_strategies import UploadResult


class _FakeLocator:
    def __init__(self, page: "_FakePage", selector: str):
        self.page = page
        self.selector = selector

    @property
    def first(self) -> "_FakeLocator":
        return self

    def fill(self, value: str, timeout=None) -> None:
        self._maybe_fail()
        self.page.actions.append(("fill", self.selector, value))

    def click(self, timeout=None) -> None:
        self._maybe_fail()
        self.page.actions.append(("click", self.selector))

    def _maybe_fail(self) -> None:
        if self.selector in self.page.broken:
            raise TimeoutError(f"Timeout 30000ms exceeded.\nwaiting for locator('{self.selector}')")


class _FakePage:
    def __init__(self, broken: set[str] | None = None):
        self.actions: list[tuple] = []
        self.broken = broken or set()
        self.notices: list[object] = []

    def goto(self, url: str, timeout=None, wait_until=None) -> None:
        self.actions.append(("goto", url, wait_until))

    def locator(self, selector: str) -> _FakeLocator:
        return _FakeLocator(self, selector)

    def evaluate(self, script: str, payload=None):
        self.notices.append(payload)


class _FakeHandoff:
    def __init__(self, outcomes: list[str]):
        self.outcomes = list(outcomes)
        self.calls: list[tuple[str, float]] = []

    def await_operator(self, task_id, timeout_seconds, *, cancel=None, poll_interval=0.5):
        self.calls.append((task_id, timeout_seconds))
        return self.outcomes.pop(0)


class _FakeUploader:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls: list[tuple[tuple[str, ...], str]] = []

    def upload(self, files, target, *, cancel=None):
        self.calls.append((tuple(files), target.name))
        if self.error is not None:
            raise self.error
        return UploadResult(strategy_name="hidden_input", evidence_count=len(files), attempts=())


SEQUENCE = AutomationSequence(
    task_id="t1",
    steps=(
        AutomationStep("navigate", "https://example.com/apply", label="Open appeal page"),
        AutomationStep("fill", "#name", "张三", label="Fill real name"),
        AutomationStep("await_verification", label="Waiting for verification", phase="awaiting_verification"),
        AutomationStep("upload", "id_card", files=("/tmp/front.png",), label="Upload ID", phase="uploading"),
        AutomationStep("click", "#next", label="Next page"),
        AutomationStep("check", "#pledge", label="Accept pledge"),
        AutomationStep(
            "await_confirmation",
            label="Waiting for operator to submit",
            phase="awaiting_final_confirmation",
        ),
    ),
)


def _runner(page, *, handoff=None, uploader=None, cancel=None, reports=None, **config_overrides):
    values = {"app_data_dir": Path("."), "step_pause_seconds": 0.0, "verification_timeout_seconds": 12.0}
    values.update(config_overrides)
    sink = reports if reports is not None else []
    return SequenceRunner(
        page,
        AutomationConfig(**values),
        handoff=handoff or _FakeHandoff(["resumed", "resumed"]),
        task_id="t1",
        cancel=cancel or CancellationToken(),
        report=lambda phase, label, progress: sink.append((phase, label, progress)),
        uploader=uploader or _FakeUploader(),
    )


class SequenceRunnerTests(unittest.TestCase):
    def test_runs_every_step_in_order(self) -> None:
        page = _FakePage()
        reports: list[tuple] = []
        uploader = _FakeUploader()
        handoff = _FakeHandoff(["resumed", "resumed"])

        _runner(page, handoff=handoff, uploader=uploader, reports=reports).run(SEQUENCE)

        self.assertEqual(
            page.actions,
            [
                ("goto", "https://example.com/apply", "networkidle"),
                ("fill", "#name", "张三"),
                ("click", "#next"),
                ("click", "#pledge"),
            ],
        )
        self.assertEqual(uploader.calls, [(("/tmp/front.png",), "id_card")])
        self.assertEqual(handoff.calls, [("t1", 12.0), ("t1", 1800.0)])
        phases = [phase for phase, _label, _progress in reports]
        self.assertIn("resuming", phases)
        self.assertLess(phases.index("awaiting_verification"), phases.index("resuming"))
        self.assertLess(phases.index("resuming"), phases.index("uploading"))
        self.assertEqual(reports[0][2], 0.0)

    def test_operator_notice_is_removed_after_waiting(self) -> None:
        page = _FakePage()
        _runner(page).run(SEQUENCE)
        ids = [payload[0] for payload in page.notices if isinstance(payload, list)]
        self.assertEqual(len(ids), 4)

    def test_verification_timeout_fails_the_run(self) -> None:
        page = _FakePage()
        with self.assertRaises(VerificationTimeout):
            _runner(page, handoff=_FakeHandoff(["timed_out"])).run(SEQUENCE)
        self.assertNotIn(("click", "#next"), page.actions)

    def test_cancelled_handoff_raises_task_cancelled(self) -> None:
        with self.assertRaises(TaskCancelled):
            _runner(_FakePage(), handoff=_FakeHandoff(["cancelled"])).run(SEQUENCE)

    def test_locator_failure_becomes_step_failed(self) -> None:
        page = _FakePage(broken={"#name"})
        with self.assertRaises(StepFailed) as ctx:
            _runner(page).run(SEQUENCE)
        self.assertEqual(ctx.exception.label, "Fill real name")
        self.assertIn("Timeout 30000ms exceeded.", str(ctx.exception))

    def test_upload_exhaustion_propagates(self) -> None:
        uploader = _FakeUploader(error=UploadExhausted("id_card", []))
        with self.assertRaises(UploadExhausted):
            _runner(_FakePage(), uploader=uploader).run(SEQUENCE)

    def test_cancel_before_start_runs_nothing(self) -> None:
        page = _FakePage()
        cancel = CancellationToken()
        cancel.cancel()
        with self.assertRaises(TaskCancelled):
            _runner(page, cancel=cancel).run(SEQUENCE)
        self.assertEqual(page.actions, [])

    def test_choose_clicks_select_then_option(self) -> None:
        page = _FakePage()
        sequence = AutomationSequence(
            task_id="t1",
            steps=(AutomationStep("choose", "#type", '.option:has-text("视频")', label="Choose work type"),),
        )
        _runner(page).run(sequence)
        self.assertEqual(page.actions, [("click", "#type"), ("click", '.option:has-text("视频")')])


if __name__ == "__main__":
    unittest.main()
