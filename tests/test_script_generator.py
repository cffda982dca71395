import unittest
from dataclasses import replace

from rightsguard.errors import IncompleteTaskData
from rightsguard.models import AutomationTask, IpAsset, Profile
from rightsguard.page_model import BILIBILI_APPEAL_PAGE
from rightsguard.script_generator import render


PROFILE = Profile(
    name="张三",
    phone="13800000000",
    email="zhang@example.com",
    id_card_number="110101199001011234",
    id_card_files=("profiles/id_cards/front_1.png",),
    id="p1",
)

ASSET = IpAsset(
    work_name="原创动画短片",
    work_type="视频",
    owner="张三",
    work_start_date="2024-01-01",
    work_end_date="2034-01-01",
    is_agent=True,
    auth_start_date="2024-01-01",
    auth_end_date="2025-01-01",
    auth_files=("ip_assets/auth_docs/auth_1.pdf",),
    work_proof_files=("ip_assets/proof_docs/proof_1.png",),
    id="a1",
)

STAGED = {
    "id_cards": ["/data/files/profiles/id_cards/front_1.png"],
    "auth_docs": ["/data/files/ip_assets/auth_docs/auth_1.pdf"],
    "proof_docs": ["/data/files/ip_assets/proof_docs/proof_1.png"],
}


def _task(**overrides) -> AutomationTask:
    values = {
        "id": "task-1",
        "infringing_url": "https://www.bilibili.com/video/BV1xx411c7mD",
        "profile": PROFILE,
        "created_at": "2026-01-01T00:00:00+00:00",
    }
    values.update(overrides)
    return AutomationTask(**values)


class ScriptGeneratorTests(unittest.TestCase):
    def test_render_is_deterministic(self) -> None:
        task = _task(ip_asset=ASSET, original_url="https://example.com/original")
        self.assertEqual(render(task, STAGED), render(task, STAGED))

    def test_personal_only_sequence_order(self) -> None:
        sequence = render(_task(), {"id_cards": STAGED["id_cards"]})
        kinds = [step.kind for step in sequence.steps]
        self.assertEqual(
            kinds,
            [
                "navigate",
                "fill",
                "fill",
                "fill",
                "fill",
                "await_verification",
                "upload",
                "click",
                "fill",
                "fill",
                "check",
                "await_confirmation",
            ],
        )
        self.assertEqual(sequence.steps[0].target, BILIBILI_APPEAL_PAGE.apply_url)
        self.assertEqual(sequence.steps[6].files, ("/data/files/profiles/id_cards/front_1.png",))
        self.assertEqual(sequence.steps[6].target, "id_card")
        self.assertEqual(sequence.steps[-1].phase, "awaiting_final_confirmation")

    def test_ip_asset_steps_follow_personal_page(self) -> None:
        sequence = render(_task(ip_asset=ASSET), STAGED)
        labels = [step.label for step in sequence.steps]
        owner_index = labels.index("Fill rights owner")
        self.assertGreater(owner_index, labels.index("Upload ID documents"))
        uploads = [step.target for step in sequence.steps if step.kind == "upload"]
        self.assertEqual(uploads, ["id_card", "auth_doc", "proof_doc"])
        choose = next(step for step in sequence.steps if step.kind == "choose")
        self.assertEqual(choose.value, '.el-select-dropdown__item:has-text("视频")')
        self.assertEqual(sum(1 for step in sequence.steps if step.label == "Next page"), 2)

    def test_auto_submit_replaces_operator_confirmation(self) -> None:
        sequence = render(_task(), {"id_cards": STAGED["id_cards"]}, auto_submit=True)
        self.assertEqual(sequence.steps[-1].kind, "submit")
        self.assertNotIn("await_confirmation", [step.kind for step in sequence.steps])

    def test_original_url_is_filled_only_when_given(self) -> None:
        without = render(_task(), {"id_cards": STAGED["id_cards"]})
        with_url = render(_task(original_url="https://example.com/mine"), {"id_cards": STAGED["id_cards"]})
        self.assertNotIn("Fill original URL", [step.label for step in without.steps])
        step = next(step for step in with_url.steps if step.label == "Fill original URL")
        self.assertEqual(step.value, "https://example.com/mine")

    def test_missing_fields_are_all_reported(self) -> None:
        profile = replace(PROFILE, phone="", email=" ")
        task = _task(profile=profile, infringing_url="not-a-url")
        with self.assertRaises(IncompleteTaskData) as ctx:
            render(task, {})
        self.assertEqual(
            ctx.exception.missing,
            ["profile.phone", "profile.email", "profile.id_card_files", "infringing_url"],
        )

    def test_agent_asset_requires_authorization_documents(self) -> None:
        staged = {"id_cards": STAGED["id_cards"], "proof_docs": STAGED["proof_docs"]}
        with self.assertRaises(IncompleteTaskData) as ctx:
            render(_task(ip_asset=ASSET), staged)
        self.assertEqual(ctx.exception.missing, ["ip_asset.auth_files"])

        owner_asset = replace(ASSET, is_agent=False, auth_files=())
        sequence = render(_task(ip_asset=owner_asset), staged)
        self.assertNotIn("auth_doc", [step.target for step in sequence.steps if step.kind == "upload"])

    def test_invalid_original_url_is_rejected(self) -> None:
        with self.assertRaises(IncompleteTaskData) as ctx:
            render(_task(original_url="ftp://example.com/x"), {"id_cards": STAGED["id_cards"]})
        self.assertEqual(ctx.exception.missing, ["original_url"])


if __name__ == "__main__":
    unittest.main()
