import json
import tempfile
import unittest
from dataclasses import replace
from pathlib import Path

from rightsguard.models import Case, IpAsset, Profile
from rightsguard.record_store import RecordStore


class RecordStoreTests(unittest.TestCase):
    def test_profile_save_keeps_identity_across_updates(self) -> None:
        with tempfile.TemporaryDirectory(dir=".") as tmp:
            store = RecordStore(Path(tmp) / "records.json")
            self.assertIsNone(store.get_profile())

            first = store.save_profile(Profile(name="张三", phone="1", email="a@b.c", id_card_number="x"))
            second = store.save_profile(replace(first, phone="2", id="", created_at=""))

            self.assertTrue(first.id)
            self.assertEqual(second.id, first.id)
            self.assertEqual(second.created_at, first.created_at)
            loaded = store.get_profile()
            assert loaded is not None
            self.assertEqual(loaded.phone, "2")
            self.assertEqual(loaded.name, "张三")

    def test_ip_assets_are_listed_updated_and_removed(self) -> None:
        with tempfile.TemporaryDirectory(dir=".") as tmp:
            store = RecordStore(Path(tmp) / "records.json")
            a = store.save_ip_asset(IpAsset(work_name="A", work_type="视频", owner="张三"))
            b = store.save_ip_asset(IpAsset(work_name="B", work_type="音乐", owner="李四", is_agent=True))

            self.assertEqual([item.work_name for item in store.list_ip_assets()], ["A", "B"])
            self.assertEqual(a.region, "中国大陆")
            self.assertEqual(a.status, "待认证")

            store.save_ip_asset(replace(b, work_name="B2"))
            self.assertEqual(store.get_ip_asset(b.id).work_name, "B2")
            self.assertEqual(len(store.list_ip_assets()), 2)

            self.assertTrue(store.delete_ip_asset(a.id))
            self.assertFalse(store.delete_ip_asset(a.id))
            self.assertIsNone(store.get_ip_asset(a.id))

    def test_cases_are_persisted_as_json(self) -> None:
        with tempfile.TemporaryDirectory(dir=".") as tmp:
            path = Path(tmp) / "records.json"
            store = RecordStore(path)
            saved = store.save_case(Case(infringing_url="https://b23.tv/x", status="已提交"))

            payload = json.loads(path.read_text(encoding="utf-8"))
            self.assertEqual(payload["cases"][0]["id"], saved.id)
            self.assertEqual(payload["cases"][0]["status"], "已提交")
            self.assertEqual(store.list_cases()[0].infringing_url, "https://b23.tv/x")

            self.assertTrue(store.delete_case(saved.id))
            self.assertFalse(store.delete_case(saved.id))
            self.assertEqual(store.list_cases(), [])

    def test_malformed_record_raises_value_error(self) -> None:
        with tempfile.TemporaryDirectory(dir=".") as tmp:
            path = Path(tmp) / "records.json"
            path.write_text(json.dumps({"profile": {"name": "x", "phone": 1}}), encoding="utf-8")
            with self.assertRaises(ValueError):
                RecordStore(path).get_profile()
            path.write_text("[]", encoding="utf-8")
            with self.assertRaises(ValueError):
                RecordStore(path).list_cases()


if __name__ == "__main__":
    unittest.main()
