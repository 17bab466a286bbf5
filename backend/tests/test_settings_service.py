import json
import os
import tempfile
import unittest

from retailpos import create_app
from retailpos.services import settings_service
from retailpos.validation import NotFoundError, ValidationError


class SettingsServiceTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmpdir.name, "settings.json")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "SETTINGS_FILE": self.path,
        })
        self.ctx = self.app.app_context()
        self.ctx.push()

    def tearDown(self):
        self.ctx.pop()
        self.tmpdir.cleanup()

    def test_defaults_when_file_missing(self):
        settings = settings_service.load()
        self.assertEqual(settings["company"]["country"], "BE")
        self.assertFalse(settings["peppyrus"]["enabled"])
        self.assertEqual(settings["shopify"]["sync_interval_minutes"], 30)

    def test_save_and_load_round_trip(self):
        settings = settings_service.load()
        settings["company"]["company_name"] = "Carrelages Dupont"
        settings_service.save(settings)

        self.assertEqual(settings_service.load()["company"]["company_name"], "Carrelages Dupont")
        with open(self.path, encoding="utf-8") as fh:
            self.assertEqual(set(json.load(fh)), {"company", "peppyrus", "shopify"})

    def test_partial_file_is_merged_over_defaults(self):
        with open(self.path, "w", encoding="utf-8") as fh:
            json.dump({"company": {"city": "Namur"}}, fh)

        company = settings_service.get_section("company")
        self.assertEqual(company["city"], "Namur")
        self.assertEqual(company["country"], "BE")

    def test_corrupt_file_falls_back_to_defaults(self):
        with open(self.path, "w", encoding="utf-8") as fh:
            fh.write("{not json")

        with self.assertLogs(self.app.logger, level="ERROR"):
            settings = settings_service.load()
        self.assertEqual(settings, settings_service.defaults())

    def test_update_section_coerces_types(self):
        updated = settings_service.update_section("shopify", {
            "enabled": True,
            "sync_interval_minutes": "15",
            "store_domain": "shop.example.com",
        })
        self.assertTrue(updated["enabled"])
        self.assertEqual(updated["sync_interval_minutes"], 15)
        self.assertEqual(updated["shop_url"], "shop.example.com")
        self.assertTrue(settings_service.load()["shopify"]["enabled"])

    def test_update_rejects_unknown_key(self):
        with self.assertRaises(ValidationError):
            settings_service.update_section("company", {"colour": "blue"})

    def test_update_rejects_wrong_type(self):
        with self.assertRaises(ValidationError):
            settings_service.update_section("peppyrus", {"test_mode": "no"})

    def test_unknown_section(self):
        with self.assertRaises(NotFoundError):
            settings_service.get_section("stripe")

    def test_public_view_masks_secrets(self):
        values = settings_service.update_section("peppyrus", {"api_key": "k-123"})
        view = settings_service.public_view("peppyrus", values)

        self.assertNotIn("api_key", view)
        self.assertTrue(view["api_key_set"])
        self.assertFalse(view["api_secret_set"])


if __name__ == "__main__":
    unittest.main()
