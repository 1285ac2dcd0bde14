from shopify_odoo_sync.cache import RequestCache
from shopify_odoo_sync.helpers import (
    AmbiguousMatchError,
    InvalidXidError,
    ModelMismatchError,
    StaleReferenceError,
)
from shopify_odoo_sync.services.odoo.client import OdooClient, OdooEnvironment
from shopify_odoo_sync.services.odoo.external_ids import IR_MODEL_DATA, ExternalIdMapping, parse_xid

from ..common_imports import UNIT_TAGS, tagged
from ..fixtures.base import FakeOdoo, UnitTestCase

PARTNER_XID = "__export__.shopify_customer_5001"
LINE_XID = "__export__.shopify_lineitem_7001"


@tagged(*UNIT_TAGS)
class TestParseXid(UnitTestCase):
    def test_parse_xid(self) -> None:
        self.assertEqual(parse_xid("__export__.shopify_order_1"), ("__export__", "shopify_order_1"))
        self.assertEqual(parse_xid("module.name.with.dots"), ("module", "name.with.dots"))

    def test_parse_xid_invalid(self) -> None:
        for xid in ("no_separator", ".name", "module.", ""):
            with self.subTest(xid=xid):
                with self.assertRaises(InvalidXidError):
                    parse_xid(xid)

    def test_mapping_xid(self) -> None:
        mapping = ExternalIdMapping(module="__export__", name="shopify_order_1", model="sale.order")
        self.assertEqual(mapping.xid, "__export__.shopify_order_1")
        self.assertFalse(mapping.exists)


@tagged(*UNIT_TAGS)
class TestExternalIdResolver(UnitTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.odoo = FakeOdoo()
        self.env = OdooEnvironment(OdooClient(self.settings, self.odoo.client()), RequestCache())
        self.resolver = self.env.external_ids

    def test_resolution_is_cached(self) -> None:
        partner_id = self.odoo.seed("res.partner", {"name": "Jane"})
        self.odoo.seed_xid("res.partner", partner_id, PARTNER_XID)

        first = self.resolver.resolve("res.partner", PARTNER_XID)
        second = self.resolver.resolve("res.partner", PARTNER_XID)

        self.assertEqual(first, second)
        self.assertTrue(first.exists)
        self.assertEqual(first.res_id, partner_id)
        self.assertEqual(self.odoo.count(IR_MODEL_DATA, "search_read"), 1)

    def test_missing_mapping_is_cached(self) -> None:
        self.assertEqual(self.resolver.get_id("res.partner", PARTNER_XID), 0)
        self.assertEqual(self.resolver.get_id("res.partner", PARTNER_XID), 0)
        self.assertEqual(self.odoo.count(IR_MODEL_DATA, "search_read"), 1)

    def test_model_mismatch(self) -> None:
        self.odoo.seed_xid("sale.order", 1, PARTNER_XID)
        with self.assertRaises(ModelMismatchError) as caught:
            self.resolver.resolve("res.partner", PARTNER_XID)
        self.assertEqual((caught.exception.expected, caught.exception.found), ("res.partner", "sale.order"))

    def test_ambiguous_mapping(self) -> None:
        self.odoo.seed_xid("res.partner", 1, PARTNER_XID)
        self.odoo.seed_xid("res.partner", 2, PARTNER_XID)
        with self.assertRaises(AmbiguousMatchError):
            self.resolver.resolve("res.partner", PARTNER_XID)

    def test_invalid_xid_never_queries(self) -> None:
        with self.assertRaises(InvalidXidError):
            self.resolver.resolve("res.partner", "not-an-xid")
        self.assertEqual(self.odoo.calls, [])

    def test_prefetch_issues_one_query(self) -> None:
        partner_id = self.odoo.seed("res.partner", {"name": "Jane"})
        self.odoo.seed_xid("res.partner", partner_id, PARTNER_XID)

        self.resolver.prefetch([("res.partner", PARTNER_XID), ("sale.order.line", LINE_XID)])
        self.assertEqual(self.resolver.get_id("res.partner", PARTNER_XID), partner_id)
        self.assertEqual(self.resolver.get_id("sale.order.line", LINE_XID), 0)
        self.assertEqual(self.odoo.count(IR_MODEL_DATA, "search_read"), 1)

        self.resolver.prefetch([("res.partner", PARTNER_XID)])
        self.assertEqual(self.odoo.count(IR_MODEL_DATA, "search_read"), 1)

    def test_assign_creates_mapping_once(self) -> None:
        partner_id = self.odoo.seed("res.partner", {"name": "Jane"})
        mapping = self.resolver.assign("res.partner", partner_id, PARTNER_XID)
        self.assertTrue(mapping.exists)
        self.assertEqual(self.odoo.xid_target(PARTNER_XID), partner_id)

        self.resolver.assign("res.partner", partner_id, PARTNER_XID)
        self.assertEqual(self.odoo.count(IR_MODEL_DATA, "create"), 1)

    def test_assign_keeps_existing_target(self) -> None:
        self.odoo.seed_xid("res.partner", 5, PARTNER_XID)
        with self.assertLogs("shopify_odoo_sync.services.odoo.external_ids", level="WARNING"):
            mapping = self.resolver.assign("res.partner", 6, PARTNER_XID)
        self.assertEqual(mapping.res_id, 5)
        self.assertEqual(self.odoo.count(IR_MODEL_DATA, "create"), 0)

    def test_read_record_heals_stale_mapping(self) -> None:
        self.odoo.seed_xid("res.partner", 404, PARTNER_XID)

        self.assertIsNone(self.resolver.read_record("res.partner", PARTNER_XID, ["id"]))
        self.assertEqual(self.odoo.xid_target(PARTNER_XID), 0)
        self.assertEqual(self.resolver.get_id("res.partner", PARTNER_XID), 0)
        self.assertEqual(self.odoo.count(IR_MODEL_DATA, "unlink"), 1)

    def test_read_record_includes_archived_records(self) -> None:
        partner_id = self.odoo.seed("res.partner", {"name": "Jane", "active": False})
        self.odoo.seed_xid("res.partner", partner_id, PARTNER_XID)
        self.assertEqual(self.resolver.read_record("res.partner", PARTNER_XID, ["name"]), {"id": partner_id, "name": "Jane"})

    def test_invalidate_failure_is_a_stale_reference(self) -> None:
        self.odoo.seed_xid("res.partner", 404, PARTNER_XID)
        self.odoo.fail(IR_MODEL_DATA, "unlink", "access denied")
        with self.assertRaises(StaleReferenceError) as caught:
            self.resolver.invalidate("res.partner", PARTNER_XID)
        self.assertEqual(caught.exception.xid, PARTNER_XID)

    def test_mark_absent(self) -> None:
        partner_id = self.odoo.seed("res.partner", {"name": "Jane"})
        self.odoo.seed_xid("res.partner", partner_id, PARTNER_XID)
        self.assertEqual(self.resolver.get_id("res.partner", PARTNER_XID), partner_id)
        self.resolver.mark_absent("res.partner", PARTNER_XID)
        self.assertEqual(self.resolver.get_id("res.partner", PARTNER_XID), 0)
