import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from services.calculation.engine import PolicyConstants, RatioMarker, compute
from services.calculation.inputs import ScenarioInput, parse_inputs
from services.errors import NotFoundError, PersistenceFailure, ValidationError
from services.scenarios.store import ScenarioStore
from services.storage.database import init_db, make_engine, make_session_factory

SAMPLE = {
    "scenario_name": "Q4 Pilot",
    "monthly_invoice_volume": 2000,
    "num_ap_staff": 3,
    "avg_hours_per_invoice": 0.17,
    "hourly_wage": 30,
    "error_rate_manual": 0.5,
    "error_cost": 100,
    "time_horizon_months": 36,
    "one_time_implementation_cost": 50000,
}


class StepClock:
    def __init__(self):
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


class TestScenarioStore(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine("sqlite://")
        init_db(self.engine)
        self.store = ScenarioStore(make_session_factory(self.engine), clock=StepClock())

    def tearDown(self):
        self.engine.dispose()

    def test_create_then_get_round_trip(self):
        created = self.store.create(parse_inputs(SAMPLE))
        fetched = self.store.get(created.id)
        self.assertEqual(fetched.id, created.id)
        self.assertEqual(fetched.inputs, created.inputs)
        self.assertEqual(fetched.results, created.results)
        self.assertEqual(fetched.created_at, created.created_at)

    def test_stored_results_match_engine(self):
        odd = {**SAMPLE, "hourly_wage": "27.3333", "avg_hours_per_invoice": "0.1234",
               "error_rate_manual": "3.0003", "one_time_implementation_cost": "12345.6789"}
        for payload in (SAMPLE, odd, {**SAMPLE, "one_time_implementation_cost": 0}):
            s = self.store.get(self.store.create(parse_inputs(payload)).id)
            self.assertEqual(compute(s.inputs), s.results)

    def test_create_computes_results_itself(self):
        s = self.store.create(parse_inputs(SAMPLE))
        self.assertEqual(s.results.monthly_savings, Decimal("34100.00"))
        self.assertEqual(s.results.roi_percentage, Decimal("2355.2"))

    def test_store_uses_injected_policy(self):
        store = ScenarioStore(make_session_factory(self.engine), policy=PolicyConstants(savings_adjustment=Decimal("1")))
        s = store.get(store.create(parse_inputs(SAMPLE)).id)
        self.assertEqual(s.results.monthly_savings, Decimal("31000.00"))

    def test_markers_survive_persistence(self):
        zero = {**SAMPLE, "monthly_invoice_volume": 100, "num_ap_staff": 1, "hourly_wage": 1,
                "avg_hours_per_invoice": 0.2, "error_cost": 0}
        s = self.store.get(self.store.create(parse_inputs(zero)).id)
        self.assertIs(s.results.payback_months, RatioMarker.UNDEFINED)
        self.assertIs(s.results.roi_percentage, RatioMarker.UNDEFINED)
        s = self.store.get(self.store.create(parse_inputs({**SAMPLE, "one_time_implementation_cost": 0})).id)
        self.assertEqual(s.results.payback_months, Decimal("0"))
        self.assertIs(s.results.roi_percentage, RatioMarker.UNBOUNDED)

    def test_create_rejects_invalid_inputs(self):
        bad = ScenarioInput(
            scenario_name=" ", monthly_invoice_volume=1, num_ap_staff=1,
            avg_hours_per_invoice=Decimal("1"), hourly_wage=Decimal("1"), error_rate_manual=Decimal("1"),
            error_cost=Decimal("1"), time_horizon_months=1,
        )
        with self.assertRaises(ValidationError):
            self.store.create(bad)
        self.assertEqual(self.store.list(), [])

    def test_list_newest_first(self):
        ids = [self.store.create(parse_inputs({**SAMPLE, "scenario_name": f"s{n}"})).id for n in range(3)]
        listed = self.store.list()
        self.assertEqual([s.id for s in listed], list(reversed(ids)))
        self.assertEqual([s.inputs.scenario_name for s in listed], ["s2", "s1", "s0"])

    def test_delete(self):
        s = self.store.create(parse_inputs(SAMPLE))
        self.store.delete(s.id)
        with self.assertRaises(NotFoundError):
            self.store.get(s.id)
        with self.assertRaises(NotFoundError):
            self.store.delete(s.id)

    def test_unknown_ids(self):
        with self.assertRaises(NotFoundError) as ctx:
            self.store.get("does-not-exist")
        self.assertEqual(ctx.exception.reason, "scenario_not_found")
        with self.assertRaises(NotFoundError):
            self.store.delete("does-not-exist")

    def test_large_amounts_read_back_exactly(self):
        big = {**SAMPLE, "monthly_invoice_volume": 123456789, "num_ap_staff": 987, "hourly_wage": "99.9999",
               "avg_hours_per_invoice": "1.2345", "time_horizon_months": 120,
               "one_time_implementation_cost": "123456789.1234"}
        created = self.store.create(parse_inputs(big))
        s = self.store.get(created.id)
        self.assertEqual(s.inputs, created.inputs)
        self.assertEqual(s.results, created.results)
        self.assertEqual(compute(s.inputs), s.results)
        # more significant digits than a binary float can hold
        self.assertGreater(len(s.results.cumulative_savings.as_tuple().digits), 17)

    def test_create_accepts_float_built_inputs(self):
        loose = ScenarioInput(
            scenario_name="floats", monthly_invoice_volume=2000, num_ap_staff=3,
            avg_hours_per_invoice=0.17, hourly_wage=30.0, error_rate_manual=0.5,
            error_cost=100, time_horizon_months=36, one_time_implementation_cost=50000.0,
        )
        s = self.store.get(self.store.create(loose).id)
        self.assertEqual(s.inputs.avg_hours_per_invoice, Decimal("0.17"))
        self.assertEqual(s.results.monthly_savings, Decimal("34100.00"))

    def test_create_rejects_float_inputs_with_too_many_places(self):
        loose = ScenarioInput(
            scenario_name="floats", monthly_invoice_volume=2000, num_ap_staff=3,
            avg_hours_per_invoice=0.123456, hourly_wage=30.0, error_rate_manual=0.5,
            error_cost=100, time_horizon_months=36,
        )
        with self.assertRaises(ValidationError) as ctx:
            self.store.create(loose)
        self.assertEqual(ctx.exception.field, "avg_hours_per_invoice")

    def test_negative_unbounded_marker_survives_persistence(self):
        loss = {**SAMPLE, "monthly_invoice_volume": 1000, "num_ap_staff": 1, "hourly_wage": 1,
                "avg_hours_per_invoice": 0.1, "error_cost": 0, "one_time_implementation_cost": 0}
        s = self.store.get(self.store.create(parse_inputs(loss)).id)
        self.assertEqual(s.results.monthly_savings, Decimal("-110.00"))
        self.assertIs(s.results.roi_percentage, RatioMarker.NEGATIVE_UNBOUNDED)

    def test_to_dict_is_flat(self):
        d = self.store.create(parse_inputs(SAMPLE)).to_dict()
        for k in ("id", "created_at", "scenario_name", "hourly_wage", "monthly_savings", "roi_percentage"):
            self.assertIn(k, d)
        self.assertEqual(d["net_savings"], 1177600.0)


class TestScenarioStoreUnavailable(unittest.TestCase):
    def setUp(self):
        # no init_db: every statement fails with "no such table"
        self.engine = make_engine("sqlite://")
        self.store = ScenarioStore(make_session_factory(self.engine))

    def tearDown(self):
        self.engine.dispose()

    def test_failures_surface_as_persistence_failure(self):
        with self.assertRaises(PersistenceFailure) as ctx:
            self.store.create(parse_inputs(SAMPLE))
        self.assertTrue(ctx.exception.retryable)
        with self.assertRaises(PersistenceFailure):
            self.store.get("x")
        with self.assertRaises(PersistenceFailure):
            self.store.list()
        with self.assertRaises(PersistenceFailure):
            self.store.delete("x")


if __name__ == '__main__':
    unittest.main()
