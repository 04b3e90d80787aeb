"""BDD tests for reconciling courier status reports."""

from delivery.courier.status import LALAMOVE_STATUS_MAP, translate
from delivery.errors import AlreadyAssigned, AlreadyPlaced
from pytest_bdd import parsers, scenarios, then, when

scenarios("features/courier_reconciliation.feature")


@when(parsers.cfparse('the courier order "{courier_order_id}" is placed'), target_fixture="dlv")
def place_courier_order(dlv, courier_order_id):
    dlv.record_courier_placement(
        provider="lalamove",
        courier_order_id=courier_order_id,
        quotation_id="qtn-bdd-100",
        courier_status="ASSIGNING_DRIVER",
    )
    return dlv


@when("another courier order is placed", target_fixture="dlv")
def place_another_courier_order(dlv, error):
    try:
        dlv.record_courier_placement(provider="lalamove", courier_order_id="llm-bdd-999", quotation_id="qtn-bdd-999")
    except (AlreadyPlaced, AlreadyAssigned) as exc:
        error["exc"] = exc
    return dlv


@when(parsers.cfparse('the courier reports "{courier_status}"'), target_fixture="reconcile_outcome")
def courier_reports(dlv, courier_status):
    return dlv.reconcile(translate(LALAMOVE_STATUS_MAP, courier_status), courier_status)


@when(parsers.cfparse('the courier matches driver "{driver_id}" named "{name}"'), target_fixture="dlv")
def courier_matches_driver(dlv, driver_id, name):
    dlv.match_courier_driver(courier_driver_id=driver_id, name=name, phone="+63 917 000 0001")
    return dlv


@then(parsers.cfparse('the reconciliation outcome is "{expected}"'))
def reconciliation_outcome_is(reconcile_outcome, expected):
    assert reconcile_outcome.value == expected
