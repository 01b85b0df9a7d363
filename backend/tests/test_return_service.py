"""
Tests for return processing.

A return restores stock, debits the refund and records a Return document in
one transaction, and never lets the cumulative returned quantity exceed what
was invoiced.
"""

import pytest
from sqlalchemy.exc import OperationalError

from poscore.models import CashBankTransaction, Item, Return, ReturnLine, StockMovement
from poscore.models.sales import ImmutableRecordError
from poscore.services import catalog_service, invoice_service, ledger_service, return_service
from poscore.services.cart import Cart
from poscore.services.errors import InvalidRequest, NotFound, OverReturn, PersistenceUnavailable
from poscore.services.policies import RatePricingPolicy, RestockingFeePolicy
from poscore.services.return_service import ReturnLineRequest


@pytest.fixture
def sell(db_session):
    """Finalize a sale of {sku: quantity} and return the invoice."""
    def _sell(quantities, payment_method="CASH"):
        cart = Cart()
        for sku, quantity in quantities.items():
            cart.add_line(sku, quantity)
        return invoice_service.finalize_sale(cart, payment_method)
    return _sell


def test_partial_return_then_over_return(db_session, scanned_item, cash_account, sell, stock_of, balance_of):
    invoice = sell({"12345678": 5})
    assert stock_of("12345678") == 5

    return_doc = return_service.process_return(invoice.id, [{"sku": "12345678", "quantity": 3}], "CASH")

    assert return_doc.document_number == "RET-000001"
    assert return_doc.refund_amount_cents == 300
    assert stock_of("12345678") == 8
    assert balance_of(cash_account.id) == 200

    with pytest.raises(OverReturn) as exc_info:
        return_service.process_return(invoice.id, [{"sku": "12345678", "quantity": 3}], "CASH")

    assert exc_info.value.details["items"] == [{
        "sku": "12345678",
        "invoiced_quantity": 5,
        "already_returned": 3,
        "requested_quantity": 3,
        "returnable": 2,
    }]
    assert stock_of("12345678") == 8
    assert balance_of(cash_account.id) == 200
    assert db_session.query(Return).count() == 1


def test_full_return_is_exact_inverse_of_sale(db_session, make_item, cash_account, sell, stock_of, balance_of):
    make_item("AAA-001", stock_qty=6, selling_price_cents=250)
    make_item("BBB-002", stock_qty=4, selling_price_cents=1999)

    invoice = sell({"AAA-001": 2, "BBB-002": 3})
    return_service.process_return(
        invoice.id,
        [ReturnLineRequest("AAA-001", 2), ReturnLineRequest("BBB-002", 3)],
        "CASH",
    )

    assert stock_of("AAA-001") == 6
    assert stock_of("BBB-002") == 4
    assert balance_of(cash_account.id) == 0
    assert invoice_service.returnable_quantities(invoice_service.get_invoice(invoice.id)) == {
        "AAA-001": 0,
        "BBB-002": 0,
    }


def test_return_uses_original_price(db_session, scanned_item, cash_account, sell, balance_of):
    invoice = sell({"12345678": 2})

    db_session.query(Item).filter_by(sku="12345678").update({"selling_price_cents": 500})
    db_session.commit()

    return_doc = return_service.process_return(invoice.id, [{"sku": "12345678", "quantity": 1}], "CASH")

    assert return_doc.lines[0].unit_price_cents == 100
    assert return_doc.refund_amount_cents == 100
    assert balance_of(cash_account.id) == 100


def test_duplicate_skus_are_summed(db_session, scanned_item, cash_account, sell):
    invoice = sell({"12345678": 4})

    return_doc = return_service.process_return(
        invoice.id,
        [{"sku": "12345678", "quantity": 1}, {"sku": "12345678", "quantity": 2}],
        "CASH",
    )

    assert len(return_doc.lines) == 1
    assert return_doc.lines[0].quantity == 3


def test_duplicate_skus_cannot_bypass_over_return(db_session, scanned_item, cash_account, sell, stock_of):
    invoice = sell({"12345678": 2})

    with pytest.raises(OverReturn):
        return_service.process_return(
            invoice.id,
            [{"sku": "12345678", "quantity": 2}, {"sku": "12345678", "quantity": 1}],
            "CASH",
        )

    assert stock_of("12345678") == 8


def test_unknown_invoice(db_session, cash_account):
    with pytest.raises(NotFound) as exc_info:
        return_service.process_return(9999, [{"sku": "12345678", "quantity": 1}], "CASH")

    assert exc_info.value.details == {"invoice_id": 9999}


def test_sku_not_on_invoice(db_session, scanned_item, make_item, cash_account, sell, stock_of):
    make_item("OTHER-1", stock_qty=3)
    invoice = sell({"12345678": 1})

    with pytest.raises(NotFound) as exc_info:
        return_service.process_return(
            invoice.id,
            [{"sku": "12345678", "quantity": 1}, {"sku": "OTHER-1", "quantity": 1}],
            "CASH",
        )

    assert exc_info.value.details["skus"] == ["OTHER-1"]
    assert stock_of("12345678") == 9
    assert stock_of("OTHER-1") == 3


@pytest.mark.parametrize("lines", [
    [],
    None,
    [{"sku": "12345678", "quantity": 0}],
    [{"sku": "12345678", "quantity": -2}],
    [{"sku": "", "quantity": 1}],
    ["12345678"],
])
def test_invalid_return_lines(db_session, scanned_item, cash_account, sell, lines):
    invoice = sell({"12345678": 2})

    with pytest.raises(InvalidRequest):
        return_service.process_return(invoice.id, lines, "CASH")


def test_restocking_fee_reduces_refund(db_session, scanned_item, cash_account, sell, stock_of, balance_of):
    invoice = sell({"12345678": 4})

    return_doc = return_service.process_return(
        invoice.id,
        [{"sku": "12345678", "quantity": 4}],
        "CASH",
        refund_policy=RestockingFeePolicy(fee_bps=1500),
        reason="Opened packaging",
    )

    assert return_doc.gross_refund_cents == 400
    assert return_doc.restocking_fee_cents == 60
    assert return_doc.refund_amount_cents == 340
    assert return_doc.reason == "Opened packaging"
    assert stock_of("12345678") == 10
    assert balance_of(cash_account.id) == 60


def test_restocking_fee_from_config(app, db_session, scanned_item, cash_account, sell, monkeypatch):
    monkeypatch.setitem(app.config, "POS_RESTOCKING_FEE_CENTS", 25)
    invoice = sell({"12345678": 1})

    return_doc = return_service.process_return(invoice.id, [{"sku": "12345678", "quantity": 1}], "CASH")

    assert return_doc.restocking_fee_cents == 25
    assert return_doc.refund_amount_cents == 75


def test_card_refund_debits_bank_account(db_session, scanned_item, cash_account, bank_account, sell, balance_of):
    invoice = sell({"12345678": 2}, payment_method="CARD")

    return_doc = return_service.process_return(invoice.id, [{"sku": "12345678", "quantity": 2}], "CARD")

    assert return_doc.cash_bank_account_id == bank_account.id
    assert balance_of(bank_account.id) == 0
    assert balance_of(cash_account.id) == 0


def test_refund_may_overdraw_account(db_session, scanned_item, cash_account, bank_account, sell, balance_of):
    invoice = sell({"12345678": 2}, payment_method="CARD")

    # Customer paid by card but is refunded from the till
    return_service.process_return(invoice.id, [{"sku": "12345678", "quantity": 2}], "CASH")

    assert balance_of(cash_account.id) == -200
    entry = ledger_service.get_account_transactions(cash_account.id)[0]
    assert entry.direction == "DEBIT"
    assert entry.balance_after_cents == -200


def test_ledger_and_movements_reference_return(db_session, scanned_item, cash_account, sell):
    invoice = sell({"12345678": 3})

    return_doc = return_service.process_return(
        invoice.id, [{"sku": "12345678", "quantity": 2}], "CASH", user_id=11
    )

    entry = ledger_service.get_account_transactions(cash_account.id)[0]
    assert entry.reference_type == "RETURN"
    assert entry.reference_id == return_doc.id
    assert entry.amount_cents == 200

    movement = catalog_service.get_stock_movements(scanned_item.id)[0]
    assert movement.movement_type == "RETURN"
    assert movement.quantity_delta == 2
    assert movement.stock_after == 9
    assert movement.return_id == return_doc.id
    assert movement.invoice_id == invoice.id
    assert movement.actor_user_id == 11


def test_missing_refund_account_writes_nothing(db_session, scanned_item, cash_account, sell, stock_of):
    invoice = sell({"12345678": 2})

    with pytest.raises(NotFound):
        return_service.process_return(invoice.id, [{"sku": "12345678", "quantity": 1}], "UPI")

    assert stock_of("12345678") == 8
    assert db_session.query(Return).count() == 0
    assert db_session.query(ReturnLine).count() == 0
    assert db_session.query(CashBankTransaction).filter_by(direction="DEBIT").count() == 0


def test_returns_listed_per_invoice(db_session, scanned_item, cash_account, sell):
    invoice = sell({"12345678": 3})
    first = return_service.process_return(invoice.id, [{"sku": "12345678", "quantity": 1}], "CASH")
    second = return_service.process_return(invoice.id, [{"sku": "12345678", "quantity": 1}], "CASH")

    returns = return_service.list_invoice_returns(invoice.id)

    assert [r.id for r in returns] == [first.id, second.id]
    assert [r.document_number for r in returns] == ["RET-000001", "RET-000002"]
    assert return_service.get_return(second.id).invoice_id == invoice.id
    assert invoice_service.returnable_quantities(invoice_service.get_invoice(invoice.id)) == {"12345678": 1}


def test_return_is_immutable(db_session, scanned_item, cash_account, sell):
    invoice = sell({"12345678": 1})
    return_doc = return_service.process_return(invoice.id, [{"sku": "12345678", "quantity": 1}], "CASH")

    return_doc.refund_amount_cents = 0
    with pytest.raises(ImmutableRecordError):
        db_session.commit()
    db_session.rollback()

    assert return_service.get_return(return_doc.id).refund_amount_cents == 100


def test_full_return_of_discounted_sale_nets_to_zero(db_session, scanned_item, cash_account, stock_of, balance_of):
    cart = Cart()
    cart.add_line("12345678", 2)
    invoice = invoice_service.finalize_sale(cart, "CASH", pricing_policy=RatePricingPolicy(discount_bps=5000))
    assert balance_of(cash_account.id) == 100

    return_doc = return_service.process_return(invoice.id, [{"sku": "12345678", "quantity": 2}], "CASH")

    assert return_doc.lines[0].unit_price_cents == 100
    assert return_doc.refund_amount_cents == 100
    assert balance_of(cash_account.id) == 0
    assert stock_of("12345678") == 10


def test_piecemeal_returns_refund_exactly_what_was_paid(db_session, make_item, cash_account, balance_of):
    make_item("AAA-001", stock_qty=5)
    make_item("BBB-002", stock_qty=5)
    cart = Cart()
    cart.add_line("AAA-001", 1)
    cart.add_line("BBB-002", 3)
    invoice = invoice_service.finalize_sale(
        cart, "CASH", pricing_policy=RatePricingPolicy(discount_bps=3333, tax_bps=0)
    )
    assert invoice.total_cents == 267
    assert sum(line.line_net_cents for line in invoice.lines) == 267

    refunds = [
        return_service.process_return(invoice.id, [{"sku": "BBB-002", "quantity": 1}], "CASH").refund_amount_cents
        for _ in range(3)
    ]
    refunds.append(
        return_service.process_return(invoice.id, [{"sku": "AAA-001", "quantity": 1}], "CASH").refund_amount_cents
    )

    assert refunds == [66, 67, 67, 67]
    assert balance_of(cash_account.id) == 0


def test_storage_failure_mid_return_rolls_back_everything(
    db_session, scanned_item, cash_account, sell, monkeypatch, stock_of, balance_of
):
    invoice = sell({"12345678": 2})

    def locked_debit(*args, **kwargs):
        raise OperationalError("UPDATE cash_bank_accounts", {}, Exception("database is locked"))

    monkeypatch.setattr(ledger_service, "debit", locked_debit)

    with pytest.raises(PersistenceUnavailable):
        return_service.process_return(invoice.id, [{"sku": "12345678", "quantity": 2}], "CASH")

    assert stock_of("12345678") == 8
    assert balance_of(cash_account.id) == 200
    assert db_session.query(Return).count() == 0
    assert db_session.query(ReturnLine).count() == 0
    assert db_session.query(StockMovement).filter_by(movement_type="RETURN").count() == 0
    assert db_session.query(CashBankTransaction).filter_by(direction="DEBIT").count() == 0
