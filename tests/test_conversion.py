"""Tests for the lead conversion pipeline."""

import pytest
from datetime import date
from decimal import Decimal

from studio_ledger.conversion import Catalog, ConversionForm, LeadConverter
from studio_ledger.errors import PromoCodeExhaustedError, ValidationError
from studio_ledger.ledger import refresh_projections
from studio_ledger.models.entities import (
    FlowDirection,
    LeadStatus,
    PaymentStatus,
    ProjectStatus,
    TransactionType,
)
from studio_ledger.store import NotFoundError


TODAY = date(2024, 5, 20)


def make_form(**overrides) -> ConversionForm:
    data = {
        "email": "budi@example.com",
        "phone": "081234567890",
        "project_name": "Pernikahan Budi & Rina",
        "project_type": "Pernikahan",
        "event_date": date(2024, 9, 14),
        "location": "Gedung Serbaguna, Jakarta",
        "package_id": "PKG001",
        "add_on_ids": ["ADD001"],
        "promo_code_id": "PROMO001",
        "down_payment": Decimal("5000000"),
        "down_payment_card_id": "CARD001",
    }
    data.update(overrides)
    return ConversionForm(**data)


@pytest.fixture
def converter(ledger_settings) -> LeadConverter:
    return LeadConverter(ledger_settings)


def convert(converter, store, form, lead_id="LEAD001"):
    return converter.convert_lead(
        store.leads.get(lead_id),
        form,
        Catalog.from_store(store),
        existing_portal_ids=set(),
        today=TODAY,
    )


class TestPricing:
    """Tests for subtotal, discount and total."""

    def test_vena10_scenario(self, converter, store):
        """Test 15M package + 2M add-on with a 10% promo and a 5M down payment."""
        result = convert(converter, store, make_form())

        assert result.subtotal == Decimal("17000000")
        assert result.discount == Decimal("1700000")
        assert result.total_cost == Decimal("15300000")
        assert result.remaining == Decimal("10300000")
        assert result.project.payment_status == PaymentStatus.DP_TERBAYAR
        assert result.project.amount_paid == Decimal("5000000")

    def test_no_promo_total_is_sum_of_prices(self, converter, store):
        """Test pricing without a promo code."""
        form = make_form(promo_code_id=None, add_on_ids=["ADD001", "ADD002"])
        result = convert(converter, store, form)
        assert result.total_cost == Decimal("18500000")
        assert result.discount == Decimal("0")
        assert result.updated_promo_code is None
        assert result.project.discount_amount is None

    def test_fixed_discount_capped_at_subtotal(self, converter, store):
        """Test that a flat discount larger than the subtotal yields zero, not negative."""
        form = make_form(promo_code_id="PROMO002", down_payment=Decimal("0"), down_payment_card_id=None)
        result = convert(converter, store, form)
        assert result.discount == Decimal("17000000")
        assert result.total_cost == Decimal("0")

    def test_repeated_add_on_charged_once(self, converter, store):
        """Test that selecting the same add-on twice prices it once."""
        form = make_form(promo_code_id=None, add_on_ids=["ADD001", "ADD002", "ADD001"])
        assert form.add_on_ids == ["ADD001", "ADD002"]

        quote = converter.quote(form, Catalog.from_store(store), TODAY)
        assert quote.subtotal == Decimal("18500000")

        result = convert(converter, store, make_form(add_on_ids=["ADD001", "ADD001"]))
        assert result.subtotal == Decimal("17000000")
        assert [a.id for a in result.project.add_ons] == ["ADD001"]

    def test_blank_ids_treated_as_missing(self):
        """Test that empty strings from the form become None."""
        form = make_form(promo_code_id="", down_payment_card_id="  ")
        assert form.promo_code_id is None
        assert form.down_payment_card_id is None


class TestPaymentStatus:
    """Tests for the payment status of the new project."""

    def test_full_payment_is_lunas(self, converter, store):
        result = convert(converter, store, make_form(down_payment=Decimal("15300000")))
        assert result.project.payment_status == PaymentStatus.LUNAS
        assert result.remaining == Decimal("0")

    def test_overpayment_is_lunas(self, converter, store):
        result = convert(converter, store, make_form(down_payment=Decimal("20000000")))
        assert result.project.payment_status == PaymentStatus.LUNAS

    def test_no_down_payment(self, converter, store):
        """Test that no DP means no transaction and BELUM_BAYAR."""
        result = convert(converter, store, make_form(down_payment=Decimal("0"), down_payment_card_id=None))
        assert result.project.payment_status == PaymentStatus.BELUM_BAYAR
        assert result.transaction is None
        assert result.updated_card is None
        assert result.updated_pocket is None


class TestRecords:
    """Tests for the records a conversion builds."""

    def test_records_built(self, converter, store):
        """Test client, project, transaction, promo and lead updates."""
        result = convert(converter, store, make_form())

        assert result.client.name == "Budi Santoso"
        assert result.client.since == TODAY
        assert result.client.portal_access_id

        project = result.project
        assert project.client_id == result.client.id
        assert project.client_name == "Budi Santoso"
        assert project.status == ProjectStatus.CONFIRMED
        assert project.progress == 0
        assert project.package_name == "Paket Silver"
        assert [a.id for a in project.add_ons] == ["ADD001"]
        assert project.promo_code_id == "PROMO001"
        assert project.discount_amount == Decimal("1700000")

        transaction = result.transaction
        assert transaction.type == TransactionType.INCOME
        assert transaction.amount == Decimal("5000000")
        assert transaction.project_id == project.id
        assert transaction.card_id == "CARD001"
        assert transaction.pocket_id == "POC005"
        assert transaction.category == "DP Proyek"
        assert transaction.description == "DP Proyek Pernikahan Budi & Rina"
        assert transaction.flow_direction == FlowDirection.CREDIT

        assert result.updated_card.balance == Decimal("5000000")
        assert result.updated_pocket.amount == Decimal("5000000")
        assert result.updated_promo_code.usage_count == 1
        assert result.updated_lead.status == LeadStatus.CONVERTED

    def test_portal_token_avoids_existing(self, converter, store):
        """Test that the new client's token is not one already taken."""
        taken = {c.portal_access_id for c in store.clients}
        result = convert(converter, store, make_form())
        assert result.client.portal_access_id not in taken

    def test_converter_does_not_touch_store(self, converter, store):
        """Test that building a conversion writes nothing."""
        before = store.sizes()
        convert(converter, store, make_form())
        assert store.sizes() == before
        assert store.leads.get("LEAD001").status == LeadStatus.NEW
        assert store.promo_codes.get("PROMO001").usage_count == 0

    def test_change_set_order_and_consistency(self, converter, store):
        """Test insert ordering and that applied balances match their derivation."""
        result = convert(converter, store, make_form())
        changes = result.to_change_set()

        inserts = [(s.collection, s.record_id) for s in changes if s.operation.value == "insert"]
        assert inserts == [
            ("clients", result.client.id),
            ("projects", result.project.id),
            ("transactions", result.transaction.id),
        ]

        store.apply(changes)
        assert not refresh_projections(store)
        assert store.leads.get("LEAD001").status == LeadStatus.CONVERTED


class TestValidation:
    """Tests for conversion rejections."""

    def test_missing_package_rejected(self, converter, store):
        """Test that no package fails and builds nothing."""
        before = store.sizes()
        with pytest.raises(ValidationError) as exc_info:
            convert(converter, store, make_form(package_id=None))
        assert exc_info.value.field == "package_id"
        assert store.sizes() == before

    def test_down_payment_without_card_rejected(self, converter, store):
        with pytest.raises(ValidationError) as exc_info:
            convert(converter, store, make_form(down_payment_card_id=None))
        assert exc_info.value.field == "down_payment_card_id"

    def test_converted_lead_rejected(self, converter, store):
        """Test that a terminal lead cannot be converted again."""
        store.leads.update("LEAD001", {"status": LeadStatus.CONVERTED})
        with pytest.raises(ValidationError):
            convert(converter, store, make_form())

    def test_unknown_add_on(self, converter, store):
        with pytest.raises(NotFoundError):
            convert(converter, store, make_form(add_on_ids=["ADD404"]))

    def test_unknown_card(self, converter, store):
        with pytest.raises(NotFoundError):
            convert(converter, store, make_form(down_payment_card_id="CARD404"))

    def test_inactive_promo_rejected(self, converter, store):
        store.promo_codes.update("PROMO001", {"is_active": False})
        with pytest.raises(ValidationError) as exc_info:
            convert(converter, store, make_form())
        assert exc_info.value.field == "promo_code_id"

    def test_expired_promo_rejected(self, converter, store):
        store.promo_codes.update("PROMO001", {"expiry_date": date(2024, 5, 1)})
        with pytest.raises(ValidationError):
            convert(converter, store, make_form())

    def test_exhausted_promo_rejected(self, converter, store):
        """Test that the usage cap is enforced at conversion time."""
        store.promo_codes.update("PROMO001", {"usage_count": 5})
        with pytest.raises(PromoCodeExhaustedError):
            convert(converter, store, make_form())

    def test_usage_cap_can_be_disabled(self, store, ledger_settings):
        """Test that the cap check follows configuration."""
        store.promo_codes.update("PROMO001", {"usage_count": 5})
        converter = LeadConverter(ledger_settings.model_copy(update={"enforce_promo_usage_cap": False}))
        result = convert(converter, store, make_form())
        assert result.updated_promo_code.usage_count == 6

    def test_negative_down_payment_rejected_by_form(self):
        with pytest.raises(ValueError):
            make_form(down_payment=Decimal("-1"))
