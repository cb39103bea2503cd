from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from ipd.models.billing import PaymentStatus
from ipd.schemas.billing import BillLine
from ipd.services.billing_service import (
    bed_type_label,
    calculate_bill_totals,
    calculate_room_charges,
    calculate_stay_days,
    determine_payment_status,
)
from ipd.utils.dosing import calculate_quantity, daily_doses, duration_days, schedule_slots
from ipd.utils.id_generators import (
    generate_allocation_code,
    generate_bill_number,
    generate_ip_number,
    generate_prescription_code,
    generate_uhid,
)
from ipd.utils.money import round_amount, to_decimal

ADMITTED = datetime(2025, 1, 10, 9, 0, tzinfo=timezone.utc)


def line(quantity, unit_rate):
    return BillLine(description="item", quantity=Decimal(str(quantity)), unit_rate=Decimal(str(unit_rate)))


class TestMoney:
    def test_round_half_up(self):
        assert round_amount(Decimal("10.5")) == Decimal("11")
        assert round_amount(Decimal("10.49")) == Decimal("10")
        assert round_amount(2.5) == Decimal("3")

    def test_to_decimal(self):
        assert to_decimal(None) == Decimal("0")
        assert to_decimal(12.1) == Decimal("12.1")
        assert to_decimal("7") == Decimal("7")


class TestStayDays:
    def test_partial_day_counts_as_one(self):
        assert calculate_stay_days(ADMITTED, ADMITTED + timedelta(hours=3)) == 1

    def test_same_instant_is_one_day(self):
        assert calculate_stay_days(ADMITTED, ADMITTED) == 1

    def test_started_days_are_rounded_up(self):
        assert calculate_stay_days(ADMITTED, ADMITTED + timedelta(days=2)) == 2
        assert calculate_stay_days(ADMITTED, ADMITTED + timedelta(days=2, minutes=1)) == 3

    def test_naive_values_are_utc(self):
        naive = ADMITTED.replace(tzinfo=None)
        assert calculate_stay_days(naive, ADMITTED + timedelta(days=1)) == 1


class TestRoomCharges:
    @pytest.mark.parametrize(
        "bed_type, label",
        [
            ("icu", "ICU Bed"),
            ("ICU", "ICU Bed"),
            ("emergency", "Emergency Bed"),
            ("private", "Private Room"),
            ("general", "General Ward Bed"),
            (None, "General Ward Bed"),
        ],
    )
    def test_bed_type_label(self, bed_type, label):
        assert bed_type_label(bed_type) == label

    def test_bed_rate(self, bed):
        charges = calculate_room_charges(bed, ADMITTED, ADMITTED + timedelta(days=3))
        assert charges.days == 3
        assert charges.daily_rate == Decimal("1000")
        assert charges.total == Decimal("3000")
        assert charges.bed_number == "G-101"

    def test_default_rate_when_bed_has_none(self, make_bed):
        bed = make_bed(bed_number="G-102", daily_rate=None)
        charges = calculate_room_charges(bed, ADMITTED, ADMITTED + timedelta(days=2))
        assert charges.daily_rate == Decimal("800")
        assert charges.total == Decimal("1600")

    def test_explicit_default_rate(self):
        charges = calculate_room_charges(None, ADMITTED, ADMITTED + timedelta(hours=5), default_rate=1200)
        assert charges.days == 1
        assert charges.total == Decimal("1200")
        assert charges.bed_type == "General Ward Bed"


class TestBillTotals:
    def test_subtotal_only(self):
        totals = calculate_bill_totals([line(2, 150), line(1, 99.5)])
        assert totals.subtotal == Decimal("400")
        assert totals.total_amount == Decimal("400")

    def test_tax_and_percentage_discount(self):
        totals = calculate_bill_totals([line(1, 1000)], tax_percentage=5, discount_percentage=10)
        assert totals.tax_amount == Decimal("50")
        assert totals.discount_amount == Decimal("100")
        assert totals.total_amount == Decimal("950")

    def test_flat_discount_overrides_percentage(self):
        totals = calculate_bill_totals([line(1, 1000)], discount_percentage=50, discount_amount=Decimal("120"))
        assert totals.discount_amount == Decimal("120")
        assert totals.total_amount == Decimal("880")

    def test_discount_may_not_exceed_bill(self):
        with pytest.raises(ValueError):
            calculate_bill_totals([line(1, 100)], tax_percentage=10, discount_amount=Decimal("111"))

    def test_discount_equal_to_bill_is_allowed(self):
        totals = calculate_bill_totals([line(1, 100)], tax_percentage=10, discount_amount=Decimal("110"))
        assert totals.total_amount == Decimal("0")


class TestPaymentStatus:
    def test_paid(self):
        assert determine_payment_status(1000, 1000) == PaymentStatus.PAID
        assert determine_payment_status(1000, 1200) == PaymentStatus.PAID
        assert determine_payment_status(0, 0) == PaymentStatus.PAID

    def test_partial(self):
        assert determine_payment_status(1000, 1) == PaymentStatus.PARTIAL

    def test_pending(self):
        assert determine_payment_status(1000, 0) == PaymentStatus.PENDING


class TestIdGenerators:
    NOW = datetime(2025, 3, 7, 12, 0, tzinfo=timezone.utc)

    def test_formats_on_empty_database(self, db):
        assert generate_uhid(db, self.NOW) == "UHID2500001"
        assert generate_ip_number(db, self.NOW) == "IP25030001"
        assert generate_allocation_code(db, self.NOW) == "BA202503070001"
        assert generate_prescription_code(db, self.NOW) == "RX2500001"
        assert generate_bill_number(db, "IP", self.NOW) == "IP-2503-0001"

    def test_uhid_sequence_increments(self, db, make_patient):
        first = make_patient("First Patient")
        second = make_patient("Second Patient")
        assert int(second.uhid[-5:]) == int(first.uhid[-5:]) + 1


class TestDosing:
    @pytest.mark.parametrize(
        "frequency, doses",
        [
            ("once daily", 1),
            ("twice daily", 2),
            ("BID", 2),
            ("thrice daily", 3),
            ("TDS", 3),
            ("QID", 4),
            (None, 1),
        ],
    )
    def test_daily_doses(self, frequency, doses):
        assert daily_doses(frequency) == doses

    def test_duration_days(self):
        assert duration_days("5 days") == 5
        assert duration_days("hospital stay") == 7
        assert duration_days("2 weeks") == 7
        assert duration_days("until review") is None

    def test_quantity(self):
        assert calculate_quantity("twice daily", "5 days") == 10
        assert calculate_quantity("once daily", "hospital stay") == 7
        assert calculate_quantity("TID", None) == 3

    def test_schedule_slots(self):
        assert schedule_slots("once daily") == ["09:00"]
        assert schedule_slots("twice daily") == ["09:00", "21:00"]
        assert schedule_slots("thrice daily") == ["08:00", "14:00", "20:00"]
        assert schedule_slots("QID") == ["06:00", "12:00", "18:00", "22:00"]
        assert schedule_slots("every 8 hours") == ["06:00", "14:00", "22:00"]
        assert schedule_slots("at night") == ["21:00"]
        assert schedule_slots("SOS") == []
