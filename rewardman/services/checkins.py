"""Check-in service - customers by phone, visits per merchant."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from rewardman.exceptions import RewardmanError
from rewardman.models import Customer, RewardAccount, Visit, VisitSource
from rewardman.services.ledger import RewardLedger
from rewardman.utils import normalize_phone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckinResult:
    """Outcome of CheckinService.check_in."""

    customer: Customer
    account: RewardAccount
    visit: Visit
    created: bool

    @property
    def balance(self) -> int:
        return self.account.points_balance


def generate_customer_code() -> str:
    return f"CUST-{uuid.uuid4().hex[:12].upper()}"


class CheckinService:
    """
    Customer identification and visit recording.

    Uses @classmethod for extensibility (consistent with other services).
    """

    @classmethod
    def get_customer(cls, code: str) -> Customer | None:
        """Get customer by unique code."""
        try:
            return Customer.objects.get(code=code, is_active=True)
        except Customer.DoesNotExist:
            return None

    @classmethod
    def get_by_phone(cls, phone: str) -> Customer | None:
        """Get customer by phone (exact match on normalized E.164)."""
        phone_normalized = normalize_phone(phone)
        if not phone_normalized:
            return None
        try:
            return Customer.objects.get(phone=phone_normalized, is_active=True)
        except Customer.DoesNotExist:
            return None

    @classmethod
    def get_or_create_customer(
        cls,
        phone: str,
        first_name: str = "",
        last_name: str = "",
    ) -> tuple[Customer, bool]:
        """
        Find the customer by phone, creating one on first contact.

        Names only fill blanks; an existing name is never overwritten.

        Raises:
            RewardmanError: INVALID_PHONE
        """
        phone_normalized = normalize_phone(phone)
        if not phone_normalized:
            raise RewardmanError("INVALID_PHONE", phone=phone)

        customer = Customer.objects.filter(phone=phone_normalized).first()
        if customer is None:
            try:
                with transaction.atomic():
                    customer = Customer.objects.create(
                        code=generate_customer_code(),
                        phone=phone_normalized,
                        first_name=first_name,
                        last_name=last_name,
                    )
                logger.info("Customer %s created from check-in", customer.code)
                return customer, True
            except IntegrityError:
                # Concurrent first check-in with the same phone
                customer = Customer.objects.get(phone=phone_normalized)

        if not customer.is_active:
            raise RewardmanError("CUSTOMER_NOT_FOUND", customer_code=customer.code)

        changed = []
        if first_name and not customer.first_name:
            customer.first_name = first_name
            changed.append("first_name")
        if last_name and not customer.last_name:
            customer.last_name = last_name
            changed.append("last_name")
        if changed:
            customer.save(update_fields=[*changed, "updated_at"])
        return customer, False

    @classmethod
    def check_in(
        cls,
        merchant_code: str,
        phone: str,
        first_name: str = "",
        last_name: str = "",
        branch: str = "",
        source: str = VisitSource.QR,
        as_of: datetime | None = None,
    ) -> CheckinResult:
        """
        Identify a customer by phone and record a visit.

        Enrolls the customer with the merchant on first visit.

        Raises:
            RewardmanError: INVALID_PHONE, MERCHANT_NOT_FOUND
        """
        with transaction.atomic():
            customer, created = cls.get_or_create_customer(phone, first_name, last_name)
            account = RewardLedger.enroll(customer.code, merchant_code)
            visit = cls.record_visit(account, branch=branch, source=source, as_of=as_of)

        logger.info(
            "Check-in %s@%s via %s (visit #%d)",
            customer.code,
            merchant_code,
            source,
            account.visits_count,
        )
        return CheckinResult(customer=customer, account=account, visit=visit, created=created)

    @classmethod
    def record_visit(
        cls,
        account: RewardAccount,
        branch: str = "",
        source: str = VisitSource.POS,
        purchase_amount: Decimal | None = None,
        as_of: datetime | None = None,
    ) -> Visit:
        """Store a visit and bump the account's visit counters."""
        visited_at = as_of or timezone.now()
        visit = Visit.objects.create(
            account=account,
            branch=branch,
            source=source,
            purchase_amount=purchase_amount,
            visited_at=visited_at,
        )
        RewardAccount.objects.filter(pk=account.pk).update(
            visits_count=F("visits_count") + 1,
            last_visit_at=visited_at,
        )
        account.refresh_from_db(fields=["visits_count", "last_visit_at", "version"])
        return visit

    @classmethod
    def visits_since(cls, account: RewardAccount, since: datetime, until: datetime) -> list[datetime]:
        """Visit timestamps in [since, until]."""
        return list(
            Visit.objects.filter(
                account=account,
                visited_at__gte=since,
                visited_at__lte=until,
            ).values_list("visited_at", flat=True)
        )
