# app/services/pricing_service.py
"""
Server-side price & integrity validation of a freshly created order.

The validator only reads (merchant, menu, client) and computes a
ValidationOutcome; OrderService persists it or cancels the order.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Any

from sqlmodel import Session

from app.core.config import Settings
from app.core.errors import ValidationFailure
from app.core.push import PushClient
from app.models.merchant import Merchant, MenuItem
from app.models.order import Order
from app.repositories.merchant_repo import MerchantRepository
from app.repositories.user_repo import UserRepository
from app.schemas.merchant import ModifierGroup

logger = logging.getLogger(__name__)

REASON_MERCHANT_NOT_FOUND = "Restaurant not found"
REASON_MERCHANT_CLOSED = "Restaurant closed before confirming"
REASON_ACCOUNT_SUSPENDED = "Account suspended - contact support"
TRUST_WARNING = "Client has a history of cancellations"
ITEM_NOT_IN_MENU = "item_not_in_menu"


@dataclass
class ValidationOutcome:
    """Result of validating an order that passed every hard gate."""

    merchant: Merchant | None = None
    items: list[dict[str, Any]] = field(default_factory=list)
    totals: dict[str, float] = field(default_factory=dict)
    price_manipulated: bool = False
    trust_warning: str | None = None


def _money(value: float) -> float:
    return round(float(value), 2)


class PriceIntegrityValidator:
    """
    Recomputes every line and the order totals from the authoritative menu.

    Hard gates (raise ValidationFailure, the order must be cancelled):
      - merchant missing or closed
      - a known menu item is unavailable
      - cash order from a client whose trust score is below the floor

    Everything else degrades gracefully:
      - unknown menu item: line kept with a warning, client subtotal trusted
      - price mismatch above tolerance: flagged, not rejected
      - unknown modifier selections: ignored
    """

    def __init__(
        self,
        merchant_repo: MerchantRepository,
        user_repo: UserRepository,
        push: PushClient,
        settings: Settings,
    ):
        self.merchant_repo = merchant_repo
        self.user_repo = user_repo
        self.push = push
        self.settings = settings

    # ---- public operations ----

    def validate(self, session: Session, order: Order) -> ValidationOutcome:
        # 1) Merchant exists and is open
        merchant = self.merchant_repo.get_by_id(session, order.merchant_id)
        if merchant is None:
            raise ValidationFailure(REASON_MERCHANT_NOT_FOUND)
        if not merchant.is_open:
            raise ValidationFailure(REASON_MERCHANT_CLOSED)

        # 2-3) Reprice each line against the menu
        menu = {
            str(item.id): item
            for item in self.merchant_repo.list_menu(session, merchant.id)
        }

        server_subtotal = 0.0
        validated_items: list[dict[str, Any]] = []
        price_manipulated = False

        for line in order.items:
            menu_item = menu.get(str(line.get("item_id")))

            if menu_item is None:
                validated_items.append({**line, "warning": ITEM_NOT_IN_MENU})
                server_subtotal += float(line.get("subtotal") or 0)
                continue

            if not menu_item.is_available:
                raise ValidationFailure(f'"{menu_item.name}" is no longer available')

            unit_price = self.unit_price(menu_item, line)
            line_subtotal = _money(unit_price * int(line.get("quantity") or 1))

            declared = float(line.get("subtotal") or 0)
            if abs(line_subtotal - declared) > self.settings.PRICE_TOLERANCE:
                price_manipulated = True

            validated_items.append(
                {
                    **line,
                    "name": menu_item.name,
                    "unit_price": unit_price,
                    "subtotal": line_subtotal,
                    "server_validated": True,
                }
            )
            server_subtotal += line_subtotal

        # 4) Totals
        totals = self.compute_totals(_money(server_subtotal), order.totals, merchant)

        # 5) Trust score gate for cash orders
        trust_warning = None
        if order.payment.get("method") == "cash" and order.client_id:
            trust_score = self._trust_score(session, order)
            if trust_score < self.settings.TRUST_SCORE_HARD_FLOOR:
                raise ValidationFailure(REASON_ACCOUNT_SUSPENDED)
            if trust_score < self.settings.TRUST_SCORE_WARNING:
                trust_warning = TRUST_WARNING

        return ValidationOutcome(
            merchant=merchant,
            items=validated_items,
            totals=totals,
            price_manipulated=price_manipulated,
            trust_warning=trust_warning,
        )

    def unit_price(self, menu_item: MenuItem, line: dict[str, Any]) -> float:
        """
        Base price + deltas of the selected options that exist in the
        authoritative modifier groups + legacy extras.
        """
        price = float(menu_item.price)

        groups = {
            group.id: group
            for group in (ModifierGroup.model_validate(g) for g in menu_item.modifier_groups)
        }
        for selection in line.get("modifiers") or []:
            group = groups.get(selection.get("group_id"))
            if group is None:
                continue
            for chosen in selection.get("selected") or []:
                option = group.find_option(chosen.get("id"))
                if option is not None:
                    price += option.price

        price += self._legacy_extras_delta(line)
        return _money(price)

    def compute_totals(
        self,
        subtotal: float,
        declared: dict[str, Any],
        merchant: Merchant,
    ) -> dict[str, float]:
        """
        deliveryFee: client value, else merchant default, else platform default
        serviceFee:  client value, else SERVICE_FEE_RATE of subtotal (rounded)
        discount:    client value as-is (promotions are validated elsewhere)
        """
        delivery_fee = (
            declared.get("deliveryFee")
            or merchant.delivery_fee
            or self.settings.DEFAULT_DELIVERY_FEE
        )
        # whole units, halves up
        service_fee = declared.get("serviceFee") or math.floor(
            subtotal * self.settings.SERVICE_FEE_RATE + 0.5
        )
        discount = declared.get("discount") or 0
        total = subtotal + delivery_fee + service_fee - discount
        return {
            "subtotal": _money(subtotal),
            "deliveryFee": _money(delivery_fee),
            "serviceFee": _money(service_fee),
            "discount": _money(discount),
            "total": _money(total),
        }

    def notify_merchant(self, merchant: Merchant, order: Order) -> None:
        """New-order alert to the merchant's devices. Never raises."""
        if not merchant.fcm_tokens:
            return
        total = float(order.totals.get("total") or 0)
        try:
            self.push.notify(
                list(merchant.fcm_tokens),
                title="New order",
                body=f"{len(order.items)} item(s) - ${total:.0f}",
                data={
                    "type": "new_order",
                    "orderId": str(order.id),
                    "total": str(total),
                },
            )
        except Exception as e:
            logger.warning(f"Push notification to merchant {merchant.id} failed: {e}")

    # ---- internal helpers ----

    def _trust_score(self, session: Session, order: Order) -> int:
        client = self.user_repo.get_by_id(session, order.client_id)
        if client is None or client.trust_score is None:
            return self.settings.TRUST_SCORE_DEFAULT
        return client.trust_score

    @staticmethod
    def _legacy_extras_delta(line: dict[str, Any]) -> float:
        # Older clients send flat `selected_extras` instead of modifier groups.
        # There is no authoritative table for them; their prices are added as sent.
        return sum(float(extra.get("price") or 0) for extra in line.get("selected_extras") or [])
