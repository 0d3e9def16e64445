import logging
from collections import OrderedDict
from decimal import Decimal
from src.extensions import db
from src.exceptions import (
    ConflictException, PartialFailureException, ResourceNotFoundException, ValidationException,
)
from src.money import round_money
from purchases.purchase_bill import PurchaseBill, PurchaseBillItem
from purchases.purchase_bill_service import PurchaseBillService
from products.product import Product

logger = logging.getLogger(__name__)


class InventoryService:
    @staticmethod
    def aggregate_items(items):
        """
        Collapse bill lines per product, keeping first-seen order.
        Quantities add up; the purchase price of the last line wins.
        """
        totals = OrderedDict()
        for item in items:
            entry = totals.setdefault(item.product_id, {"quantity": Decimal("0"), "purchase_price": None})
            entry["quantity"] += Decimal(str(item.quantity))
            entry["purchase_price"] = round_money(item.purchase_price)
        return totals

    @staticmethod
    def _apply_stock(product_id, quantity, purchase_price):
        # increment happens in the database, not from a value read earlier
        updated = (
            Product.query
            .filter(Product.id == product_id)
            .update({
                Product.stock_quantity: Product.stock_quantity + quantity,
                Product.last_purchase_price: purchase_price,
            }, synchronize_session=False)
        )
        if not updated:
            raise ResourceNotFoundException(f"Product {product_id} not found")
        db.session.commit()

    @staticmethod
    def record_purchase_bill(tenant_id, bill_id):
        """
        Move a draft bill to recorded and add its quantities to stock.

        Each product is committed on its own. If something fails after the
        first product was updated, those products stay updated and a
        PartialFailureException lists them.
        """
        bill = PurchaseBill.query.filter_by(id=bill_id, tenant_id=tenant_id).first()
        if not bill:
            raise ResourceNotFoundException("Purchase bill not found")
        if bill.status != "draft":
            raise ConflictException("Only draft bills can be recorded")

        items = (
            PurchaseBillItem.query
            .filter_by(purchase_bill_id=bill.id)
            .order_by(PurchaseBillItem.created_at, PurchaseBillItem.id)
            .all()
        )
        if not items:
            raise ValidationException("Purchase bill has no items")

        per_product = InventoryService.aggregate_items(items)
        found = {
            pid for (pid,) in db.session.query(Product.id).filter(
                Product.tenant_id == tenant_id, Product.id.in_(list(per_product.keys()))
            )
        }
        missing = [pid for pid in per_product if pid not in found]
        if missing:
            raise ResourceNotFoundException(
                f"Products no longer exist: {', '.join(str(pid) for pid in missing)}"
            )

        mutated = []
        try:
            for product_id, entry in per_product.items():
                InventoryService._apply_stock(product_id, entry["quantity"], entry["purchase_price"])
                mutated.append(product_id)

            flipped = (
                PurchaseBill.query
                .filter(PurchaseBill.id == bill.id, PurchaseBill.status == "draft")
                .update({PurchaseBill.status: "recorded"}, synchronize_session=False)
            )
            if not flipped:
                raise ConflictException("Purchase bill was recorded by another request")
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            if not mutated:
                raise
            logger.error(
                "Recording purchase bill %s failed after updating products %s: %s",
                bill_id, mutated, e,
            )
            raise PartialFailureException(
                f"Recording purchase bill failed after stock was updated for products {mutated}",
                original_error=e,
                mutated=mutated,
            ) from e

        db.session.expire_all()
        logger.info("Tenant %s: recorded purchase bill %s (%s products)", tenant_id, bill_id, len(mutated))
        return PurchaseBillService.get_bill_detail(tenant_id, bill_id)
