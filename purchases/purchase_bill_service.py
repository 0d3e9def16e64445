import logging
from sqlalchemy.exc import IntegrityError
from src.extensions import db
from src.exceptions import ConflictException, ResourceNotFoundException, ValidationException
from src.money import round_money, sum_money, to_decimal, to_number
from src.saga import Saga
from src.validators import parse_date, parse_id, parse_quantity, parse_non_negative
from purchases.purchase_bill import PurchaseBill, PurchaseBillItem
from payments.payment import payment_to_dict
from products.product import Product
from suppliers.supplier import Supplier
from tenants.numbering_service import NumberingService

logger = logging.getLogger(__name__)


def bill_to_dict(bill):
    return {
        "id": bill.id,
        "supplier_id": bill.supplier_id,
        "bill_number": bill.bill_number,
        "bill_date": bill.bill_date.isoformat() if bill.bill_date else None,
        "status": bill.status,
        "subtotal": to_number(bill.subtotal),
        "total": to_number(bill.total),
        "amount_paid": to_number(bill.amount_paid),
        "balance": to_number(to_decimal(bill.total) - to_decimal(bill.amount_paid)),
        "created_at": bill.created_at.isoformat() if bill.created_at else None,
    }


def bill_item_to_dict(item):
    return {
        "id": item.id,
        "product_id": item.product_id,
        "product": {"id": item.product.id, "name": item.product.name} if item.product else None,
        "quantity": float(item.quantity),
        "purchase_price": to_number(item.purchase_price),
        "amount": to_number(item.amount),
    }


class PurchaseBillService:
    @staticmethod
    def _get_bill(tenant_id, bill_id):
        bill = PurchaseBill.query.filter_by(id=bill_id, tenant_id=tenant_id).first()
        if not bill:
            raise ResourceNotFoundException("Purchase bill not found")
        return bill

    @staticmethod
    def _parse_header(tenant_id, payload):
        supplier_id = parse_id(payload.get("supplier_id"), "supplier_id")
        bill_date = parse_date(payload.get("bill_date"), "bill_date")
        raw_items = payload.get("items")
        if not isinstance(raw_items, list) or not raw_items:
            raise ValidationException("items array is required and non-empty")
        lines = PurchaseBillService._parse_items(raw_items)

        supplier = Supplier.query.filter_by(id=supplier_id, tenant_id=tenant_id).first()
        if not supplier:
            raise ResourceNotFoundException("Supplier not found or does not belong to your shop")
        product_ids = {line["product_id"] for line in lines}
        found = {
            pid for (pid,) in db.session.query(Product.id).filter(
                Product.tenant_id == tenant_id, Product.id.in_(product_ids)
            )
        }
        missing = sorted(product_ids - found)
        if missing:
            raise ResourceNotFoundException(
                f"All products must belong to your shop (missing: {', '.join(str(m) for m in missing)})"
            )
        return supplier_id, bill_date, lines

    @staticmethod
    def _parse_items(raw_items):
        lines = []
        for index, raw in enumerate(raw_items):
            if not isinstance(raw, dict):
                raise ValidationException(f"items[{index}] must be an object")
            product_id = parse_id(raw.get("product_id"), f"items[{index}].product_id")
            quantity = parse_quantity(raw.get("quantity"), f"items[{index}].quantity")
            price = parse_non_negative(raw.get("purchase_price"), f"items[{index}].purchase_price")
            lines.append({
                "product_id": product_id,
                "quantity": quantity,
                "purchase_price": round_money(price),
                "amount": round_money(quantity * price),
            })
        return lines

    @staticmethod
    def _insert_items(bill_id, lines):
        ids = []
        for line in lines:
            item = PurchaseBillItem(purchase_bill_id=bill_id, **line)
            db.session.add(item)
            db.session.commit()
            ids.append(item.id)
        return ids

    @staticmethod
    def _delete_bill_row(bill_id):
        bill = db.session.get(PurchaseBill, bill_id)
        if bill is not None:
            db.session.delete(bill)

    @staticmethod
    def _insert_with_explicit_number(row):
        db.session.add(row)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            if NumberingService.number_taken(PurchaseBill, "bill_number", row.tenant_id, row.bill_number):
                raise ConflictException("Bill number already exists for this shop")
            raise
        return row

    @staticmethod
    def create_bill(tenant_id, payload):
        """
        Create a draft purchase bill. A blank bill_number takes the next
        PB- number from the tenant counter.
        """
        supplier_id, bill_date, lines = PurchaseBillService._parse_header(tenant_id, payload)
        bill_number = str(payload.get("bill_number") or "").strip()
        auto_number = not bill_number
        if not auto_number and NumberingService.number_taken(PurchaseBill, "bill_number", tenant_id, bill_number):
            raise ConflictException("Bill number already exists for this shop")
        subtotal = sum_money(line["amount"] for line in lines)

        state = {}

        def build_bill(number):
            return PurchaseBill(
                tenant_id=tenant_id,
                supplier_id=supplier_id,
                bill_number=number,
                bill_date=bill_date,
                status="draft",
                subtotal=subtotal,
                total=subtotal,
                amount_paid=0,
            )

        def insert_bill():
            if auto_number:
                bill, counter = NumberingService.insert_numbered(
                    tenant_id, "purchase_bill", PurchaseBill, "bill_number", build_bill
                )
                state["counter"] = counter
            else:
                bill = PurchaseBillService._insert_with_explicit_number(build_bill(bill_number))
            state["bill_id"] = bill.id
            return bill.id

        def undo_bill():
            PurchaseBillService._delete_bill_row(state["bill_id"])

        def insert_items():
            return PurchaseBillService._insert_items(state["bill_id"], lines)

        saga = (
            Saga("create_purchase_bill")
            .step("bill", insert_bill, undo_bill)
            .step("items", insert_items)
        )
        if auto_number:
            saga.step("counter", lambda: NumberingService.advance(tenant_id, "purchase_bill", state["counter"]))
        saga.run()

        bill = db.session.get(PurchaseBill, state["bill_id"])
        logger.info("Tenant %s: created purchase bill %s (%s)", tenant_id, bill.bill_number, bill.id)
        return PurchaseBillService._detail(bill)

    @staticmethod
    def update_bill(tenant_id, bill_id, payload):
        """
        Replace the header and the whole item set of a draft bill.

        Steps: remove old items, update header, insert new items. A failed
        step puts back the previous header and items from a snapshot.
        """
        bill = PurchaseBillService._get_bill(tenant_id, bill_id)
        if bill.status != "draft":
            raise ConflictException("Only draft purchase bills can be edited")
        bill_number = str(payload.get("bill_number") or "").strip()
        if not bill_number:
            raise ValidationException("bill_number is required")
        supplier_id, bill_date, lines = PurchaseBillService._parse_header(tenant_id, payload)
        duplicate = PurchaseBill.query.filter(
            PurchaseBill.tenant_id == tenant_id,
            PurchaseBill.bill_number == bill_number,
            PurchaseBill.id != bill.id,
        ).first()
        if duplicate:
            raise ConflictException("Bill number already exists for this shop")
        subtotal = sum_money(line["amount"] for line in lines)

        old_header = {
            "supplier_id": bill.supplier_id,
            "bill_number": bill.bill_number,
            "bill_date": bill.bill_date,
            "subtotal": bill.subtotal,
            "total": bill.total,
        }
        old_lines = [{
            "product_id": item.product_id,
            "quantity": item.quantity,
            "purchase_price": item.purchase_price,
            "amount": item.amount,
        } for item in bill.items]

        def remove_items():
            return PurchaseBillItem.query.filter_by(purchase_bill_id=bill_id).delete(synchronize_session=False)

        def restore_items():
            # rows committed by a partially failed insert are dropped first
            PurchaseBillItem.query.filter_by(purchase_bill_id=bill_id).delete(synchronize_session=False)
            for line in old_lines:
                db.session.add(PurchaseBillItem(purchase_bill_id=bill_id, **line))

        def update_header():
            try:
                updated = (
                    PurchaseBill.query
                    .filter(PurchaseBill.id == bill_id, PurchaseBill.status == "draft")
                    .update({
                        PurchaseBill.supplier_id: supplier_id,
                        PurchaseBill.bill_number: bill_number,
                        PurchaseBill.bill_date: bill_date,
                        PurchaseBill.subtotal: subtotal,
                        PurchaseBill.total: subtotal,
                    }, synchronize_session=False)
                )
            except IntegrityError:
                raise ConflictException("Bill number already exists for this shop")
            if not updated:
                raise ConflictException("Only draft purchase bills can be edited")
            return updated

        def restore_header():
            PurchaseBill.query.filter_by(id=bill_id).update(
                {getattr(PurchaseBill, key): value for key, value in old_header.items()},
                synchronize_session=False,
            )

        def insert_items():
            return PurchaseBillService._insert_items(bill_id, lines)

        (
            Saga("update_purchase_bill")
            .step("remove_items", remove_items, restore_items)
            .step("header", update_header, restore_header)
            .step("items", insert_items)
            .run()
        )

        db.session.expire_all()
        bill = PurchaseBillService._get_bill(tenant_id, bill_id)
        logger.info("Tenant %s: updated purchase bill %s", tenant_id, bill_id)
        return PurchaseBillService._detail(bill)

    @staticmethod
    def delete_bill(tenant_id, bill_id):
        bill = PurchaseBillService._get_bill(tenant_id, bill_id)
        if bill.status != "draft":
            raise ConflictException("Only draft purchase bills can be deleted")
        db.session.delete(bill)
        db.session.commit()
        logger.info("Tenant %s: deleted draft purchase bill %s", tenant_id, bill_id)
        return {"message": "Purchase bill deleted"}

    @staticmethod
    def list_bills(tenant_id, status=None, supplier_id=None, limit=50, offset=0):
        query = PurchaseBill.query.filter(PurchaseBill.tenant_id == tenant_id)
        if status:
            query = query.filter(PurchaseBill.status == str(status).strip().lower())
        if supplier_id not in (None, ""):
            query = query.filter(PurchaseBill.supplier_id == parse_id(supplier_id, "supplier_id"))
        total = query.count()
        rows = (
            query.order_by(PurchaseBill.bill_date.desc(), PurchaseBill.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        data = []
        for bill in rows:
            row = bill_to_dict(bill)
            row["supplier"] = {"id": bill.supplier.id, "name": bill.supplier.name} if bill.supplier else None
            data.append(row)
        return {"data": data, "total": total}

    @staticmethod
    def get_bill_detail(tenant_id, bill_id):
        return PurchaseBillService._detail(PurchaseBillService._get_bill(tenant_id, bill_id))

    @staticmethod
    def _detail(bill):
        data = bill_to_dict(bill)
        data["supplier"] = bill.supplier.to_summary() if bill.supplier else None
        data["items"] = [bill_item_to_dict(i) for i in bill.items]
        data["payments"] = [payment_to_dict(p) for p in bill.payments]
        return data
