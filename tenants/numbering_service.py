import logging
from sqlalchemy.exc import IntegrityError
from src.extensions import db
from src.exceptions import ConflictException, ResourceNotFoundException, ValidationException
from tenants.tenant import Tenant

logger = logging.getLogger(__name__)

MAX_NUMBER_ATTEMPTS = 10
NUMBER_WIDTH = 4

# kind -> (prefix column, counter column, default prefix)
DOCUMENT_KINDS = {
    "invoice": ("invoice_prefix", "invoice_next_number", "INV-"),
    "purchase_bill": ("purchase_bill_prefix", "purchase_bill_next_number", "PB-"),
}


class NumberingService:
    """
    Sequential, tenant scoped document numbers.

    Only this service writes the tenant counters. The counter is read
    without a lock, so two creators can peek the same value; the
    (tenant_id, number) unique constraints catch that and
    insert_numbered() bumps to the next value and tries again.
    """

    @staticmethod
    def _kind(kind):
        if kind not in DOCUMENT_KINDS:
            raise ValidationException(f"Unknown document kind: {kind}")
        return DOCUMENT_KINDS[kind]

    @staticmethod
    def format_number(prefix, counter):
        return f"{prefix}{str(counter).zfill(NUMBER_WIDTH)}"

    @staticmethod
    def prefix_for(tenant, kind):
        prefix_col, _, default_prefix = NumberingService._kind(kind)
        prefix = str(getattr(tenant, prefix_col) or "").strip()
        return prefix or default_prefix

    @staticmethod
    def peek(tenant, kind):
        """Return (number, counter) for the next document without reserving it."""
        _, counter_col, _ = NumberingService._kind(kind)
        try:
            counter = int(getattr(tenant, counter_col) or 1)
        except (TypeError, ValueError):
            counter = 1
        counter = max(1, counter)
        return NumberingService.format_number(NumberingService.prefix_for(tenant, kind), counter), counter

    @staticmethod
    def advance(tenant_id, kind, used_counter):
        """
        Move the counter past used_counter. The WHERE clause keeps a slower
        writer from moving the counter backwards. Returns True when a row
        was updated.
        """
        _, counter_col, _ = NumberingService._kind(kind)
        column = getattr(Tenant, counter_col)
        updated = (
            Tenant.query
            .filter(Tenant.id == tenant_id, column <= used_counter)
            .update({column: used_counter + 1}, synchronize_session=False)
        )
        return updated > 0

    @staticmethod
    def number_taken(model, number_attr, tenant_id, number):
        column = getattr(model, number_attr)
        return db.session.query(model.id).filter(
            model.tenant_id == tenant_id, column == number
        ).first() is not None

    @staticmethod
    def insert_numbered(tenant_id, kind, model, number_attr, build_row):
        """
        Flush a new row from build_row(number), starting at the tenant's
        next number and bumping on duplicate number errors.

        Returns (row, counter_used). Other integrity errors propagate.
        """
        tenant = db.session.get(Tenant, tenant_id)
        if not tenant:
            raise ResourceNotFoundException("Tenant not found")
        prefix = NumberingService.prefix_for(tenant, kind)
        number, counter = NumberingService.peek(tenant, kind)

        for attempt in range(1, MAX_NUMBER_ATTEMPTS + 1):
            row = build_row(number)
            db.session.add(row)
            try:
                db.session.flush()
                return row, counter
            except IntegrityError:
                db.session.rollback()
                if not NumberingService.number_taken(model, number_attr, tenant_id, number):
                    raise
                logger.warning(
                    "Tenant %s: %s number %s already used (attempt %s), bumping",
                    tenant_id, kind, number, attempt,
                )
                counter += 1
                number = NumberingService.format_number(prefix, counter)

        raise ConflictException(f"Could not allocate a unique {kind.replace('_', ' ')} number")
