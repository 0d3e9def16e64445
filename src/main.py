import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import logging
from flask import Flask, jsonify
from flask_cors import CORS
from src.config import Config
from src.extensions import db, migrate
from src.exceptions import BillingException, PartialFailureException, StoreException
from sqlalchemy.exc import SQLAlchemyError

# register blueprints dynamically
from routes import register_routes

logger = logging.getLogger(__name__)


def configure_logging(level):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Enable CORS for all routes
    CORS(app, origins=app.config["CORS_ORIGINS"], methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"], allow_headers=["Content-Type", "Authorization"])

    # initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import all models within app context to resolve relationships
    with app.app_context():
        from tenants.tenant import Tenant
        from user.user import User
        from customers.customer import Customer
        from suppliers.supplier import Supplier
        from products.product import Product
        from invoices.invoice import Invoice
        from invoices.invoice_item import InvoiceItem
        from payments.payment import Payment, PurchasePayment
        from purchases.purchase_bill import PurchaseBill, PurchaseBillItem

    @app.errorhandler(BillingException)
    def handle_billing_exception(e):
        if isinstance(e, PartialFailureException):
            logger.error(
                "Partial failure: %s (compensation errors: %s, mutated: %s)",
                e.message, e.compensation_errors, e.mutated,
            )
        elif e.status_code >= 500:
            logger.error("Store error: %s", e.message)
        body = {"error": e.message}
        if isinstance(e, PartialFailureException) and e.mutated:
            body["mutated"] = e.mutated
        return jsonify(body), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_store_error(e):
        db.session.rollback()
        logger.error("Unhandled store error: %s", e)
        return handle_billing_exception(StoreException("A store error has occurred"))

    # register routes/blueprints
    register_routes(app)

    @app.get("/")
    def index():
        return jsonify({"message": "Shop Billing API"}), 200

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "5000")), debug=app.config["DEBUG"])
