def register_routes(app):
    from invoices.invoice_routes import bp as invoice_bp
    app.register_blueprint(invoice_bp, url_prefix="/invoices")

    from payments.payment_routes import invoice_payments_bp, bill_payments_bp
    app.register_blueprint(invoice_payments_bp, url_prefix="/invoices")
    app.register_blueprint(bill_payments_bp, url_prefix="/purchase-bills")

    from purchases.purchase_bill_routes import bp as purchase_bill_bp
    app.register_blueprint(purchase_bill_bp, url_prefix="/purchase-bills")

    from reports.report_routes import bp as report_bp
    app.register_blueprint(report_bp, url_prefix="/reports")

    from suppliers.supplier_routes import bp as supplier_bp
    app.register_blueprint(supplier_bp, url_prefix="/suppliers")
