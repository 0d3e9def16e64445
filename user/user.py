from datetime import datetime
from src.extensions import db

class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    # Subject claim of the identity provider's token
    auth_id = db.Column(db.String(255), unique=True, nullable=False)
    email = db.Column(db.String(120), nullable=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id'), nullable=False)
    role = db.Column(db.String(20), default='owner', nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    tenant = db.relationship('Tenant', backref='users')
