"""Domain models - user profiles, the finished-goods catalog and print orders."""
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Enum as SQLEnum, Integer, String

from labelprint.database import Base
from labelprint.models.enums import Role


class UserProfile(Base):
    """
    Application profile attached one-to-one to an identity at the auth provider.

    Invariants:
    - id is the identity id issued by the provider, never generated here
    - name is unique case-insensitively (enforced by the service layer)
    - role is always one of the four Role values
    """
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    email = Column(String, nullable=True)
    name = Column(String, nullable=False)
    role = Column(SQLEnum(Role), nullable=False, default=Role.USER)

    employee_id = Column(String, nullable=True)
    job_title = Column(String, nullable=True)
    department = Column(String, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


class Product(Base):
    """
    A finished-goods code and its shelf life.

    exp is a free-form shelf-life string ("18 months", "30 days", "2 ปี").
    """
    __tablename__ = "fgcode"

    id = Column(String, primary_key=True, index=True)  # e.g. FG-1001
    name = Column(String, nullable=False)
    exp = Column(String, nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


class Order(Base):
    """
    A label print order.

    Product name and shelf life are copied at creation so later catalog edits
    do not rewrite printed labels. Verification fields move together: either
    all three are set or all three are empty.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_date = Column(Date, nullable=False)
    order_time = Column(String, nullable=False)  # HH:MM
    order_datetime = Column(DateTime, nullable=False)
    order_type = Column(String, nullable=False, default="Print Label")

    lot_number = Column(String, nullable=False, index=True)
    product_id = Column(String, nullable=False)
    product_name = Column(String, nullable=False)
    product_exp = Column(String, nullable=False)
    production_date = Column(Date, nullable=False)
    expiry_date = Column(Date, nullable=True)  # None when the shelf life is unparsable
    quantity = Column(Integer, nullable=False)
    notes = Column(String, nullable=True, default="-")

    created_by = Column(String, nullable=False)
    created_by_department = Column(String, nullable=False)

    is_verified = Column(Boolean, nullable=False, default=False)
    verified_by = Column(String, nullable=True)
    verified_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
