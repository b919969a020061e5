from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, Table, Text, UniqueConstraint, text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


class Shops(Base):
    __tablename__ = 'shops'

    name = Column(Text, nullable=False)
    slug = Column(Text, nullable=False, unique=True)
    id = Column(Integer, primary_key=True)
    phone = Column(Text)
    booking_window_days = Column(Integer, nullable=False, server_default=text('60'))
    created_at = Column(DateTime, server_default=text('CURRENT_TIMESTAMP'))

    hours = relationship('BusinessHours', back_populates='shop', cascade='all, delete-orphan')
    staff = relationship('Staff', back_populates='shop')
    services = relationship('Services', back_populates='shop')
    blocked_dates = relationship('BlockedDates', back_populates='shop')
    bookings = relationship('Bookings', back_populates='shop')


class BusinessHours(Base):
    __tablename__ = 'business_hours'
    __table_args__ = (
        UniqueConstraint('shop_id', 'day'),
    )

    shop_id = Column(ForeignKey('shops.id', ondelete='CASCADE'), nullable=False)
    day = Column(Integer, nullable=False)  # 0 = Monday … 6 = Sunday
    is_open = Column(Boolean, nullable=False, server_default=text('1'))
    open_time = Column(Text, nullable=False, server_default=text("'09:00'"))
    close_time = Column(Text, nullable=False, server_default=text("'18:00'"))
    id = Column(Integer, primary_key=True)

    shop = relationship('Shops', back_populates='hours')


t_staff_services = Table(
    'staff_services', metadata,
    Column('staff_id', ForeignKey('staff.id', ondelete='CASCADE'), primary_key=True),
    Column('service_id', ForeignKey('services.id', ondelete='CASCADE'), primary_key=True),
)


class Services(Base):
    __tablename__ = 'services'

    shop_id = Column(ForeignKey('shops.id', ondelete='CASCADE'), nullable=False)
    name = Column(Text, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Float, nullable=False, server_default=text('0'))
    id = Column(Integer, primary_key=True)
    description = Column(Text)

    shop = relationship('Shops', back_populates='services')
    bookings = relationship('Bookings', back_populates='service')


class Staff(Base):
    __tablename__ = 'staff'

    shop_id = Column(ForeignKey('shops.id', ondelete='CASCADE'), nullable=False)
    name = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, server_default=text('1'))
    sort_order = Column(Integer, nullable=False, server_default=text('0'))
    id = Column(Integer, primary_key=True)
    phone = Column(Text)
    photo_url = Column(Text)

    shop = relationship('Shops', back_populates='staff')
    hours = relationship('StaffHours', back_populates='staff', cascade='all, delete-orphan')
    services = relationship('Services', secondary=t_staff_services)
    blocked_dates = relationship('BlockedDates', back_populates='staff')
    bookings = relationship('Bookings', back_populates='staff')


class StaffHours(Base):
    __tablename__ = 'staff_hours'
    __table_args__ = (
        UniqueConstraint('staff_id', 'day'),
    )

    staff_id = Column(ForeignKey('staff.id', ondelete='CASCADE'), nullable=False)
    day = Column(Integer, nullable=False)
    is_open = Column(Boolean, nullable=False, server_default=text('1'))
    open_time = Column(Text, nullable=False, server_default=text("'09:00'"))
    close_time = Column(Text, nullable=False, server_default=text("'18:00'"))
    id = Column(Integer, primary_key=True)

    staff = relationship('Staff', back_populates='hours')


class BlockedDates(Base):
    __tablename__ = 'blocked_dates'

    shop_id = Column(ForeignKey('shops.id', ondelete='CASCADE'), nullable=False)
    date = Column(Date, nullable=False)
    id = Column(Integer, primary_key=True)
    staff_id = Column(ForeignKey('staff.id', ondelete='CASCADE'))  # NULL = whole shop
    reason = Column(Text)

    shop = relationship('Shops', back_populates='blocked_dates')
    staff = relationship('Staff', back_populates='blocked_dates')


class Bookings(Base):
    __tablename__ = 'bookings'

    shop_id = Column(ForeignKey('shops.id', ondelete='CASCADE'), nullable=False)
    service_id = Column(ForeignKey('services.id'), nullable=False)
    customer_name = Column(Text, nullable=False)
    customer_phone = Column(Text, nullable=False)
    appointment_time = Column(DateTime, nullable=False, index=True)  # naive UTC
    duration_minutes = Column(Integer, nullable=False)
    status = Column(Text, nullable=False, server_default=text("'confirmed'"))
    manage_token = Column(Text, nullable=False, unique=True)
    id = Column(Integer, primary_key=True)
    staff_id = Column(ForeignKey('staff.id', ondelete='SET NULL'))
    customer_email = Column(Text)
    was_auto_assigned = Column(Boolean, nullable=False, server_default=text('0'))
    recurring_group_id = Column(Text, index=True)
    offset_minutes = Column(Integer)  # customer's UTC offset when booked
    reminder_sent = Column(Boolean, nullable=False, server_default=text('0'))
    review_sent = Column(Boolean, nullable=False, server_default=text('0'))
    created_at = Column(DateTime, server_default=text('CURRENT_TIMESTAMP'))

    shop = relationship('Shops', back_populates='bookings')
    service = relationship('Services', back_populates='bookings')
    staff = relationship('Staff', back_populates='bookings')
