"""
Metric store tables

Read-only inputs for the SQL data provider. Rows are written by the sync
jobs that pull from each integration.
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, Boolean, JSON, UniqueConstraint, Index
from datetime import datetime

from growth_insights.models.base import Base


class DataPoint(Base):
    """One daily observation of one metric from one integration"""
    __tablename__ = "data_points"

    id = Column(Integer, primary_key=True, index=True)

    organization_id = Column(String, index=True, nullable=False)
    metric_type = Column(String, index=True, nullable=False)  # revenue, orders, sessions, spend...
    platform = Column(String, index=True, nullable=False)  # shopify, stripe, google_analytics...

    value = Column(Float, nullable=False)
    date_recorded = Column(DateTime, index=True, nullable=False)
    customer_id = Column(String, nullable=True)

    synced_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_data_points_org_metric_date", "organization_id", "metric_type", "date_recorded"),
    )


class OrganizationProfile(Base):
    """Business settings an organization has told us about"""
    __tablename__ = "organization_profiles"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(String, unique=True, index=True, nullable=False)

    industry = Column(String, nullable=True)
    business_model = Column(String, default="b2c")
    seasonal_business = Column(Boolean, default=False)
    connected_platforms = Column(JSON, default=list)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CustomerSummary(Base):
    """Per-customer order rollup"""
    __tablename__ = "customer_summaries"

    id = Column(Integer, primary_key=True, index=True)

    organization_id = Column(String, index=True, nullable=False)
    customer_id = Column(String, nullable=False)

    acquisition_date = Column(DateTime, nullable=False)
    acquisition_channel = Column(String, default="unknown")
    total_revenue = Column(Float, default=0.0)
    order_count = Column(Integer, default=0)
    last_order_date = Column(DateTime, nullable=False)
    lifetime_value = Column(Float, nullable=True)

    __table_args__ = (
        UniqueConstraint("organization_id", "customer_id", name="uq_customer_summary_org_customer"),
    )
