"""Data models for the Growth Insights engine"""

from growth_insights.models.metrics import (
    DataPoint,
    OrganizationProfile,
    CustomerSummary
)
