"""Statistical analysis, impact scoring and business intelligence"""
