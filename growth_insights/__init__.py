"""Growth Insights Engine - ranked, explainable insights from business metrics"""

__version__ = "1.0.0"
