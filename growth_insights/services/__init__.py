"""Insight generation services"""
