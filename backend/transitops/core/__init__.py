"""Core configuration, status rules and thresholds"""
