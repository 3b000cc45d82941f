"""Business logic: validation, status history, alerting, compliance and geofencing"""
