"""TransitOps - shipment status workflow, trip alerting and compliance monitoring"""

__version__ = "1.0.0"
