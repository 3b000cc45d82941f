"""Create transport core tables

Revision ID: 001
Revises:
Create Date: 2026-01-12 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('locations',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('code', sa.String(length=50), nullable=True),
    sa.Column('name', sa.String(length=255), nullable=False),
    sa.Column('address', sa.String(length=500), nullable=True),
    sa.Column('city', sa.String(length=100), nullable=True),
    sa.Column('state', sa.String(length=100), nullable=True),
    sa.Column('latitude', sa.Float(), nullable=True),
    sa.Column('longitude', sa.Float(), nullable=True),
    sa.Column('geofence_radius_meters', sa.Integer(), nullable=True),
    sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_locations_id'), 'locations', ['id'], unique=False)
    op.create_index(op.f('ix_locations_code'), 'locations', ['code'], unique=True)

    op.create_table('vehicles',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('vehicle_number', sa.String(length=50), nullable=False),
    sa.Column('vehicle_type', sa.String(length=50), nullable=True),
    sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column('rc_expiry_date', sa.Date(), nullable=True),
    sa.Column('insurance_expiry_date', sa.Date(), nullable=True),
    sa.Column('permit_expiry_date', sa.Date(), nullable=True),
    sa.Column('fitness_expiry_date', sa.Date(), nullable=True),
    sa.Column('puc_expiry_date', sa.Date(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_vehicles_id'), 'vehicles', ['id'], unique=False)
    op.create_index(op.f('ix_vehicles_vehicle_number'), 'vehicles', ['vehicle_number'], unique=True)
    op.create_index(op.f('ix_vehicles_is_active'), 'vehicles', ['is_active'], unique=False)

    op.create_table('drivers',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('name', sa.String(length=200), nullable=False),
    sa.Column('mobile', sa.String(length=20), nullable=True),
    sa.Column('license_number', sa.String(length=50), nullable=True),
    sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column('license_expiry_date', sa.Date(), nullable=True),
    sa.Column('police_verification_expiry', sa.Date(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_drivers_id'), 'drivers', ['id'], unique=False)
    op.create_index(op.f('ix_drivers_is_active'), 'drivers', ['is_active'], unique=False)

    op.create_table('lanes',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('lane_code', sa.String(length=50), nullable=False),
    sa.Column('lane_name', sa.String(length=255), nullable=True),
    sa.Column('origin_location_id', sa.Integer(), nullable=True),
    sa.Column('destination_location_id', sa.Integer(), nullable=True),
    sa.Column('distance_km', sa.Float(), nullable=True),
    sa.Column('standard_tat_hours', sa.Float(), nullable=True),
    sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.ForeignKeyConstraint(['origin_location_id'], ['locations.id'], ),
    sa.ForeignKeyConstraint(['destination_location_id'], ['locations.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_lanes_id'), 'lanes', ['id'], unique=False)
    op.create_index(op.f('ix_lanes_lane_code'), 'lanes', ['lane_code'], unique=True)

    op.create_table('lane_route_calculations',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('lane_id', sa.Integer(), nullable=False),
    sa.Column('encoded_polyline', sa.Text(), nullable=True),
    sa.Column('total_distance_meters', sa.Integer(), nullable=True),
    sa.Column('total_duration_seconds', sa.Integer(), nullable=True),
    sa.Column('waypoints', sa.JSON(), nullable=True),
    sa.Column('calculated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.ForeignKeyConstraint(['lane_id'], ['lanes.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_lane_route_calculations_id'), 'lane_route_calculations', ['id'], unique=False)
    op.create_index(op.f('ix_lane_route_calculations_lane_id'), 'lane_route_calculations', ['lane_id'], unique=True)

    op.create_table('trips',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('trip_code', sa.String(length=50), nullable=False),
    sa.Column('status', sa.String(length=50), nullable=False, server_default='planned'),
    sa.Column('vehicle_id', sa.Integer(), nullable=True),
    sa.Column('driver_id', sa.Integer(), nullable=True),
    sa.Column('lane_id', sa.Integer(), nullable=True),
    sa.Column('origin_location_id', sa.Integer(), nullable=True),
    sa.Column('destination_location_id', sa.Integer(), nullable=True),
    sa.Column('tracking_type', sa.String(length=20), nullable=False, server_default='gps'),
    sa.Column('tracking_asset_id', sa.String(length=100), nullable=True),
    sa.Column('is_trackable', sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column('planned_start_time', sa.DateTime(), nullable=True),
    sa.Column('planned_end_time', sa.DateTime(), nullable=True),
    sa.Column('planned_eta', sa.DateTime(), nullable=True),
    sa.Column('actual_start_time', sa.DateTime(), nullable=True),
    sa.Column('actual_end_time', sa.DateTime(), nullable=True),
    sa.Column('last_ping_at', sa.DateTime(), nullable=True),
    sa.Column('active_alert_count', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id'], ),
    sa.ForeignKeyConstraint(['driver_id'], ['drivers.id'], ),
    sa.ForeignKeyConstraint(['lane_id'], ['lanes.id'], ),
    sa.ForeignKeyConstraint(['origin_location_id'], ['locations.id'], ),
    sa.ForeignKeyConstraint(['destination_location_id'], ['locations.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_trips_id'), 'trips', ['id'], unique=False)
    op.create_index(op.f('ix_trips_trip_code'), 'trips', ['trip_code'], unique=True)
    op.create_index(op.f('ix_trips_status'), 'trips', ['status'], unique=False)
    op.create_index(op.f('ix_trips_vehicle_id'), 'trips', ['vehicle_id'], unique=False)
    op.create_index(op.f('ix_trips_driver_id'), 'trips', ['driver_id'], unique=False)
    op.create_index(op.f('ix_trips_lane_id'), 'trips', ['lane_id'], unique=False)

    op.create_table('location_history',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('trip_id', sa.Integer(), nullable=False),
    sa.Column('vehicle_id', sa.Integer(), nullable=True),
    sa.Column('latitude', sa.Float(), nullable=False),
    sa.Column('longitude', sa.Float(), nullable=False),
    sa.Column('speed', sa.Float(), nullable=True),
    sa.Column('heading', sa.Float(), nullable=True),
    sa.Column('accuracy_meters', sa.Float(), nullable=True),
    sa.Column('source', sa.String(length=20), nullable=False, server_default='gps'),
    sa.Column('event_time', sa.DateTime(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_location_history_id'), 'location_history', ['id'], unique=False)
    op.create_index(op.f('ix_location_history_trip_id'), 'location_history', ['trip_id'], unique=False)
    op.create_index(op.f('ix_location_history_event_time'), 'location_history', ['event_time'], unique=False)

    op.create_table('shipments',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('shipment_code', sa.String(length=50), nullable=True),
    sa.Column('status', sa.String(length=50), nullable=False, server_default='created'),
    sa.Column('sub_status', sa.String(length=50), nullable=True),
    sa.Column('trip_id', sa.Integer(), nullable=True),
    sa.Column('consignee_code', sa.String(length=50), nullable=True),
    sa.Column('material_id', sa.Integer(), nullable=True),
    sa.Column('pickup_location_id', sa.Integer(), nullable=True),
    sa.Column('drop_location_id', sa.Integer(), nullable=True),
    sa.Column('quantity', sa.Float(), nullable=True),
    sa.Column('weight_kg', sa.Float(), nullable=True),
    sa.Column('planned_pickup_time', sa.DateTime(), nullable=True),
    sa.Column('planned_delivery_time', sa.DateTime(), nullable=True),
    sa.Column('is_delayed', sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column('delay_percentage', sa.Float(), nullable=True),
    sa.Column('confirmed_at', sa.DateTime(), nullable=True),
    sa.Column('mapped_at', sa.DateTime(), nullable=True),
    sa.Column('in_pickup_at', sa.DateTime(), nullable=True),
    sa.Column('in_transit_at', sa.DateTime(), nullable=True),
    sa.Column('out_for_delivery_at', sa.DateTime(), nullable=True),
    sa.Column('delivered_at', sa.DateTime(), nullable=True),
    sa.Column('ndr_at', sa.DateTime(), nullable=True),
    sa.Column('returned_at', sa.DateTime(), nullable=True),
    sa.Column('success_at', sa.DateTime(), nullable=True),
    sa.Column('loading_started_at', sa.DateTime(), nullable=True),
    sa.Column('loading_completed_at', sa.DateTime(), nullable=True),
    sa.Column('pod_cleaned_at', sa.DateTime(), nullable=True),
    sa.Column('billed_at', sa.DateTime(), nullable=True),
    sa.Column('paid_at', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ),
    sa.ForeignKeyConstraint(['pickup_location_id'], ['locations.id'], ),
    sa.ForeignKeyConstraint(['drop_location_id'], ['locations.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_shipments_id'), 'shipments', ['id'], unique=False)
    op.create_index(op.f('ix_shipments_shipment_code'), 'shipments', ['shipment_code'], unique=True)
    op.create_index(op.f('ix_shipments_status'), 'shipments', ['status'], unique=False)
    op.create_index(op.f('ix_shipments_trip_id'), 'shipments', ['trip_id'], unique=False)

    op.create_table('shipment_status_history',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('shipment_id', sa.Integer(), nullable=False),
    sa.Column('previous_status', sa.String(length=50), nullable=True),
    sa.Column('new_status', sa.String(length=50), nullable=False),
    sa.Column('previous_sub_status', sa.String(length=50), nullable=True),
    sa.Column('new_sub_status', sa.String(length=50), nullable=True),
    sa.Column('changed_by', sa.String(length=100), nullable=True),
    sa.Column('change_source', sa.String(length=20), nullable=False, server_default='manual'),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('metadata', sa.JSON(), nullable=True),
    sa.Column('changed_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.ForeignKeyConstraint(['shipment_id'], ['shipments.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_shipment_status_history_id'), 'shipment_status_history', ['id'], unique=False)
    op.create_index(op.f('ix_shipment_status_history_shipment_id'), 'shipment_status_history', ['shipment_id'], unique=False)
    op.create_index(op.f('ix_shipment_status_history_changed_at'), 'shipment_status_history', ['changed_at'], unique=False)

    op.create_table('trip_alerts',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('trip_id', sa.Integer(), nullable=False),
    sa.Column('alert_type', sa.String(length=50), nullable=False),
    sa.Column('title', sa.String(length=255), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('severity', sa.String(length=20), nullable=False, server_default='medium'),
    sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
    sa.Column('threshold_value', sa.Float(), nullable=True),
    sa.Column('actual_value', sa.Float(), nullable=True),
    sa.Column('location_latitude', sa.Float(), nullable=True),
    sa.Column('location_longitude', sa.Float(), nullable=True),
    sa.Column('metadata', sa.JSON(), nullable=True),
    sa.Column('triggered_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.Column('acknowledged_at', sa.DateTime(), nullable=True),
    sa.Column('acknowledged_by', sa.String(length=100), nullable=True),
    sa.Column('resolved_at', sa.DateTime(), nullable=True),
    sa.Column('resolved_by', sa.String(length=100), nullable=True),
    sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_trip_alerts_id'), 'trip_alerts', ['id'], unique=False)
    op.create_index(op.f('ix_trip_alerts_trip_id'), 'trip_alerts', ['trip_id'], unique=False)
    op.create_index(op.f('ix_trip_alerts_alert_type'), 'trip_alerts', ['alert_type'], unique=False)
    op.create_index(op.f('ix_trip_alerts_status'), 'trip_alerts', ['status'], unique=False)

    op.create_table('compliance_alerts',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('entity_type', sa.String(length=20), nullable=False),
    sa.Column('entity_id', sa.Integer(), nullable=False),
    sa.Column('document_type', sa.String(length=50), nullable=False),
    sa.Column('expiry_date', sa.Date(), nullable=False),
    sa.Column('alert_level', sa.String(length=20), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
    sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.Column('resolved_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_compliance_alerts_id'), 'compliance_alerts', ['id'], unique=False)
    op.create_index(op.f('ix_compliance_alerts_entity_type'), 'compliance_alerts', ['entity_type'], unique=False)
    op.create_index(op.f('ix_compliance_alerts_entity_id'), 'compliance_alerts', ['entity_id'], unique=False)
    op.create_index(op.f('ix_compliance_alerts_status'), 'compliance_alerts', ['status'], unique=False)

    op.create_table('tracking_settings',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('setting_key', sa.String(length=100), nullable=False),
    sa.Column('setting_value', sa.String(length=255), nullable=True),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_tracking_settings_id'), 'tracking_settings', ['id'], unique=False)
    op.create_index(op.f('ix_tracking_settings_setting_key'), 'tracking_settings', ['setting_key'], unique=True)

    op.create_table('geofence_states',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('trip_id', sa.Integer(), nullable=False),
    sa.Column('shipment_id', sa.Integer(), nullable=False),
    sa.Column('last_event', sa.String(length=30), nullable=False),
    sa.Column('resulting_status', sa.String(length=30), nullable=False),
    sa.Column('distance_meters', sa.Float(), nullable=True),
    sa.Column('event_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['shipment_id'], ['shipments.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('trip_id', 'shipment_id', name='uq_geofence_states_trip_shipment')
    )
    op.create_index(op.f('ix_geofence_states_id'), 'geofence_states', ['id'], unique=False)
    op.create_index(op.f('ix_geofence_states_trip_id'), 'geofence_states', ['trip_id'], unique=False)
    op.create_index(op.f('ix_geofence_states_shipment_id'), 'geofence_states', ['shipment_id'], unique=False)

    # Default thresholds
    settings_table = sa.table(
        'tracking_settings',
        sa.column('setting_key', sa.String),
        sa.column('setting_value', sa.String),
        sa.column('description', sa.Text),
    )
    op.bulk_insert(settings_table, [
        {'setting_key': 'route_deviation_threshold_meters', 'setting_value': '500',
         'description': 'Distance from lane route before a route deviation alert'},
        {'setting_key': 'stoppage_threshold_minutes', 'setting_value': '30',
         'description': 'Stationary time before a stoppage alert'},
        {'setting_key': 'tracking_lost_threshold_minutes', 'setting_value': '30',
         'description': 'Time without a location before a tracking lost alert'},
        {'setting_key': 'delay_threshold_minutes', 'setting_value': '60',
         'description': 'Overrun past planned ETA/end before a delay warning'},
        {'setting_key': 'idle_threshold_minutes', 'setting_value': '120',
         'description': 'Running time without any location before an idle alert'},
        {'setting_key': 'compliance_warning_days', 'setting_value': '30',
         'description': 'Days before document expiry for a warning'},
        {'setting_key': 'compliance_critical_days', 'setting_value': '7',
         'description': 'Days before document expiry for a critical alert'},
        {'setting_key': 'geofence_default_radius_meters', 'setting_value': '500',
         'description': 'Pickup/drop zone radius when the location has none'},
        {'setting_key': 'geofence_stale_location_minutes', 'setting_value': '30',
         'description': 'Ignore positions older than this for geofence checks'},
    ])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('geofence_states')
    op.drop_table('tracking_settings')
    op.drop_table('compliance_alerts')
    op.drop_table('trip_alerts')
    op.drop_table('shipment_status_history')
    op.drop_table('shipments')
    op.drop_table('location_history')
    op.drop_table('trips')
    op.drop_table('lane_route_calculations')
    op.drop_table('lanes')
    op.drop_table('drivers')
    op.drop_table('vehicles')
    op.drop_table('locations')
