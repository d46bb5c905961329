"""Schema v1 - Initial database schema.

This version includes tables for:
- Users (display name and avatar initials)
- Food listings and their claim lifecycle
- Per-user notifications
"""

schema = {
    'version': 1,
    'tables': [
        {
            'name': 'users',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'name', 'type': 'VARCHAR(50)', 'nullable': False},
                {'name': 'email', 'type': 'TEXT', 'nullable': False, 'unique': True},
                {'name': 'avatar', 'type': 'TEXT', 'nullable': False, 'default': "''"},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ]
        },
        {
            'name': 'food_listings',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'name', 'type': 'VARCHAR(100)', 'nullable': False},
                {'name': 'description', 'type': 'VARCHAR(500)', 'nullable': False, 'default': "''"},
                {'name': 'photo_ref', 'type': 'TEXT'},
                {'name': 'address', 'type': 'TEXT', 'nullable': False},
                {'name': 'latitude', 'type': 'DOUBLE PRECISION'},
                {'name': 'longitude', 'type': 'DOUBLE PRECISION'},
                {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'available'"},
                {'name': 'donor_id', 'type': 'UUID', 'nullable': False},
                {'name': 'claimer_id', 'type': 'UUID'},
                {'name': 'expires_at', 'type': 'TIMESTAMPTZ', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'checks': [
                {'name': 'chk_food_status', 'expression': "status IN ('available', 'claimed', 'completed')"},
                {'name': 'chk_food_claimer', 'expression': "(claimer_id IS NULL) = (status = 'available')"},
                {'name': 'chk_food_not_self_claimed', 'expression': 'claimer_id IS NULL OR claimer_id <> donor_id'},
                {'name': 'chk_food_coordinates', 'expression': '(latitude IS NULL) = (longitude IS NULL)'}
            ],
            'foreign_keys': [
                {'columns': ['donor_id'], 'references': 'users(id)'},
                {'columns': ['claimer_id'], 'references': 'users(id)'}
            ],
            'indexes': [
                {'name': 'idx_food_status_created', 'columns': ['status', 'created_at DESC']},
                {'name': 'idx_food_donor', 'columns': ['donor_id']},
                {'name': 'idx_food_claimer', 'columns': ['claimer_id']}
            ]
        },
        {
            'name': 'notifications',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'recipient_user_id', 'type': 'UUID', 'nullable': False},
                {'name': 'type', 'type': 'TEXT', 'nullable': False},
                {'name': 'message', 'type': 'TEXT', 'nullable': False},
                # No foreign key: notifications outlive deleted listings
                {'name': 'related_listing_id', 'type': 'UUID'},
                {'name': 'actor_user_id', 'type': 'UUID'},
                {'name': 'read', 'type': 'BOOLEAN', 'nullable': False, 'default': 'false'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'checks': [
                {
                    'name': 'chk_notification_type',
                    'expression': "type IN ('claim_request', 'food_shared', 'claim_accepted', 'food_completed')"
                }
            ],
            'foreign_keys': [
                {'columns': ['recipient_user_id'], 'references': 'users(id)'},
                {'columns': ['actor_user_id'], 'references': 'users(id)'}
            ],
            'indexes': [
                {'name': 'idx_notifications_recipient_created', 'columns': ['recipient_user_id', 'created_at DESC']},
                {'name': 'idx_notifications_unread', 'columns': ['recipient_user_id'], 'where': 'NOT read'}
            ]
        }
    ],
    'triggers': [
        {
            'name': 'trg_food_listings_updated_at',
            'function_name': 'set_updated_at',
            'function_body': '''
                BEGIN
                    NEW.updated_at = now();
                    RETURN NEW;
                END;
            ''',
            'timing': 'BEFORE',
            'event': 'UPDATE',
            'table': 'food_listings'
        },
        {
            'name': 'trg_users_updated_at',
            'function_name': 'set_updated_at',
            'function_body': '''
                BEGIN
                    NEW.updated_at = now();
                    RETURN NEW;
                END;
            ''',
            'timing': 'BEFORE',
            'event': 'UPDATE',
            'table': 'users'
        }
    ],
    'migrations': []
}
