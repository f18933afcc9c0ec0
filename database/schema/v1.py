"""Schema v1 - Initial database schema.

This version includes tables for:
- Parties (wallet-address identity directory)
- Catalog products and per-party inventory
- Orders, order items and tracking history
- Sequential identifier counters
- Authentication challenges and sessions
"""

schema = {
    'version': 1,
    'tables': [
        {
            'name': 'parties',
            'columns': [
                {'name': 'wallet_address', 'type': 'TEXT', 'primary_key': True},
                {'name': 'role', 'type': 'TEXT', 'nullable': False},
                {'name': 'name', 'type': 'TEXT', 'nullable': False},
                {'name': 'company_name', 'type': 'TEXT', 'nullable': False},
                {'name': 'email', 'type': 'TEXT', 'nullable': False},
                {'name': 'phone', 'type': 'TEXT', 'default': "''"},
                {'name': 'location', 'type': 'TEXT', 'default': "''"},
                {'name': 'registration_id', 'type': 'TEXT', 'default': "''"},
                {'name': 'license_number', 'type': 'TEXT', 'default': "''"},
                {'name': 'verified', 'type': 'BOOLEAN', 'nullable': False, 'default': 'false'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'checks': [
                "wallet_address = lower(wallet_address)",
                "role IN ('provider', 'manufacturer', 'distributor', 'retailer', 'admin')"
            ],
            'indexes': [
                {'name': 'idx_parties_role', 'columns': ['role']}
            ]
        },
        {
            'name': 'products',
            'columns': [
                {'name': 'product_id', 'type': 'TEXT', 'primary_key': True},
                {'name': 'name', 'type': 'TEXT', 'nullable': False},
                {'name': 'category', 'type': 'TEXT', 'nullable': False},
                {'name': 'description', 'type': 'TEXT', 'default': "''"},
                {'name': 'manufacturer', 'type': 'TEXT', 'default': "''"},
                {'name': 'batch_number', 'type': 'TEXT'},
                {'name': 'manufacture_date', 'type': 'DATE'},
                {'name': 'expiry_date', 'type': 'DATE'},
                {'name': 'price', 'type': 'DECIMAL', 'nullable': False},
                {'name': 'quantity', 'type': 'INT8', 'nullable': False, 'default': '0'},
                {'name': 'unit', 'type': 'TEXT', 'nullable': False},
                {'name': 'image_url', 'type': 'TEXT'},
                {'name': 'status', 'type': 'TEXT', 'nullable': False},
                {'name': 'blockchain_id', 'type': 'TEXT'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'checks': [
                "price >= 0",
                "quantity >= 0",
                "status IN ('Available', 'Low Stock', 'Out of Stock')"
            ],
            'indexes': [
                {'name': 'idx_products_category', 'columns': ['category']},
                {'name': 'idx_products_status', 'columns': ['status']}
            ]
        },
        {
            'name': 'inventory_items',
            'columns': [
                {'name': 'wallet_address', 'type': 'TEXT'},
                {'name': 'name', 'type': 'TEXT'},
                {'name': 'description', 'type': 'TEXT', 'nullable': False},
                {'name': 'quantity', 'type': 'INT8', 'nullable': False},
                {'name': 'price', 'type': 'DECIMAL', 'nullable': False},
                {'name': 'category', 'type': 'TEXT', 'nullable': False},
                {'name': 'image_url', 'type': 'TEXT'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'primary_key': ['wallet_address', 'name'],
            'checks': [
                "wallet_address = lower(wallet_address)",
                "quantity >= 0",
                "price >= 0"
            ]
        },
        {
            'name': 'orders',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'order_id', 'type': 'TEXT', 'nullable': False, 'unique': True},
                {'name': 'kind', 'type': 'TEXT', 'nullable': False, 'default': "'catalog'"},
                {'name': 'buyer_address', 'type': 'TEXT', 'nullable': False},
                {'name': 'seller_address', 'type': 'TEXT', 'nullable': False},
                {'name': 'total_amount', 'type': 'DECIMAL', 'nullable': False},
                {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'Pending'"},
                {'name': 'shipping_address', 'type': 'TEXT', 'default': "''"},
                {'name': 'metadata_uri', 'type': 'TEXT'},
                {'name': 'transaction_hash', 'type': 'TEXT'},
                {'name': 'blockchain_order_id', 'type': 'TEXT'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'checks': [
                "total_amount >= 0",
                "kind IN ('catalog', 'transfer')"
            ],
            'foreign_keys': [
                {'columns': ['buyer_address'], 'references': 'parties(wallet_address)'},
                {'columns': ['seller_address'], 'references': 'parties(wallet_address)'}
            ],
            'indexes': [
                {'name': 'idx_orders_buyer_status', 'columns': ['buyer_address', 'status']},
                {'name': 'idx_orders_seller_status', 'columns': ['seller_address', 'status']},
                {'name': 'idx_orders_created', 'columns': ['created_at']}
            ]
        },
        {
            'name': 'order_items',
            'columns': [
                {'name': 'order_id', 'type': 'UUID'},
                {'name': 'position', 'type': 'INT8'},
                {'name': 'product_id', 'type': 'TEXT'},
                {'name': 'name', 'type': 'TEXT', 'nullable': False},
                {'name': 'quantity', 'type': 'INT8', 'nullable': False},
                {'name': 'price', 'type': 'DECIMAL', 'nullable': False}
            ],
            'primary_key': ['order_id', 'position'],
            'checks': [
                "quantity > 0",
                "price >= 0"
            ],
            'foreign_keys': [
                {'columns': ['order_id'], 'references': 'orders(id)', 'on_delete': 'CASCADE'}
            ],
            'indexes': [
                {'name': 'idx_order_items_product', 'columns': ['product_id']}
            ]
        },
        {
            'name': 'order_tracking',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'order_id', 'type': 'UUID', 'nullable': False},
                {'name': 'status', 'type': 'TEXT', 'nullable': False},
                {'name': 'description', 'type': 'TEXT', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'clock_timestamp()'}
            ],
            'foreign_keys': [
                {'columns': ['order_id'], 'references': 'orders(id)', 'on_delete': 'CASCADE'}
            ],
            'indexes': [
                {'name': 'idx_order_tracking_order', 'columns': ['order_id', 'created_at']}
            ]
        },
        {
            'name': 'id_counters',
            'columns': [
                {'name': 'name', 'type': 'TEXT', 'primary_key': True},
                {'name': 'value', 'type': 'INT8', 'nullable': False}
            ]
        },
        {
            'name': 'auth_challenges',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'address', 'type': 'TEXT', 'nullable': False},
                {'name': 'challenge', 'type': 'TEXT', 'nullable': False},
                {'name': 'expires_at', 'type': 'TIMESTAMPTZ', 'nullable': False},
                {'name': 'used', 'type': 'BOOLEAN', 'nullable': False, 'default': 'false'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'indexes': [
                {'name': 'idx_auth_challenges_address', 'columns': ['address']}
            ]
        },
        {
            'name': 'auth_sessions',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'address', 'type': 'TEXT', 'nullable': False},
                {'name': 'token', 'type': 'TEXT', 'nullable': False},
                {'name': 'expires_at', 'type': 'TIMESTAMPTZ', 'nullable': False},
                {'name': 'revoked', 'type': 'BOOLEAN', 'nullable': False, 'default': 'false'},
                {'name': 'revoked_at', 'type': 'TIMESTAMPTZ'},
                {'name': 'user_agent', 'type': 'TEXT'},
                {'name': 'ip_address', 'type': 'TEXT'},
                {'name': 'last_used_at', 'type': 'TIMESTAMPTZ'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'indexes': [
                {'name': 'idx_auth_sessions_address', 'columns': ['address']},
                {'name': 'idx_auth_sessions_token', 'columns': ['token'], 'unique': True}
            ]
        }
    ],
    'migrations': []
}
