"""Schema v1 - Transfer, address and wallet documents.

Addresses and wallets are created by the onboarding service, transfers by the
ingestion service. Nested document fields are stored as JSONB.
"""

schema = {
    'version': 1,
    'tables': [
        {
            'name': 'bitcoinwallets',
            'columns': [
                {'name': 'id', 'type': 'TEXT', 'primary_key': True},
                {'name': 'user_id', 'type': 'TEXT', 'nullable': False},
                {'name': 'label', 'type': 'TEXT'},
                {'name': 'derivation_params', 'type': 'JSONB', 'nullable': False,
                 'default': '\'{"main": {"lastUsed": -1}, "change": {"lastUsed": -1}}\''},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'indexes': [
                {'name': 'idx_bitcoinwallets_user', 'columns': ['user_id']}
            ]
        },
        {
            'name': 'bitcoinaddresses',
            'columns': [
                {'name': 'id', 'type': 'TEXT', 'primary_key': True},
                {'name': 'address', 'type': 'TEXT', 'nullable': False},
                {'name': 'user_id', 'type': 'TEXT', 'nullable': False},
                {'name': 'wallet_id', 'type': 'TEXT'},
                {'name': 'derivation_params', 'type': 'JSONB'},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'indexes': [
                {'name': 'idx_bitcoinaddresses_user_address', 'columns': ['user_id', 'address']},
                {'name': 'idx_bitcoinaddresses_wallet', 'columns': ['wallet_id']}
            ]
        },
        {
            'name': 'transfers',
            'columns': [
                {'name': 'id', 'type': 'TEXT', 'primary_key': True},
                {'name': 'user_id', 'type': 'TEXT', 'nullable': False},
                {'name': 'date', 'type': 'TIMESTAMPTZ'},
                {'name': 'details', 'type': 'JSONB', 'nullable': False,
                 'default': '\'{"inputs": [], "outputs": []}\''},
                {'name': 'representation', 'type': 'JSONB'},
                {'name': 'base_volume', 'type': 'JSONB'},
                {'name': 'hidden', 'type': 'BOOLEAN', 'nullable': False, 'default': 'true'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'indexes': [
                {'name': 'idx_transfers_user', 'columns': ['user_id']}
            ]
        }
    ]
}
