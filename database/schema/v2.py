"""Schema v2 - Add jobs table.

Work items for the worker and for downstream wallet/address processing are
queued in this table.
"""
from .v1 import schema as v1_schema

schema = {
    'version': 2,
    'tables': v1_schema['tables'] + [
        {
            'name': 'jobs',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'type', 'type': 'TEXT', 'nullable': False},
                {'name': 'data', 'type': 'JSONB', 'nullable': False},
                {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'pending'"},
                {'name': 'attempts', 'type': 'INT8', 'nullable': False, 'default': '0'},
                {'name': 'error', 'type': 'TEXT'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'indexes': [
                {'name': 'idx_jobs_type_status', 'columns': ['type', 'status', 'created_at']}
            ]
        }
    ],
    'migrations': [
        '''
        CREATE TABLE IF NOT EXISTS jobs (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            type TEXT NOT NULL,
            data JSONB NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            attempts INT8 NOT NULL DEFAULT 0,
            error TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
        ''',
        '''
        CREATE INDEX IF NOT EXISTS idx_jobs_type_status ON jobs(type, status, created_at)
        '''
    ]
}
