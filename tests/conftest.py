"""
Shared fixtures: a temporary SQLite database with a users table and a
configured DataTables table on top of it.
"""
import os
import tempfile

# Keep test log files out of the working tree
os.environ.setdefault('DATATABLES_LOG_DIR', tempfile.mkdtemp(prefix='datatables-logs-'))

import pytest

from database import DatabaseConnection
from table_config import DataTable

USERS_SCHEMA = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name VARCHAR(100) NOT NULL,
    email VARCHAR(255),
    role VARCHAR(20),
    age INT,
    active TINYINT(1) NOT NULL DEFAULT 1,
    joined DATE,
    tenant_id INT NOT NULL DEFAULT 1,
    avatar VARCHAR(255)
);
CREATE TABLE teams (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title VARCHAR(100) NOT NULL
);
"""

USERS = [
    ('Alice Smith', 'alice@example.com', 'admin', 34, 1, '2020-01-15', 1),
    ('Bob Jones', 'bob@example.com', 'user', 27, 1, '2021-06-01', 1),
    ('Carol White', 'carol@example.com', 'user', 45, 0, '2019-11-30', 1),
    ('Dave Brown', 'dave@other.org', 'editor', 52, 1, '2022-03-10', 2),
]


@pytest.fixture
def db(tmp_path):
    """Temporary database seeded with users."""
    connection = DatabaseConnection(tmp_path / 'test.db')
    connection.executescript(USERS_SCHEMA)
    for user in USERS:
        connection.query(
            "INSERT INTO users (name, email, role, age, active, joined, tenant_id) VALUES (?, ?, ?, ?, ?, ?, ?)"
        ).bind(user).execute()
    yield connection
    connection.close()


@pytest.fixture
def upload_dir(tmp_path):
    return str(tmp_path / 'uploads')


@pytest.fixture
def users_table(db, upload_dir):
    """Users table with sorting, inline editing and bulk actions enabled."""
    return (
        DataTable(db)
        .table('users')
        .columns({
            'name': 'Name',
            'email': {'label': 'Email', 'type': 'email'},
            'role': {'label': 'Role', 'type': 'select', 'options': {'admin': 'Admin', 'user': 'User', 'editor': 'Editor'}},
            'age': 'Age',
            'active': 'Active',
            'joined': 'Joined',
        })
        .sortable(['name', 'age', 'joined'])
        .inline_editable(['name', 'active', 'age'])
        .bulk_actions(True)
        .file_upload(upload_dir, ['png', 'pdf'], 1024)
        .build()
    )
