"""test_snowflake.py — Unit tests for the Snowflake client and resource statements.

All locally runnable without Snowflake or AWS credentials.

Run from shared_layer directory:
    PYTHONPATH=python python3 -m pytest test_snowflake.py -v
"""

from __future__ import annotations

import os
import sys
import threading
import unittest
from unittest.mock import MagicMock

from snowflake.connector.errors import OperationalError, ProgrammingError

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "python"))

from location_shared.errors import ProvisioningError
from location_shared.snowflake_client import SnowflakeClient, SnowflakeConnectionPool
from location_shared.snowflake_resources import (
    create_external_function_statements,
    delete_api_integration,
    describe_api_integration,
    drop_external_function_statements,
    external_function_names,
    update_api_integration,
)

_OPTIONS = {
    "account": "acc",
    "username": "user",
    "password": "secret",
    "warehouse": "WH",
    "database": "DB",
}


def _fake_connection(rows=None, error=None):
    conn = MagicMock()
    cursor = conn.cursor.return_value
    if error is not None:
        cursor.execute.side_effect = error
    cursor.fetchall.return_value = rows or []
    return conn


class ConnectionPoolTests(unittest.TestCase):
    def test_reuses_idle_connection(self):
        factory = MagicMock(side_effect=lambda: MagicMock())
        pool = SnowflakeConnectionPool(factory, max_size=2)

        with pool.connection() as first:
            pass
        with pool.connection() as second:
            pass

        self.assertIs(first, second)
        factory.assert_called_once()

    def test_opens_up_to_max_concurrently(self):
        factory = MagicMock(side_effect=lambda: MagicMock())
        pool = SnowflakeConnectionPool(factory, max_size=2)

        with pool.connection() as a, pool.connection() as b:
            self.assertIsNot(a, b)
        self.assertEqual(factory.call_count, 2)
        self.assertEqual(pool.idle_count, 2)

    def test_blocks_beyond_max(self):
        pool = SnowflakeConnectionPool(MagicMock(side_effect=lambda: MagicMock()), max_size=1)
        acquired = threading.Event()

        def _borrow():
            with pool.connection():
                acquired.set()

        with pool.connection():
            worker = threading.Thread(target=_borrow)
            worker.start()
            self.assertFalse(acquired.wait(0.2))
        worker.join(5)
        self.assertTrue(acquired.is_set())

    def test_broken_connection_is_discarded(self):
        conn = MagicMock()
        pool = SnowflakeConnectionPool(MagicMock(return_value=conn), max_size=1)

        with self.assertRaises(OperationalError):
            with pool.connection():
                raise OperationalError(msg="connection reset")

        conn.close.assert_called_once()
        self.assertEqual(pool.idle_count, 0)

    def test_close_drops_idle_connections(self):
        conn = MagicMock()
        pool = SnowflakeConnectionPool(MagicMock(return_value=conn), max_size=1, min_size=0)
        with pool.connection():
            pass
        pool.close()
        conn.close.assert_called_once()
        self.assertEqual(pool.idle_count, 0)

    def test_max_size_must_be_positive(self):
        with self.assertRaises(ValueError):
            SnowflakeConnectionPool(MagicMock(), max_size=0)


class SnowflakeClientTests(unittest.TestCase):
    def test_execute_statement_lowercases_columns(self):
        conn = _fake_connection(rows=[{"PROPERTY": "ENABLED", "PROPERTY_VALUE": "true"}])
        connect = MagicMock(return_value=conn)
        client = SnowflakeClient(options_loader=lambda: dict(_OPTIONS), connect=connect)

        rows = client.execute_statement("DESCRIBE INTEGRATION x;")

        self.assertEqual(rows, [{"property": "ENABLED", "property_value": "true"}])
        connect.assert_called_once_with(
            account="acc", user="user", password="secret", warehouse="WH", database="DB"
        )
        conn.cursor.return_value.execute.assert_called_once_with("DESCRIBE INTEGRATION x;")
        conn.cursor.return_value.close.assert_called_once()

    def test_options_loaded_once(self):
        loader = MagicMock(return_value=dict(_OPTIONS))
        client = SnowflakeClient(options_loader=loader, connect=MagicMock(return_value=_fake_connection()))
        client.execute_statement("SELECT 1")
        client.execute_statement("SELECT 2")
        loader.assert_called_once()

    def test_statement_error_is_reraised(self):
        error = ProgrammingError(msg="SQL compilation error", errno=1003)
        conn = _fake_connection(error=error)
        client = SnowflakeClient(options_loader=lambda: dict(_OPTIONS), connect=MagicMock(return_value=conn))

        with self.assertRaises(ProgrammingError):
            client.execute_statement("CREATE BROKEN")


class StatementTests(unittest.TestCase):
    def test_four_functions_outside_grab_region(self):
        names = external_function_names("us-east-1")
        self.assertEqual(len(names), 4)
        self.assertFalse(any(name.endswith("grab") for name in names))

    def test_grab_functions_in_ap_southeast_1(self):
        names = external_function_names("ap-southeast-1")
        self.assertEqual(len(names), 6)
        self.assertIn("geocode_amazon_location_service_provider_grab", names)
        self.assertIn("reverse_geocode_amazon_location_service_provider_grab", names)

    def test_create_statements_bind_integration_and_url(self):
        statements = create_external_function_statements(
            "location_integration", "https://abc.execute-api.us-east-1.amazonaws.com/prod/", "us-east-1"
        )
        self.assertEqual(len(statements), 4)
        for statement in statements:
            self.assertIn("API_INTEGRATION = location_integration", statement)
            self.assertIn("AS 'https://abc.execute-api.us-east-1.amazonaws.com/prod/'", statement)
        reverse = [s for s in statements if "reverse_geocode" in s]
        self.assertTrue(all("(lng FLOAT, lat FLOAT)" in s for s in reverse))

    def test_drop_statements_are_idempotent(self):
        statements = drop_external_function_statements("ap-southeast-1")
        self.assertEqual(len(statements), 6)
        self.assertTrue(all(s.startswith("DROP FUNCTION IF EXISTS") for s in statements))


class ApiIntegrationTests(unittest.TestCase):
    def test_describe_reads_assigned_identity(self):
        client = MagicMock()
        client.execute_statement.return_value = [
            {"property": "ENABLED", "property_value": "true"},
            {"property": "API_AWS_IAM_USER_ARN", "property_value": "arn:aws:iam::123:user/sf"},
            {"property": "API_AWS_EXTERNAL_ID", "property_value": "ext-123"},
        ]
        descriptor = describe_api_integration("location_integration", client=client)
        self.assertEqual(descriptor.iam_user_arn, "arn:aws:iam::123:user/sf")
        self.assertEqual(descriptor.external_id, "ext-123")

    def test_describe_without_identity_fails(self):
        client = MagicMock()
        client.execute_statement.return_value = [{"property": "ENABLED", "property_value": "true"}]
        with self.assertRaises(ProvisioningError):
            describe_api_integration("location_integration", client=client)

    def test_describe_empty_response_fails(self):
        client = MagicMock()
        client.execute_statement.return_value = []
        with self.assertRaises(ProvisioningError):
            describe_api_integration("location_integration", client=client)

    def test_delete_missing_integration_is_success(self):
        client = MagicMock()
        client.execute_statement.side_effect = ProgrammingError(
            msg="Integration 'X' does not exist or not authorized.", errno=2003
        )
        delete_api_integration("X", client=client)

    def test_delete_other_errors_propagate(self):
        client = MagicMock()
        client.execute_statement.side_effect = ProgrammingError(msg="Insufficient privileges", errno=3001)
        with self.assertRaises(ProgrammingError):
            delete_api_integration("X", client=client)

    def test_update_same_name_issues_nothing(self):
        client = MagicMock()
        replaced = update_api_integration("same", "arn:role", "https://x/", "same", client=client)
        self.assertFalse(replaced)
        client.execute_statement.assert_not_called()

    def test_update_new_name_drops_then_creates(self):
        client = MagicMock()
        replaced = update_api_integration("new_name", "arn:role", "https://x/", "old_name", client=client)
        self.assertTrue(replaced)
        statements = [c.args[0] for c in client.execute_statement.call_args_list]
        self.assertEqual(len(statements), 2)
        self.assertEqual(statements[0], "DROP API INTEGRATION IF EXISTS old_name")
        self.assertTrue(statements[1].startswith("CREATE OR REPLACE API INTEGRATION new_name"))


if __name__ == "__main__":
    unittest.main()
