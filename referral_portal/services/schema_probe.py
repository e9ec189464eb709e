"""Schema capability probe for the shared CRM customer table.

The customer table is owned by the CRM, not by this portal. Newer CRM
deployments carry a `linked_referrer` column, older ones do not, and the
two sides migrate independently. Writes that could fill the column ask the
probe first and leave the column out of the statement when it is absent.

The result is memoized on the probe instance (one per app, see
extensions.py). A failed introspection is not cached, so the next call
retries.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import inspect
from sqlalchemy.exc import NoSuchTableError

logger = logging.getLogger(__name__)

CUSTOMER_TABLE = "customer"
LINKED_REFERRER_COLUMN = "linked_referrer"


@dataclass(frozen=True)
class CustomerCapabilities:
    has_linked_referrer: bool


class CustomerSchemaProbe:
    """Resolves CustomerCapabilities once and hands it out afterwards."""

    def __init__(self, app=None, schema=None, linked_referrer=None):
        self.schema = schema
        self.override = linked_referrer
        self._cached = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.schema = app.config.get("CUSTOMER_TABLE_SCHEMA")
        self.override = app.config.get("CUSTOMER_LINKED_REFERRER")
        self._cached = None
        app.extensions["schema_probe"] = self

    def get(self, connection):
        """Return the capabilities, introspecting `connection` on first use.

        A missing customer table answers "column absent" like any other
        schema without the column, but is not memoized: the CRM may create
        the table later.

        Args:
            connection: SQLAlchemy Connection (or Engine) to inspect.

        Raises:
            Whatever else the inspector raises (connection errors, missing
            schema). Nothing is cached in that case.
        """
        if self._cached is not None:
            return self._cached

        if self.override is not None:
            capabilities = CustomerCapabilities(has_linked_referrer=self.override)
        else:
            try:
                columns = inspect(connection).get_columns(
                    CUSTOMER_TABLE, schema=self.schema
                )
            except NoSuchTableError:
                logger.warning(
                    f"Table {CUSTOMER_TABLE} not found; "
                    f"treating {LINKED_REFERRER_COLUMN} as absent"
                )
                return CustomerCapabilities(has_linked_referrer=False)

            names = {column["name"] for column in columns}
            capabilities = CustomerCapabilities(
                has_linked_referrer=LINKED_REFERRER_COLUMN in names
            )
            state = "present" if capabilities.has_linked_referrer else "absent"
            logger.info(f"customer.{LINKED_REFERRER_COLUMN} column {state}")

        self._cached = capabilities
        return capabilities

    def reset(self):
        """Forget the memoized result (tests, or after a CRM schema change)."""
        self._cached = None
