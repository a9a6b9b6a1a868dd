"""
Base repository class with common row operations over the backend's REST interface.
Provides generic CRUD calls that can be extended by relation-specific repositories.
"""

from typing import Any, Dict, Generic, List, Optional, Type, TypeVar
import logging

from pydantic import BaseModel
from supabase import AsyncClient

from roomfinder.utils.exceptions import BackendError

logger = logging.getLogger(__name__)

SchemaType = TypeVar("SchemaType", bound=BaseModel)


class BaseRepository(Generic[SchemaType]):
    """
    Base repository class providing common CRUD operations.
    Every SDK failure is logged and re-raised as BackendError.
    """

    table_name: str = ""

    def __init__(self, schema: Type[SchemaType], client: AsyncClient):
        """
        Initialize repository with row schema and backend client.

        Args:
            schema: Pydantic model rows are parsed into
            client: Backend client (anonymous or bound to a user session)
        """
        self.schema = schema
        self.client = client

    def query(self):
        """Start a query builder on this repository's relation."""
        return self.client.table(self.table_name)

    async def execute(self, query, operation: str) -> List[Dict[str, Any]]:
        """
        Execute a built query and return its rows.

        Args:
            query: Query builder ready to execute
            operation: Short description used in logs and errors

        Returns:
            List of row dictionaries (possibly empty)

        Raises:
            BackendError: If the backend call fails
        """
        try:
            response = await query.execute()
        except Exception as e:
            logger.error(f"Failed to {operation} on {self.table_name}: {e}")
            raise BackendError(operation, str(e))

        data = getattr(response, "data", None)
        if data is None:
            return []
        if isinstance(data, dict):
            return [data]
        return list(data)

    def parse(self, row: Dict[str, Any]) -> SchemaType:
        return self.schema.model_validate(row)

    async def first(self, query, operation: str) -> Optional[SchemaType]:
        """Execute a query limited to one row and parse it, or return None."""
        rows = await self.execute(query.limit(1), operation)
        if not rows:
            logger.debug(f"{operation}: no {self.table_name} row")
            return None
        return self.parse(rows[0])

    async def get_by_id(self, id: str, columns: str = "*") -> Optional[SchemaType]:
        """
        Get a row by its ID.

        Args:
            id: Row identifier
            columns: Select expression, including embedded relations

        Returns:
            Parsed row if found, None otherwise
        """
        return await self.first(
            self.query().select(columns).eq("id", id),
            f"get {self.table_name} {id}"
        )

    async def create(self, obj_in: Dict[str, Any]) -> Optional[SchemaType]:
        """
        Insert a new row.

        Args:
            obj_in: Dictionary of field values for the new row

        Returns:
            Inserted row as echoed by the backend, if any
        """
        rows = await self.execute(self.query().insert(obj_in), f"insert into {self.table_name}")
        logger.debug(f"Inserted row into {self.table_name}")
        return self.parse(rows[0]) if rows else None

    async def update(self, id: str, obj_in: Dict[str, Any]) -> Optional[SchemaType]:
        """
        Update a row by its ID.

        Args:
            id: Row identifier
            obj_in: Fields to write

        Returns:
            Updated row as echoed by the backend, if any
        """
        rows = await self.execute(
            self.query().update(obj_in).eq("id", id),
            f"update {self.table_name} {id}"
        )
        return self.parse(rows[0]) if rows else None

    async def delete(self, id: str) -> bool:
        """
        Hard-delete a row by its ID.

        Returns:
            True if the backend reported a deleted row
        """
        rows = await self.execute(
            self.query().delete().eq("id", id),
            f"delete {self.table_name} {id}"
        )
        return bool(rows)
