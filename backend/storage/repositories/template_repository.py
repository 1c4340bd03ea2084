"""Mapping template repository.

A template is an ordered list of {source_column, target_field} entries stored
as JSON. At most one template per (workspace, platform) is the default, and the
default is what an upload without an explicit template uses.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Optional

from .base import BaseRepository, new_id
from ..database import utc_now
from ..models import MappingEntry, MappingTemplate

logger = logging.getLogger(__name__)


class TemplateConflictError(Exception):
    """Raised when a template operation would break the default rule."""

    pass


def _row_to_template(row: sqlite3.Row) -> MappingTemplate:
    entries = json.loads(row["mapping"]) if row["mapping"] else []
    return MappingTemplate(
        id=row["id"],
        workspace_id=row["workspace_id"],
        platform=row["platform"],
        name=row["name"],
        mapping=[
            MappingEntry(source_column=e["source_column"], target_field=e["target_field"])
            for e in entries
        ],
        is_default=bool(row["is_default"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _mapping_json(mapping: list[MappingEntry]) -> str:
    return json.dumps(
        [{"source_column": e.source_column, "target_field": e.target_field} for e in mapping]
    )


class TemplateRepository(BaseRepository[MappingTemplate]):
    """Repository for mapping templates."""

    async def list_templates(
        self,
        workspace_id: str,
        platform: Optional[str] = None,
    ) -> list[MappingTemplate]:
        conditions = ["workspace_id = ?"]
        params: list = [workspace_id]
        if platform:
            conditions.append("platform = ?")
            params.append(platform)

        rows = await self._execute(
            f"""
            SELECT * FROM mapping_templates
            WHERE {' AND '.join(conditions)}
            ORDER BY is_default DESC, name, created_at
            """,
            tuple(params),
            fetch="all",
        )
        return [_row_to_template(row) for row in rows]

    async def get(self, workspace_id: str, template_id: str) -> Optional[MappingTemplate]:
        row = await self._execute(
            "SELECT * FROM mapping_templates WHERE id = ? AND workspace_id = ?",
            (template_id, workspace_id),
            fetch="one",
        )
        return _row_to_template(row) if row else None

    async def get_default(self, workspace_id: str, platform: str) -> Optional[MappingTemplate]:
        row = await self._execute(
            """
            SELECT * FROM mapping_templates
            WHERE workspace_id = ? AND platform = ? AND is_default = 1
            """,
            (workspace_id, platform),
            fetch="one",
        )
        return _row_to_template(row) if row else None

    async def create(
        self,
        workspace_id: str,
        platform: str,
        name: str,
        mapping: list[MappingEntry],
        is_default: bool = False,
    ) -> MappingTemplate:
        """Create a template; a new default replaces the previous one."""
        now = utc_now()
        template = MappingTemplate(
            id=new_id(),
            workspace_id=workspace_id,
            platform=platform,
            name=name,
            mapping=list(mapping),
            is_default=is_default,
            created_at=now,
            updated_at=now,
        )

        def _insert(conn: sqlite3.Connection) -> None:
            self.ensure_workspace(conn, workspace_id)
            if is_default:
                self._clear_default(conn, workspace_id, platform, now)
            conn.execute(
                """
                INSERT INTO mapping_templates (
                    id, workspace_id, platform, name, mapping, is_default,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    template.id, workspace_id, platform, name,
                    _mapping_json(template.mapping), 1 if is_default else 0,
                    now, now,
                ),
            )

        await self._run_in_transaction(_insert)
        logger.info(f"Created mapping template {template.id} ({platform}: {name})")
        return template

    async def update(
        self,
        workspace_id: str,
        template_id: str,
        name: Optional[str] = None,
        mapping: Optional[list[MappingEntry]] = None,
        is_default: Optional[bool] = None,
    ) -> Optional[MappingTemplate]:
        """Update name, mapping or default flag. Returns None if not found."""
        current = await self.get(workspace_id, template_id)
        if current is None:
            return None

        now = utc_now()

        def _update(conn: sqlite3.Connection) -> None:
            if is_default:
                self._clear_default(conn, workspace_id, current.platform, now)
            conn.execute(
                """
                UPDATE mapping_templates
                SET name = ?, mapping = ?, is_default = ?, updated_at = ?
                WHERE id = ? AND workspace_id = ?
                """,
                (
                    name if name is not None else current.name,
                    _mapping_json(mapping if mapping is not None else current.mapping),
                    int(is_default if is_default is not None else current.is_default),
                    now,
                    template_id,
                    workspace_id,
                ),
            )

        await self._run_in_transaction(_update)
        return await self.get(workspace_id, template_id)

    async def delete(self, workspace_id: str, template_id: str) -> bool:
        """Delete a template. Returns False if not found.

        Raises:
            TemplateConflictError: If the template is the platform default.
        """
        current = await self.get(workspace_id, template_id)
        if current is None:
            return False
        if current.is_default:
            raise TemplateConflictError("Cannot delete the default template")

        await self._execute(
            "DELETE FROM mapping_templates WHERE id = ? AND workspace_id = ?",
            (template_id, workspace_id),
        )
        logger.info(f"Deleted mapping template {template_id}")
        return True

    @staticmethod
    def _clear_default(
        conn: sqlite3.Connection,
        workspace_id: str,
        platform: str,
        now: str,
    ) -> None:
        conn.execute(
            """
            UPDATE mapping_templates SET is_default = 0, updated_at = ?
            WHERE workspace_id = ? AND platform = ? AND is_default = 1
            """,
            (now, workspace_id, platform),
        )
