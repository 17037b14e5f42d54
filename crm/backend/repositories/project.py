"""
Project Repositories.

Columns and cards have no tenant column of their own; they are scoped
through their project.
"""

from sqlalchemy import select
from sqlalchemy.sql import ColumnElement

from crm.backend.models.project import Project, ProjectCard, ProjectColumn
from crm.backend.repositories.base import TenantScopedRepository


class ProjectRepository(TenantScopedRepository[Project]):
    model = Project
    not_found_message = "Projet non trouvé"

    async def get_by_name(self, name: str) -> Project | None:
        return await self.first(Project.name.ilike(name.strip()))

    async def search(self, term: str, limit: int = 10) -> list[Project]:
        return await self.find(Project.name.ilike(f"%{term.strip()}%"), limit=limit)


class _ProjectChildRepository(TenantScopedRepository):
    def _tenant_projects(self):
        return select(Project.id).where(Project.tenant_id == self.tenant_id)

    def _scope_clauses(self) -> list[ColumnElement[bool]]:
        return [self.model.project_id.in_(self._tenant_projects())]

    async def create(self, **kwargs):
        # project_id carries the tenant scope
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance


class ProjectColumnRepository(_ProjectChildRepository):
    model = ProjectColumn
    not_found_message = "Colonne non trouvée"

    async def list_for_project(self, project_id: int) -> list[ProjectColumn]:
        return await self.find(
            ProjectColumn.project_id == project_id,
            order_by=ProjectColumn.position,
        )


class ProjectCardRepository(_ProjectChildRepository):
    model = ProjectCard
    not_found_message = "Tâche non trouvée"

    async def search(self, term: str, limit: int = 10) -> list[ProjectCard]:
        return await self.find(
            ProjectCard.title.ilike(f"%{term.strip()}%"),
            order_by=ProjectCard.is_completed,
            limit=limit,
        )
